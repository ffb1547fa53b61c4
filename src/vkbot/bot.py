from __future__ import annotations

from typing import Awaitable, Callable

import anyio

from .api import VkApi, VkClient
from .config import BotSettings
from .logging import get_logger
from .router import HandlerCounts, Router
from .stats import Stats

logger = get_logger(__name__)


class Bot:
    """Wires stats, the queued VK API and the router for one community."""

    def __init__(
        self,
        settings: BotSettings,
        *,
        client: VkClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
        check_permissions: bool = True,
    ) -> None:
        self.settings = settings
        self.stats = Stats(interval_s=settings.stats_interval_s, sleep=sleep)
        self.api = VkApi(
            client or VkClient(settings.vk_token),
            self.stats,
            quota=settings.api_quota,
            interval_s=settings.tick_interval_s,
            sleep=sleep,
            check_permissions=check_permissions,
        )
        self.router = Router(
            self.api,
            self.stats,
            cmd_prefix=settings.cmd_prefix,
            group_id=settings.group_id,
            event_warnings=settings.event_warnings,
        )

    def start(self) -> HandlerCounts:
        """Lock the router and report what it will handle."""
        self.router.lock()
        counts = self.router.handler_counts()
        logger.info(
            "bot.handlers",
            on=counts.on,
            cmd=counts.cmd,
            regex=counts.regex,
            payload=counts.payload,
        )
        if counts.total == 0:
            logger.warning("bot.no_handlers", detail="The bot won't do anything")
        return counts

    async def run_background(self, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        async with anyio.create_task_group() as tg:
            await tg.start(self.api.run)
            await tg.start(self.stats.run)
            task_status.started()

    def create_app(self):
        from .server import create_app

        return create_app(self)

    def serve(self) -> None:
        import uvicorn

        logger.info(
            "bot.serve", host=self.settings.host, port=self.settings.port
        )
        uvicorn.run(
            self.create_app(),
            host=self.settings.host,
            port=self.settings.port,
            log_config=None,
        )
