from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import anyio
import msgspec

from ..api_models import TokenPermissions
from ..logging import get_logger
from .client import VkClient
from .errors import ApiCallError
from .queue import DEFAULT_QUOTA, DEFAULT_TICK_INTERVAL_S, CallQueue, QueuedCall

if TYPE_CHECKING:
    from ..stats import Stats

logger = get_logger(__name__)

REQUIRED_PERMISSION = "messages"
PERMISSIONS_METHOD = "groups.getTokenPermissions"


def random_id() -> int:
    return int.from_bytes(os.urandom(4), "big", signed=True)


class VkApi:
    """Queued access to the VK API.

    Handlers reach it as `ctx.api`; every call goes through the call queue.
    """

    def __init__(
        self,
        client: VkClient,
        stats: Stats,
        *,
        quota: int = DEFAULT_QUOTA,
        interval_s: float = DEFAULT_TICK_INTERVAL_S,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
        check_permissions: bool = True,
    ) -> None:
        self._client = client
        self._stats = stats
        self.queue = CallQueue(
            client.call, quota=quota, interval_s=interval_s, sleep=sleep
        )
        self._check_permissions = check_permissions

    async def close(self) -> None:
        await self._client.close()

    def schedule_call(
        self, method: str, params: dict[str, Any] | None = None
    ) -> QueuedCall:
        return self.queue.schedule(method, params)

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        return await self.queue.call(method, params)

    async def send(
        self,
        peer_id: int | str,
        message: str = "",
        attachment: str = "",
        keyboard: str = "",
    ) -> bool:
        """Send a message via `messages.send`. Failures are logged, not raised."""
        params: dict[str, Any] = {
            "peer_id": str(peer_id),
            "random_id": str(random_id()),
        }
        if message:
            params["message"] = message
        if attachment:
            params["attachment"] = attachment
        if keyboard:
            params["keyboard"] = keyboard
        try:
            await self.queue.call("messages.send", params)
        except ApiCallError as exc:
            logger.warning("vk.send_failed", peer_id=peer_id, error=str(exc))
            return False
        self._stats.record_sent()
        return True

    async def report_permissions(self, call: QueuedCall | None = None) -> bool:
        """Advisory: warn when the token cannot send messages."""
        if call is None:
            call = self.queue.schedule(PERMISSIONS_METHOD)
        try:
            response = await call.wait()
        except ApiCallError as exc:
            logger.warning("vk.permissions.check_failed", error=str(exc))
            return False
        try:
            permissions = msgspec.convert(response, type=TokenPermissions)
        except msgspec.ValidationError as exc:
            logger.warning("vk.permissions.bad_response", error=str(exc))
            return False
        names = {permission.name for permission in permissions.permissions}
        if REQUIRED_PERMISSION not in names:
            logger.warning(
                "vk.permissions.missing",
                permission=REQUIRED_PERMISSION,
                detail="Bot will be unable to send any messages",
            )
            return False
        logger.info("vk.permissions.ok", permission=REQUIRED_PERMISSION)
        return True

    async def run(self, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        async with anyio.create_task_group() as tg:
            if self._check_permissions:
                tg.start_soon(
                    self.report_permissions, self.queue.schedule(PERMISSIONS_METHOD)
                )
            await tg.start(self.queue.run)
            task_status.started()
