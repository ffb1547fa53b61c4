from __future__ import annotations

import time
from typing import Awaitable, Callable

import anyio

from .events import ALL_EVENTS, INTERNAL_EVENTS, EventKind, event_name
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_STATS_INTERVAL_S = 10.0


def format_uptime(seconds: float) -> str:
    remaining = int(seconds)
    parts: list[str] = []
    for suffix, size in (("y", 365 * 86400), ("d", 86400), ("h", 3600), ("m", 60)):
        value, remaining = divmod(remaining, size)
        if value or parts:
            parts.append(f"{value}{suffix}")
    parts.append(f"{remaining}s")
    return " ".join(parts)


class Stats:
    """Traffic counters for the bot.

    `rx` counts events received from the Callback API, `tx` counts messages
    sent. Per-kind counters include the internally synthesized kinds, which
    do not count towards `rx`.
    """

    def __init__(
        self,
        *,
        interval_s: float = DEFAULT_STATS_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self.rx = 0
        self.tx = 0
        self.event_counters: dict[str, int] = {name: 0 for name in ALL_EVENTS}
        self.previous = ""
        self._interval_s = interval_s
        self._clock = clock
        self._sleep = sleep
        self._started_at = clock()
        logger.info("stats.initialized")

    def record_received(self, kind: EventKind | str) -> None:
        name = event_name(kind)
        self.rx += 1
        self.event_counters[name] = self.event_counters.get(name, 0) + 1
        if name in INTERNAL_EVENTS:
            self.rx -= 1

    def record_sent(self) -> None:
        self.tx += 1

    def count(self, kind: EventKind | str) -> int:
        return self.event_counters.get(event_name(kind), 0)

    def render(self) -> str:
        c = self.count
        return (
            f"rx:{self.rx} tx:{self.tx}"
            f" | allow/deny:{c(EventKind.MESSAGE_ALLOW)}/{c(EventKind.MESSAGE_DENY)}"
            f" typing:{c(EventKind.MESSAGE_TYPING_STATE)}"
            f" new:{c(EventKind.MESSAGE_NEW)}"
            f"(start:{c(EventKind.START)} action:{c(EventKind.SERVICE_ACTION)})"
            f" edit:{c(EventKind.MESSAGE_EDIT)}"
            f" | reply:{c(EventKind.MESSAGE_REPLY)}"
            f" | no_match:{c(EventKind.NO_MATCH)} err:{c(EventKind.HANDLER_ERROR)}"
        )

    def snapshot(self) -> str | None:
        """Rendered counters, or None when nothing changed since the last one."""
        rendered = self.render()
        if rendered == self.previous:
            return None
        self.previous = rendered
        return rendered

    def uptime(self) -> str:
        return format_uptime(self._clock() - self._started_at)

    def log_snapshot(self) -> bool:
        rendered = self.snapshot()
        if rendered is None:
            return False
        logger.info("stats.snapshot", uptime=self.uptime(), counters=rendered)
        return True

    async def run(self, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        task_status.started()
        while True:
            await self._sleep(self._interval_s)
            self.log_snapshot()
