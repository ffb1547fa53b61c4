from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import anyio
import msgspec

from ..api_models import ApiErrorBody, encode_json
from ..logging import get_logger
from .errors import ApiCallError

logger = get_logger(__name__)

DEFAULT_QUOTA = 20
DEFAULT_TICK_INTERVAL_S = 1.0

Transport = Callable[[str, dict[str, Any]], Awaitable[Any]]


@dataclass(slots=True)
class QueuedCall:
    method: str
    params: dict[str, Any]
    done: anyio.Event = field(default_factory=anyio.Event)
    result: Any = None
    error: ApiCallError | None = None

    @property
    def settled(self) -> bool:
        return self.done.is_set()

    def set_result(self, result: Any) -> None:
        if self.done.is_set():
            return
        self.result = result
        self.done.set()

    def set_error(self, error: ApiCallError) -> None:
        if self.done.is_set():
            return
        self.error = error
        self.done.set()

    async def wait(self) -> Any:
        await self.done.wait()
        if self.error is not None:
            raise self.error
        return self.result


def unwrap_response(method: str, payload: Any) -> Any:
    """Return `response` from a VK reply or raise the matching ApiCallError."""
    if isinstance(payload, dict):
        response = payload.get("response")
        if response is not None:
            return response
        error = payload.get("error")
        if error is not None:
            try:
                body = msgspec.convert(error, type=ApiErrorBody)
            except msgspec.ValidationError:
                pass
            else:
                raise ApiCallError.provider(method, body.error_code, body.error_msg)
    raise ApiCallError.unknown(method, _raw_for_log(payload))


def _raw_for_log(payload: Any) -> str:
    try:
        return encode_json(payload)
    except (TypeError, msgspec.EncodeError):
        return repr(payload)


class CallQueue:
    """FIFO of pending API calls, drained at most `quota` calls per tick.

    Producers are never throttled: if they outpace the quota the backlog
    keeps growing and calls wait for later ticks.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        quota: int = DEFAULT_QUOTA,
        interval_s: float = DEFAULT_TICK_INTERVAL_S,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        if quota <= 0:
            raise ValueError(f"quota must be positive, got {quota}")
        self._transport = transport
        self._quota = quota
        self._interval_s = interval_s
        self._sleep = sleep
        self._pending: deque[QueuedCall] = deque()
        self._draining = False

    @property
    def quota(self) -> int:
        return self._quota

    @property
    def draining(self) -> bool:
        return self._draining

    def __len__(self) -> int:
        return len(self._pending)

    def schedule(self, method: str, params: dict[str, Any] | None = None) -> QueuedCall:
        call = QueuedCall(method=method, params=dict(params or {}))
        self._pending.append(call)
        return call

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        return await self.schedule(method, params).wait()

    async def drain_once(self) -> int:
        """Run one tick. Returns 0 without doing anything if a tick is running."""
        if self._draining:
            return 0
        self._draining = True
        return await self._drain_and_release()

    async def run(self, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        async with anyio.create_task_group() as tg:
            task_status.started()
            while True:
                await self._sleep(self._interval_s)
                if self._draining:
                    logger.debug("vk.queue.tick_skipped", pending=len(self._pending))
                    continue
                self._draining = True
                tg.start_soon(self._drain_and_release)

    async def _drain_and_release(self) -> int:
        try:
            return await self._drain()
        except Exception as exc:
            logger.warning(
                "vk.queue.tick_failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return 0
        finally:
            self._draining = False

    async def _drain(self) -> int:
        processed = 0
        while processed < self._quota and self._pending:
            call = self._pending.popleft()
            processed += 1
            await self._execute(call)
        return processed

    async def _execute(self, call: QueuedCall) -> None:
        try:
            payload = await self._transport(call.method, call.params)
            result = unwrap_response(call.method, payload)
        except ApiCallError as exc:
            call.set_error(exc)
        except Exception as exc:
            logger.warning(
                "vk.queue.transport_failed",
                method=call.method,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            call.set_error(
                ApiCallError(
                    call.method,
                    f"An API call to method '{call.method}' failed: {exc}",
                )
            )
        else:
            call.set_result(result)
