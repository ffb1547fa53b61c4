from typing import Any

import anyio
import pytest

from vkbot.api import ApiCallError, CallQueue, unwrap_response
from tests.vk_fakes import _FakeClient, drain_when_ready

QUOTA = 20


def test_quota_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CallQueue(_FakeClient().call, quota=0)


def test_unwrap_response_success() -> None:
    assert unwrap_response("users.get", {"response": [{"id": 1}]}) == [{"id": 1}]
    assert unwrap_response("messages.send", {"response": 0}) == 0


def test_unwrap_response_provider_error() -> None:
    with pytest.raises(ApiCallError) as exc_info:
        unwrap_response(
            "messages.send",
            {"error": {"error_code": 901, "error_msg": "Can't send messages"}},
        )

    assert exc_info.value.code == 901
    assert str(exc_info.value) == (
        "An API call to method 'messages.send' failed due to an API error "
        "#901: Can't send messages"
    )


@pytest.mark.parametrize(
    "payload",
    [{"something": "else"}, {"error": {"error_msg": "no code"}}, ["not", "a", "dict"]],
)
def test_unwrap_response_unknown_error(payload: Any) -> None:
    with pytest.raises(ApiCallError) as exc_info:
        unwrap_response("users.get", payload)

    assert exc_info.value.code is None
    assert str(exc_info.value).startswith(
        "An API call to method 'users.get' failed due to an unknown API error. "
        "The API responded with: "
    )


@pytest.mark.anyio
async def test_drain_respects_quota_and_order() -> None:
    client = _FakeClient()
    queue = CallQueue(client.call, quota=QUOTA)
    calls = [queue.schedule("users.get", {"n": i}) for i in range(QUOTA * 2 + 1)]

    assert await queue.drain_once() == QUOTA
    assert [params["n"] for _, params in client.calls] == list(range(QUOTA))
    assert all(call.settled for call in calls[:QUOTA])
    assert not any(call.settled for call in calls[QUOTA:])

    assert await queue.drain_once() == QUOTA
    assert await queue.drain_once() == 1
    assert await queue.drain_once() == 0

    assert [params["n"] for _, params in client.calls] == list(range(QUOTA * 2 + 1))
    assert len(queue) == 0


@pytest.mark.anyio
async def test_call_returns_response() -> None:
    client = _FakeClient({"users.get": {"response": [{"id": 7}]}})
    queue = CallQueue(client.call)

    async with anyio.create_task_group() as tg:
        tg.start_soon(drain_when_ready, queue)
        result = await queue.call("users.get", {"user_ids": "7"})

    assert result == [{"id": 7}]
    assert client.calls == [("users.get", {"user_ids": "7"})]


@pytest.mark.anyio
async def test_provider_error_rejects_only_that_call() -> None:
    client = _FakeClient(
        {"messages.send": {"error": {"error_code": 7, "error_msg": "Permission denied"}}}
    )
    queue = CallQueue(client.call)
    failed = queue.schedule("messages.send", {"peer_id": "1"})
    ok = queue.schedule("users.get")

    await queue.drain_once()

    with pytest.raises(ApiCallError, match="#7: Permission denied"):
        await failed.wait()
    assert await ok.wait() == 1


@pytest.mark.anyio
async def test_transport_exception_rejects_only_that_call() -> None:
    client = _FakeClient({"messages.send": RuntimeError("connection reset")})
    queue = CallQueue(client.call)
    failed = queue.schedule("messages.send")
    ok = queue.schedule("users.get")

    assert await queue.drain_once() == 2

    with pytest.raises(ApiCallError, match="connection reset"):
        await failed.wait()
    assert await ok.wait() == 1


@pytest.mark.anyio
async def test_overlapping_tick_is_skipped() -> None:
    release = anyio.Event()
    entered = anyio.Event()

    async def slow_transport(method: str, params: dict[str, Any]) -> Any:
        entered.set()
        await release.wait()
        return {"response": method}

    queue = CallQueue(slow_transport, quota=1)
    first = queue.schedule("first")
    second = queue.schedule("second")

    async with anyio.create_task_group() as tg:
        tg.start_soon(queue.drain_once)
        await entered.wait()

        assert queue.draining
        assert await queue.drain_once() == 0
        assert not second.settled

        release.set()

    assert not queue.draining
    assert await first.wait() == "first"
    assert await queue.drain_once() == 1
    assert await second.wait() == "second"


@pytest.mark.anyio
async def test_run_drains_on_each_tick() -> None:
    client = _FakeClient()
    ticks: list[float] = []
    tick_seen = anyio.Event()

    async def fake_sleep(delay: float) -> None:
        ticks.append(delay)
        if len(ticks) > 2:
            tick_seen.set()
            await anyio.sleep_forever()
        await anyio.sleep(0)

    queue = CallQueue(client.call, quota=2, interval_s=0.5, sleep=fake_sleep)
    calls = [queue.schedule("users.get", {"n": i}) for i in range(3)]

    async with anyio.create_task_group() as tg:
        await tg.start(queue.run)
        with anyio.fail_after(1):
            await tick_seen.wait()
            for call in calls:
                await call.wait()
        tg.cancel_scope.cancel()

    assert ticks[:2] == [0.5, 0.5]
    assert [params["n"] for _, params in client.calls] == [0, 1, 2]
