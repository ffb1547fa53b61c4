import anyio
import pytest

from vkbot.events import EventKind
from vkbot.stats import Stats, format_uptime


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "0s"),
        (59.9, "59s"),
        (60, "1m 0s"),
        (3 * 3600 + 5, "3h 0m 5s"),
        (86400 + 2 * 3600 + 3 * 60 + 4, "1d 2h 3m 4s"),
        (365 * 86400 + 1, "1y 0d 0h 0m 1s"),
    ],
)
def test_format_uptime(seconds: float, expected: str) -> None:
    assert format_uptime(seconds) == expected


def test_internal_events_do_not_count_as_received() -> None:
    stats = Stats()

    stats.record_received("message_new")
    stats.record_received(EventKind.START)
    stats.record_received("no_match")
    stats.record_received("handler_error")
    stats.record_received("message_reply")
    stats.record_sent()

    assert stats.rx == 2
    assert stats.tx == 1
    assert stats.count("message_new") == 1
    assert stats.count("start") == 1
    assert stats.count(EventKind.HANDLER_ERROR) == 1


def test_unknown_event_is_counted() -> None:
    stats = Stats()

    stats.record_received("group_join")

    assert stats.rx == 1
    assert stats.count("group_join") == 1


def test_render() -> None:
    stats = Stats()
    for kind in ("message_new", "message_new", "message_allow", "message_edit"):
        stats.record_received(kind)
    stats.record_received("service_action")
    stats.record_sent()

    assert stats.render() == (
        "rx:4 tx:1 | allow/deny:1/0 typing:0 new:2(start:0 action:1) edit:1"
        " | reply:0 | no_match:0 err:0"
    )


def test_snapshot_only_when_changed() -> None:
    stats = Stats()

    first = stats.snapshot()
    assert first is not None
    assert stats.snapshot() is None

    stats.record_sent()
    assert stats.snapshot() == first.replace("tx:0", "tx:1")
    assert stats.log_snapshot() is False


def test_uptime_uses_clock() -> None:
    now = [100.0]
    stats = Stats(clock=lambda: now[0])

    now[0] = 100.0 + 3661

    assert stats.uptime() == "1h 1m 1s"


@pytest.mark.anyio
async def test_run_logs_every_interval() -> None:
    delays: list[float] = []
    done = anyio.Event()

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)
        if len(delays) >= 3:
            done.set()
            await anyio.sleep_forever()

    stats = Stats(interval_s=2.5, sleep=fake_sleep)

    async with anyio.create_task_group() as tg:
        await tg.start(stats.run)
        with anyio.fail_after(1):
            await done.wait()
        tg.cancel_scope.cancel()

    assert delays == [2.5, 2.5, 2.5]
    assert stats.previous == stats.render()
