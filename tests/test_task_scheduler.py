# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from deadline_bot.tasks.cache import Cache
from deadline_bot.tasks.task_scheduler import NotificationScheduler, run_scheduler

from .conftest import deadline_cell
from .fakes import FakeNotifier, FakeStore


def _scheduler(store: FakeStore, notifier: FakeNotifier, cache: Cache, now: datetime, **kw) -> NotificationScheduler:
    return NotificationScheduler(store, notifier, cache, clock=lambda: now, **kw)


@pytest.mark.asyncio
async def test_fast_cycle_announces_increments_once(store, notifier, now) -> None:
    cache = Cache(default_ttl=0)  # every poll hits the store
    store.completion_rows = [["@a:x", "1", "0"]]
    sched = _scheduler(store, notifier, cache, now)
    assert sched.prime() is True

    assert await sched.run_fast_cycle() == []

    store.completion_rows = [["@a:x", "2", "0"], ["@b:x", "1", "0"]]
    cache.clear()
    announced = await sched.run_fast_cycle()
    assert [(i.owner_id, i.completed) for i in announced] == [("@a:x", 2), ("@b:x", 1)]
    assert len(notifier.channel) == 2

    cache.clear()
    assert await sched.run_fast_cycle() == []
    assert len(notifier.channel) == 2
    assert sched.state.completed == {"@a:x": 2, "@b:x": 1}


@pytest.mark.asyncio
async def test_unprimed_scheduler_takes_first_fetch_as_baseline(store, notifier, cache, now) -> None:
    store.completion_rows = [["@a:x", "5", "0"]]
    sched = _scheduler(store, notifier, cache, now)
    assert await sched.run_fast_cycle() == []
    assert notifier.channel == []
    assert sched.state.primed


@pytest.mark.asyncio
async def test_fast_cycle_replaces_state_even_when_delivery_fails(store, notifier, cache, now) -> None:
    sched = _scheduler(store, notifier, cache, now)
    sched.prime()

    store.completion_rows = [["@a:x", "1", "0"]]
    cache.clear()
    notifier.channel_down = True
    assert await sched.run_fast_cycle() == []
    assert sched.state.completed == {"@a:x": 1}

    notifier.channel_down = False
    cache.clear()
    assert await sched.run_fast_cycle() == []
    assert notifier.channel == []


@pytest.mark.asyncio
async def test_fast_cycle_keeps_snapshot_when_read_fails(store, notifier, cache, now) -> None:
    store.completion_rows = [["@a:x", "3", "0"]]
    sched = _scheduler(store, notifier, cache, now)
    sched.prime()

    cache.clear()
    store.fail_completion_read = True
    assert await sched.run_fast_cycle() == []
    assert sched.state.completed == {"@a:x": 3}

    store.fail_completion_read = False
    assert await sched.run_fast_cycle() == []
    assert notifier.channel == []


@pytest.mark.asyncio
async def test_fast_cycle_reads_through_cache(store, notifier, cache, now) -> None:
    sched = _scheduler(store, notifier, cache, now)
    sched.prime()
    await sched.run_fast_cycle()
    await sched.run_fast_cycle()
    assert store.reads["completions"] == 1


@pytest.mark.asyncio
async def test_slow_cycle_sends_each_notice_once(store, notifier, cache, now) -> None:
    store.task_rows = [
        ["Fresh", deadline_cell(-timedelta(minutes=5)), "@a:x"],
        ["Soon", deadline_cell(timedelta(hours=11, minutes=30)), "@b:x"],
        ["Soon", deadline_cell(timedelta(hours=11, minutes=30)), "@b:x"],
        ["Later", deadline_cell(timedelta(days=3)), "@c:x"],
        ["Broken", "not a date", "@c:x"],
    ]
    sched = _scheduler(store, notifier, cache, now, post_task_summary=False)
    report = await sched.run_slow_cycle()

    texts = {user: text for user, text in notifier.direct}
    # "Fresh" is both just due and overdue: one deadline-reached DM plus one overdue DM.
    assert [u for u, _ in notifier.direct] == ["@a:x", "@b:x", "@a:x"]
    assert texts["@b:x"].startswith("About 12 hours left: Soon")
    assert notifier.direct[0][1].startswith("Deadline just reached: Fresh")
    assert "Your overdue count: 1" in notifier.direct[2][1]
    assert report.direct_sent == 3
    assert report.overdue_recorded == 1
    assert report.normalized is True
    assert store.completion_rows == [["@a:x", "0", "1"]]


@pytest.mark.asyncio
async def test_slow_cycle_overdue_counts_accrue_each_cycle(store, notifier, cache, now) -> None:
    store.task_rows = [["Late", deadline_cell(-timedelta(days=1)), "@a:x"]]
    store.completion_rows = [["@a:x", "4", "2"]]
    sched = _scheduler(store, notifier, cache, now, post_task_summary=False)
    await sched.run_slow_cycle()
    await sched.run_slow_cycle()
    assert store.completion_rows == [["@a:x", "4", "4"]]
    assert "Your overdue count: 4" in notifier.direct[-1][1]


@pytest.mark.asyncio
async def test_slow_cycle_continues_past_unreachable_user(store, notifier, cache, now) -> None:
    store.task_rows = [
        ["A", deadline_cell(timedelta(hours=11, minutes=15)), "@blocked:x"],
        ["B", deadline_cell(timedelta(hours=11, minutes=45)), "@ok:x"],
    ]
    notifier.unreachable.add("@blocked:x")
    sched = _scheduler(store, notifier, cache, now, post_task_summary=False)
    report = await sched.run_slow_cycle()
    assert notifier.direct == [("@ok:x", notifier.direct[0][1])]
    assert report.direct_failed == 1
    assert report.direct_sent == 1


@pytest.mark.asyncio
async def test_slow_cycle_overdue_count_unknown_when_store_write_fails(store, notifier, cache, now) -> None:
    store.task_rows = [["Late", deadline_cell(-timedelta(hours=2)), "@a:x"]]
    store.fail_completion_write = True
    sched = _scheduler(store, notifier, cache, now, post_task_summary=False)
    report = await sched.run_slow_cycle()
    assert report.overdue_unknown == 1
    assert report.normalized is False
    assert "Your overdue count: unknown" in notifier.direct[0][1]


@pytest.mark.asyncio
async def test_slow_cycle_still_normalizes_when_task_read_fails(store, notifier, cache, now) -> None:
    store.fail_task_read = True
    store.completion_rows = [["@a:x", "1", "0"], ["@a:x", "2", "2"]]
    sched = _scheduler(store, notifier, cache, now)
    report = await sched.run_slow_cycle()
    assert report.normalized is True
    assert store.completion_rows == [["@a:x", "1", "0"]]
    assert notifier.direct == []


@pytest.mark.asyncio
async def test_slow_cycle_posts_task_summary(store, notifier, cache, now) -> None:
    store.task_rows = [["Later", deadline_cell(timedelta(days=3)), "@c:x"]]
    sched = _scheduler(store, notifier, cache, now)
    report = await sched.run_slow_cycle()
    assert report.summary_posted is True
    assert notifier.channel and "Later" in notifier.channel[0]


@pytest.mark.asyncio
async def test_run_scheduler_loops_until_cancelled(store, notifier, now) -> None:
    cache = Cache(default_ttl=0)
    store.completion_rows = [["@a:x", "0", "0"]]
    sched = _scheduler(
        store,
        notifier,
        cache,
        now,
        fast_interval_seconds=0.01,
        slow_interval_seconds=0.01,
        sweep_interval_seconds=0.01,
    )

    runner = asyncio.create_task(run_scheduler(sched))
    await asyncio.sleep(0.02)
    store.completion_rows = [["@a:x", "1", "0"]]
    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert any("@a:x completed a task" in text for text in notifier.channel)
    assert store.writes["completions"] >= 1
