# tests/test_task_api.py

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from deadline_bot.tasks.cache import Cache
from deadline_bot.tasks.task_api import (
    add_task,
    complete_task,
    leaderboard,
    list_user_tasks,
    local_timestamp,
    user_stats,
)
from deadline_bot.tasks.task_models import DEFAULT_LOCAL_TZ

from .conftest import deadline_cell
from .fakes import FakeStore


def test_local_timestamp_is_utc_plus_seven_without_padding() -> None:
    utc = datetime(2024, 5, 1, 2, 5, 9, tzinfo=timezone.utc)
    assert local_timestamp(utc) == "2024-5-1 09:05:09"


def test_add_task_appends_and_invalidates_cache(store: FakeStore, cache: Cache) -> None:
    cache.set("tasks", ())
    task = add_task(store, " Report ", date(2024, 5, 3), "@a:x", cache=cache)
    assert task.name == "Report"
    assert task.deadline == datetime(2024, 5, 3, tzinfo=DEFAULT_LOCAL_TZ)
    assert store.task_rows == [["Report", "2024-05-03", "@a:x"]]
    assert "tasks" not in cache


def test_add_task_requires_name_and_owner(store: FakeStore) -> None:
    with pytest.raises(ValueError):
        add_task(store, "  ", date(2024, 5, 3), "@a:x")
    with pytest.raises(ValueError):
        add_task(store, "Report", date(2024, 5, 3), "")
    assert store.task_rows == []


def test_list_user_tasks_filters_owner_and_broken_rows(store: FakeStore, cache: Cache) -> None:
    store.task_rows = [
        ["A", "2024-05-02", "@a:x"],
        ["B", "2024-05-02", "@b:x"],
        ["C", "someday", "@a:x"],
    ]
    assert [t.name for t in list_user_tasks(store, cache, "@a:x")] == ["A"]


def test_complete_task_runs_every_step(store: FakeStore, cache: Cache, now: datetime) -> None:
    store.task_rows = [
        ["First", deadline_cell(timedelta(hours=3)), "@a:x"],
        ["Second", deadline_cell(timedelta(hours=5)), "@a:x"],
    ]
    store.completion_rows = [["@a:x", "2", "1"]]

    result = complete_task(store, "@a:x", cache=cache, now=now)

    assert result is not None
    assert result.task.name == "First"
    assert result.completed_count == 3
    assert result.logged and result.deleted
    assert store.completion_rows == [["@a:x", "3", "1"]]
    assert store.log_rows == [["First", "@a:x", "2024-5-1 12:00:00"]]
    assert [r[0] for r in store.task_rows] == ["Second"]


def test_complete_task_without_open_tasks(store: FakeStore) -> None:
    assert complete_task(store, "@nobody:x") is None
    assert store.writes["completions"] == 0


def test_complete_task_reports_partial_failures(store: FakeStore, now: datetime) -> None:
    store.task_rows = [["Only", deadline_cell(timedelta(hours=1)), "@a:x"]]
    store.fail_completion_write = True
    store.fail_log_append = True
    store.drop_task_writes = True

    result = complete_task(store, "@a:x", now=now)

    assert result is not None
    assert result.completed_count is None
    assert result.logged is False
    assert result.deleted is False


def test_user_stats_defaults_to_zero(store: FakeStore, cache: Cache) -> None:
    store.completion_rows = [["@a:x", "4", "1"]]
    assert user_stats(store, cache, "@a:x").completed == 4
    missing = user_stats(store, cache, "@b:x")
    assert (missing.completed, missing.overdue) == (0, 0)


def test_leaderboard_orders_by_score_then_owner(store: FakeStore, cache: Cache) -> None:
    store.completion_rows = [
        ["@low:x", "1", "3"],
        ["@b:x", "2", "0"],
        ["@a:x", "2", "0"],
        ["@top:x", "10", "1"],
    ]
    board = leaderboard(store, cache)
    assert [(e.owner_id, e.score) for e in board] == [
        ("@top:x", 44),
        ("@a:x", 10),
        ("@b:x", 10),
        ("@low:x", -13),
    ]
