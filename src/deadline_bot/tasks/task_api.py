# src/deadline_bot/tasks/task_api.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from ..core.errors import StoreError
from ..core.ports import Store
from .accounting import delete_task_row, record_completion
from .cache import Cache
from .task_models import (
    DEFAULT_LOCAL_TZ,
    CacheKey,
    CompletionLogEntry,
    CompletionRecord,
    LeaderboardEntry,
    Task,
    format_deadline,
    parse_deadline,
)
from .task_reads import fetch_completions, fetch_tasks

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CompletionResult:
    task: Task
    completed_count: int | None
    logged: bool
    deleted: bool


def local_timestamp(now: datetime, tz: tzinfo = DEFAULT_LOCAL_TZ) -> str:
    """Completion-log stamp, e.g. '2024-5-1 09:05:00' (month/day not zero-padded)."""
    local = now.astimezone(tz)
    return f"{local.year}-{local.month}-{local.day} {local:%H:%M:%S}"


def list_user_tasks(store: Store, cache: Cache | None, owner_id: str) -> list[Task]:
    """Open, well-formed tasks of one owner in sheet order."""
    return [t for t in fetch_tasks(store, cache) if t.is_valid and t.owner_id == owner_id]


def add_task(
    store: Store,
    name: str,
    deadline: date | datetime,
    owner_id: str,
    *,
    cache: Cache | None = None,
    tz: tzinfo = DEFAULT_LOCAL_TZ,
) -> Task:
    name = (name or "").strip()
    owner_id = (owner_id or "").strip()
    if not name or not owner_id:
        raise ValueError("task name and owner are required")

    raw = format_deadline(deadline)
    task = Task(name=name, deadline=parse_deadline(raw, tz), owner_id=owner_id, raw_deadline=raw)
    try:
        store.append_task(task)
    finally:
        if cache is not None:
            cache.invalidate(CacheKey.TASKS)
    logger.info("Added task name=%r deadline=%s owner=%s", name, raw, owner_id)
    return task


def complete_task(
    store: Store,
    owner_id: str,
    *,
    cache: Cache | None = None,
    now: datetime | None = None,
    tz: tzinfo = DEFAULT_LOCAL_TZ,
) -> CompletionResult | None:
    """
    Complete the owner's first open task.

    Steps: bump the completed counter, append to the completion log, delete the
    task row (with read-back verification). The log append and the delete are
    attempted even if an earlier step failed; the result says what happened.
    Returns None when the owner has no open task.
    """
    tasks = list_user_tasks(store, cache, owner_id)
    if not tasks:
        return None
    task = tasks[0]
    now_dt = now or datetime.now(tz)

    count = record_completion(store, owner_id, cache=cache)

    logged = True
    entry = CompletionLogEntry(
        task_name=task.name,
        owner_id=owner_id,
        completed_at_local=local_timestamp(now_dt, tz),
    )
    try:
        store.append_completion_log(entry)
    except StoreError:
        logger.exception("Completion log append failed task=%r owner=%s", task.name, owner_id)
        logged = False

    deleted = True
    try:
        delete_task_row(store, task.name, owner_id, cache=cache)
    except StoreError:
        logger.exception("Task delete failed task=%r owner=%s", task.name, owner_id)
        deleted = False

    return CompletionResult(task=task, completed_count=count, logged=logged, deleted=deleted)


def user_stats(store: Store, cache: Cache | None, owner_id: str) -> CompletionRecord:
    return fetch_completions(store, cache).get(owner_id) or CompletionRecord(owner_id=owner_id)


def leaderboard(store: Store, cache: Cache | None) -> list[LeaderboardEntry]:
    """Everyone with a completion row, best score first (score = 5*completed - 6*overdue)."""
    entries = [
        LeaderboardEntry(owner_id=r.owner_id, completed=r.completed, overdue=r.overdue)
        for r in fetch_completions(store, cache).values()
    ]
    entries.sort(key=lambda e: (-e.score, e.owner_id))
    return entries
