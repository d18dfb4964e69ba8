# src/deadline_bot/tasks/accounting.py

from __future__ import annotations

"""
Overdue / completion accounting.

Every operation is the same read-modify-write against the whole completion
table: read all rows, dedupe by owner, change one record, replace the full
range. The store has no row locks, so two writers racing on the same owner can
lose an update (the last full write wins). Repeated runs of
normalize_overdue_column repair duplicates and garbled cells, but lost
increments stay lost.

Counter updates return None instead of raising when the store fails, so one
bad write does not abort a poll cycle. Callers must treat None as
"count unknown", not as zero.
"""

import logging
from collections.abc import Callable
from dataclasses import replace

from ..core.errors import StoreError, StoreVerificationError
from ..core.ports import Store
from .cache import Cache
from .reconciler import dedupe_rows
from .task_models import CacheKey, CompletionRecord

logger = logging.getLogger(__name__)

COUNT_UNKNOWN = None


def _update_record(
    store: Store,
    owner_id: str,
    change: Callable[[CompletionRecord], CompletionRecord],
    *,
    cache: Cache | None,
) -> CompletionRecord | None:
    try:
        rows = store.list_completions()
    except StoreError:
        logger.exception("Completion table read failed owner=%s", owner_id)
        return COUNT_UNKNOWN

    records = dedupe_rows(rows, key=lambda r: r.owner_id)
    for idx, record in enumerate(records):
        if record.owner_id == owner_id:
            updated = change(record)
            records[idx] = updated
            break
    else:
        updated = change(CompletionRecord(owner_id=owner_id))
        records.append(updated)

    try:
        store.replace_completions(records)
    except StoreError:
        logger.exception("Completion table write failed owner=%s", owner_id)
        return COUNT_UNKNOWN
    finally:
        # The sheet may or may not hold the new rows now; do not serve the old copy.
        if cache is not None:
            cache.invalidate(CacheKey.COMPLETIONS)

    return updated


def record_overdue(store: Store, owner_id: str, *, cache: Cache | None = None) -> int | None:
    """Add one overdue strike for `owner_id` and return the new overdue count."""
    record = _update_record(
        store,
        owner_id,
        lambda r: replace(r, overdue=r.overdue + 1),
        cache=cache,
    )
    if record is None:
        return COUNT_UNKNOWN
    logger.info("Recorded overdue owner=%s overdue=%d", owner_id, record.overdue)
    return record.overdue


def record_completion(
    store: Store,
    owner_id: str,
    delta: int = 1,
    *,
    cache: Cache | None = None,
) -> int | None:
    """Add `delta` completions for `owner_id` and return the new completed count."""
    record = _update_record(
        store,
        owner_id,
        lambda r: replace(r, completed=max(0, r.completed + int(delta))),
        cache=cache,
    )
    if record is None:
        return COUNT_UNKNOWN
    logger.info("Recorded completion owner=%s completed=%d", owner_id, record.completed)
    return record.completed


def normalize_overdue_column(store: Store, *, cache: Cache | None = None) -> bool:
    """
    Repair drift from manual sheet edits.

    Collapses duplicate owner rows (first wins) and rewrites every row as exactly
    three string cells; missing or non-numeric counts become "0". The write is
    unconditional. Running it twice gives the same table as running it once.
    """
    try:
        rows = store.list_completions()
    except StoreError:
        logger.exception("normalize_overdue_column: read failed")
        return False

    # CompletionRecord.from_row already coerced the cells; re-serialising restores the shape.
    records = dedupe_rows(rows, key=lambda r: r.owner_id)

    try:
        store.replace_completions(records)
    except StoreError:
        logger.exception("normalize_overdue_column: write failed")
        return False
    finally:
        if cache is not None:
            cache.invalidate(CacheKey.COMPLETIONS)

    logger.info("Normalized completion table rows=%d (raw=%d)", len(records), len(rows))
    return True


def delete_task_row(store: Store, name: str, owner_id: str, *, cache: Cache | None = None) -> None:
    """
    Remove the (name, owner) task row.

    Read everything, filter, replace the full range, then re-read: if the row is
    still there the write silently failed and StoreVerificationError is raised.
    StoreReadError / StoreWriteError propagate unchanged.
    """
    tasks = store.list_tasks()
    remaining = [t for t in tasks if not (t.name == name and t.owner_id == owner_id)]
    logger.debug("Deleting task name=%r owner=%s rows %d -> %d", name, owner_id, len(tasks), len(remaining))

    try:
        store.replace_tasks(remaining)
    finally:
        if cache is not None:
            cache.invalidate(CacheKey.TASKS)

    verify = store.list_tasks()
    if any(t.name == name and t.owner_id == owner_id for t in verify):
        logger.error("Task deletion verification failed name=%r owner=%s", name, owner_id)
        raise StoreVerificationError(f"task {name!r} for {owner_id} is still present after delete")

    logger.info("Deleted task name=%r owner=%s", name, owner_id)
