# src/deadline_bot/tasks/reconciler.py

from __future__ import annotations

"""
Reconciler.

Pure decision logic over freshly fetched sheet state:
- classify_tasks: which tasks deserve a "new", "deadline soon" or "overdue" notice
- diff_completions: which completion counters went up since the last poll
- dedupe_rows: restore one-row-per-key before any full-table write-back

Nothing here talks to the Store or the Notifier.
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, TypeVar

from .task_models import CompletionIncrement, CompletionRecord, Task

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOOKBACK = timedelta(minutes=10)
DEFAULT_HORIZON_START = timedelta(hours=11)
DEFAULT_HORIZON_END = timedelta(hours=12)


@dataclass(slots=True)
class TaskClassification:
    newly_assigned: list[Task] = field(default_factory=list)
    approaching_deadline: list[Task] = field(default_factory=list)
    overdue: list[Task] = field(default_factory=list)

    def direct_notices(self) -> list[tuple[Task, bool]]:
        """
        Tasks to DM about, each once, as (task, is_new).

        A task that is both newly assigned and approaching is reported as new.
        """
        out: list[tuple[Task, bool]] = []
        seen: set[tuple[str, str]] = set()
        for task, is_new in [(t, True) for t in self.newly_assigned] + [
            (t, False) for t in self.approaching_deadline
        ]:
            if task.identity in seen:
                continue
            seen.add(task.identity)
            out.append((task, is_new))
        return out


def _leading_key(row: Any) -> Any:
    if isinstance(row, CompletionRecord):
        return row.owner_id
    if isinstance(row, Task):
        return row.identity
    return row[0] if row else None


def dedupe_rows(rows: Iterable[T], key: Callable[[T], Any] | None = None) -> list[T]:
    """
    Keep the first row for every key, in input order.

    The default key is the row's leading identity: owner for completion records,
    (name, owner) for tasks, the first cell for plain sequences.
    Rows with an empty key are dropped.
    """
    key_fn = key or _leading_key
    seen: set[Any] = set()
    out: list[T] = []
    for row in rows:
        k = key_fn(row)
        if not k:
            continue
        if k in seen:
            continue
        seen.add(k)
        out.append(row)
    return out


def classify_tasks(
    tasks: Sequence[Task],
    now: datetime,
    *,
    lookback: timedelta = DEFAULT_LOOKBACK,
    horizon_start: timedelta = DEFAULT_HORIZON_START,
    horizon_end: timedelta = DEFAULT_HORIZON_END,
) -> TaskClassification:
    """
    Split tasks into newly assigned / approaching deadline / overdue.

    - newly assigned: now - lookback <= deadline <= now. "New" is judged from the
      deadline value, not from when the row was added to the sheet.
    - approaching: now + horizon_start <= deadline <= now + horizon_end. A deadline
      that slips past this window between two polls is never reported.
    - overdue: now > deadline (strict).

    The checks are independent, so an externally edited deadline can land in more
    than one list. Invalid rows are skipped and duplicate (name, owner) rows collapse
    to the first one.
    """
    result = TaskClassification()
    valid: list[Task] = []
    for task in tasks:
        if not task.is_valid:
            logger.warning(
                "Skipping invalid task row name=%r deadline=%r owner=%r",
                task.name,
                task.raw_deadline,
                task.owner_id,
            )
            continue
        valid.append(task)

    for task in dedupe_rows(valid, key=lambda t: t.identity):
        deadline = task.deadline
        if deadline is None:
            continue

        if now - lookback <= deadline <= now:
            result.newly_assigned.append(task)
        if now + horizon_start <= deadline <= now + horizon_end:
            result.approaching_deadline.append(task)
        if now > deadline:
            result.overdue.append(task)

    return result


def diff_completions(
    previous: Mapping[str, int | CompletionRecord],
    current: Mapping[str, int | CompletionRecord],
) -> list[CompletionIncrement]:
    """
    Completion counters that went up since `previous`.

    A user missing from `previous` counts from zero. Equal or lower counts emit
    nothing; a lower count (manual edit) just becomes the new baseline.
    """
    out: list[CompletionIncrement] = []
    for owner_id, cur in current.items():
        cur_count = _completed(cur)
        if owner_id in previous:
            prev_count = _completed(previous[owner_id])
        else:
            prev_count = 0
        if cur_count > prev_count:
            out.append(CompletionIncrement(owner_id=owner_id, previous=prev_count, completed=cur_count))
    return out


def _completed(value: int | CompletionRecord) -> int:
    if isinstance(value, CompletionRecord):
        return value.completed
    return int(value)
