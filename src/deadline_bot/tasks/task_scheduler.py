# src/deadline_bot/tasks/task_scheduler.py

from __future__ import annotations

"""
Notification scheduler.

Three independent polling loops on one event loop:
- fast (1 min): diff completion counters and announce increments in the channel
- slow (10 min): DM new / soon-due tasks, post the open-task summary,
  count and DM overdue tasks, then normalize the completion table
- sweeper (30 min): drop expired cache entries

The loops share no lock. They may read and write the store concurrently;
consistency relies on every write being a full-table read/dedupe/replace,
which heals itself on the next run.

Transport details (DM rooms, formatting markup) belong to the notifier.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from ..core.errors import DeliveryError, StoreError
from ..core.ports import Notifier, Store
from .accounting import normalize_overdue_column, record_overdue
from .cache import Cache
from .reconciler import (
    DEFAULT_HORIZON_END,
    DEFAULT_HORIZON_START,
    DEFAULT_LOOKBACK,
    classify_tasks,
    diff_completions,
)
from .task_models import CompletionIncrement, Task
from .task_reads import fetch_completions, fetch_tasks

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _deadline_text(task: Task) -> str:
    return task.raw_deadline or (task.deadline.isoformat() if task.deadline else "?")


def render_new_task(task: Task) -> str:
    # Newly assigned means the deadline passed within the lookback window.
    return f"Deadline just reached: {task.name}\nDeadline: {_deadline_text(task)}"


def render_deadline_soon(task: Task) -> str:
    return f"About 12 hours left: {task.name}\nDeadline: {_deadline_text(task)}"


def render_overdue(task: Task, overdue_count: int | None) -> str:
    count = "unknown" if overdue_count is None else str(overdue_count)
    return (
        f"Deadline missed: {task.name}\n"
        f"Deadline: {_deadline_text(task)}\n"
        f"Your overdue count: {count}"
    )


def render_completion(increment: CompletionIncrement) -> str:
    return f"{increment.owner_id} completed a task! Total completed: {increment.completed}"


def render_task_summary(tasks: Sequence[Task]) -> str | None:
    open_tasks = [t for t in tasks if t.is_valid]
    if not open_tasks:
        return None
    lines = ["Open tasks:"]
    for t in open_tasks:
        lines.append(f"- {t.name} ({t.owner_id}) due {_deadline_text(t)}")
    return "\n".join(lines)


@dataclass(slots=True)
class NotificationState:
    """Last observed completed-count per owner. Replaced wholesale, never patched."""

    completed: dict[str, int] = field(default_factory=dict)
    primed: bool = False


@dataclass(slots=True)
class SlowCycleReport:
    direct_sent: int = 0
    direct_failed: int = 0
    overdue_recorded: int = 0
    overdue_unknown: int = 0
    summary_posted: bool = False
    normalized: bool = False


class NotificationScheduler:
    def __init__(
        self,
        store: Store,
        notifier: Notifier,
        cache: Cache,
        *,
        fast_interval_seconds: float = 60.0,
        slow_interval_seconds: float = 600.0,
        sweep_interval_seconds: float = 1800.0,
        lookback: timedelta = DEFAULT_LOOKBACK,
        horizon_start: timedelta = DEFAULT_HORIZON_START,
        horizon_end: timedelta = DEFAULT_HORIZON_END,
        post_task_summary: bool = True,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.cache = cache
        self.fast_interval_seconds = max(0.01, float(fast_interval_seconds))
        self.slow_interval_seconds = max(0.01, float(slow_interval_seconds))
        self.sweep_interval_seconds = max(0.01, float(sweep_interval_seconds))
        self.lookback = lookback
        self.horizon_start = horizon_start
        self.horizon_end = horizon_end
        self.post_task_summary = post_task_summary
        self._clock = clock
        self._state = NotificationState()

    @property
    def state(self) -> NotificationState:
        return self._state

    # ---- fast driver ----

    def prime(self) -> bool:
        """Take the current completion snapshot as baseline without announcing anything."""
        try:
            snapshot = fetch_completions(self.store, self.cache)
        except StoreError:
            logger.exception("Initial completion snapshot failed")
            return False
        self._state = NotificationState(
            completed={k: r.completed for k, r in snapshot.items()},
            primed=True,
        )
        logger.info("Completion baseline loaded for %d owners", len(snapshot))
        return True

    async def run_fast_cycle(self) -> list[CompletionIncrement]:
        try:
            snapshot = fetch_completions(self.store, self.cache)
        except StoreError:
            # Keep the old baseline: an empty one would re-announce everybody next time.
            logger.exception("Completion poll: fetch failed, keeping previous snapshot")
            return []

        current = {k: r.completed for k, r in snapshot.items()}

        if not self._state.primed:
            self._state = NotificationState(completed=current, primed=True)
            logger.info("Completion baseline loaded for %d owners", len(current))
            return []

        increments = diff_completions(self._state.completed, current)
        announced: list[CompletionIncrement] = []
        try:
            for inc in increments:
                try:
                    await self.notifier.send_channel(render_completion(inc))
                    announced.append(inc)
                    logger.info("Announced completion owner=%s completed=%d", inc.owner_id, inc.completed)
                except DeliveryError as e:
                    logger.warning("Completion announcement not delivered owner=%s: %s", inc.owner_id, e.reason)
                except Exception:
                    logger.exception("Completion announcement failed owner=%s", inc.owner_id)
        finally:
            # Unconditional: a failed send must not turn into a re-announcement storm.
            self._state = NotificationState(completed=current, primed=True)

        return announced

    # ---- slow driver ----

    async def _send_direct(self, owner_id: str, text: str, report: SlowCycleReport) -> None:
        try:
            await self.notifier.send_direct(owner_id, text)
            report.direct_sent += 1
        except DeliveryError as e:
            report.direct_failed += 1
            logger.warning("DM to %s not delivered: %s", owner_id, e.reason)
        except Exception:
            report.direct_failed += 1
            logger.exception("DM to %s failed", owner_id)

    async def run_slow_cycle(self) -> SlowCycleReport:
        report = SlowCycleReport()
        now = self._clock()

        try:
            tasks = fetch_tasks(self.store, self.cache)
        except StoreError:
            logger.exception("Task poll: fetch failed")
            tasks = []

        classification = classify_tasks(
            tasks,
            now,
            lookback=self.lookback,
            horizon_start=self.horizon_start,
            horizon_end=self.horizon_end,
        )
        logger.info(
            "Task poll: %d rows, new=%d soon=%d overdue=%d",
            len(tasks),
            len(classification.newly_assigned),
            len(classification.approaching_deadline),
            len(classification.overdue),
        )

        for task, is_new in classification.direct_notices():
            text = render_new_task(task) if is_new else render_deadline_soon(task)
            await self._send_direct(task.owner_id, text, report)

        if self.post_task_summary:
            summary = render_task_summary(tasks)
            if summary:
                try:
                    await self.notifier.send_channel(summary)
                    report.summary_posted = True
                except DeliveryError as e:
                    logger.warning("Task summary not delivered: %s", e.reason)
                except Exception:
                    logger.exception("Task summary failed")

        for task in classification.overdue:
            try:
                count = record_overdue(self.store, task.owner_id, cache=self.cache)
            except Exception:
                logger.exception("Overdue accounting crashed owner=%s", task.owner_id)
                count = None
            if count is None:
                report.overdue_unknown += 1
            else:
                report.overdue_recorded += 1
            await self._send_direct(task.owner_id, render_overdue(task, count), report)

        try:
            report.normalized = normalize_overdue_column(self.store, cache=self.cache)
        except Exception:
            logger.exception("Completion table normalization crashed")

        return report

    # ---- cache sweeper ----

    async def run_sweep_cycle(self) -> int:
        return self.cache.sweep()


async def _run_periodic(
    name: str,
    cycle: Callable[[], Awaitable[object]],
    interval_seconds: float,
) -> None:
    """
    Run `cycle` forever, sleeping `interval_seconds` between runs.

    Errors are logged and the loop goes on. To stop it, cancel the task.
    """
    logger.info("%s loop started (every %.0fs)", name, interval_seconds)
    while True:
        try:
            await cycle()
        except Exception:
            logger.exception("%s cycle crashed", name)
        await asyncio.sleep(interval_seconds)


async def run_scheduler(scheduler: NotificationScheduler, *, prime: bool = True) -> None:
    """
    Run the fast, slow and sweeper loops until cancelled.

    The loops are deliberately uncoordinated; see the module docstring.
    """
    if prime:
        scheduler.prime()

    await asyncio.gather(
        _run_periodic("completion-poll", scheduler.run_fast_cycle, scheduler.fast_interval_seconds),
        _run_periodic("task-poll", scheduler.run_slow_cycle, scheduler.slow_interval_seconds),
        _run_periodic("cache-sweep", scheduler.run_sweep_cycle, scheduler.sweep_interval_seconds),
    )
