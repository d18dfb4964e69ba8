# src/deadline_bot/tasks/task_models.py

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import StrEnum

DEFAULT_LOCAL_TZ = timezone(timedelta(hours=7))

# Extra layouts seen in hand-edited sheets (ISO is tried first).
_DEADLINE_FORMATS = ("%d-%m-%y", "%d-%m-%Y", "%d/%m/%Y", "%d/%m/%y", "%Y/%m/%d")


class CacheKey(StrEnum):
    TASKS = "tasks"
    COMPLETIONS = "completions"


def parse_deadline(raw: object, tz: tzinfo = DEFAULT_LOCAL_TZ) -> datetime | None:
    """
    Parse a deadline cell into an aware datetime.

    Naive values (including plain dates, which mean midnight) are read in `tz`.
    Returns None for empty or unparseable cells.
    """
    text = str(raw or "").strip()
    if not text:
        return None

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        for fmt in _DEADLINE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def format_deadline(deadline: date | datetime) -> str:
    if isinstance(deadline, datetime):
        if deadline.hour == deadline.minute == deadline.second == 0:
            return deadline.date().isoformat()
        return deadline.strftime("%Y-%m-%d %H:%M")
    return deadline.isoformat()


def parse_count(raw: object) -> int:
    """Non-negative integer from a sheet cell; anything else counts as 0."""
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return 0
    return max(0, value)


def _cell(row: Sequence[object], idx: int) -> str:
    if idx >= len(row):
        return ""
    value = row[idx]
    return "" if value is None else str(value).strip()


@dataclass(slots=True, frozen=True)
class Task:
    name: str
    deadline: datetime | None
    owner_id: str
    raw_deadline: str = ""

    @property
    def identity(self) -> tuple[str, str]:
        return (self.name, self.owner_id)

    @property
    def is_valid(self) -> bool:
        return bool(self.name and self.owner_id and self.deadline is not None)

    @classmethod
    def from_row(cls, row: Sequence[object], tz: tzinfo = DEFAULT_LOCAL_TZ) -> Task:
        raw_deadline = _cell(row, 1)
        return cls(
            name=_cell(row, 0),
            deadline=parse_deadline(raw_deadline, tz),
            owner_id=_cell(row, 2),
            raw_deadline=raw_deadline,
        )

    def to_row(self) -> list[str]:
        # Keep the sheet's own spelling of the deadline when we have it.
        deadline = self.raw_deadline
        if not deadline and self.deadline is not None:
            deadline = format_deadline(self.deadline)
        return [self.name, deadline, self.owner_id]


@dataclass(slots=True, frozen=True)
class CompletionRecord:
    owner_id: str
    completed: int = 0
    overdue: int = 0

    @classmethod
    def from_row(cls, row: Sequence[object]) -> CompletionRecord:
        return cls(
            owner_id=_cell(row, 0),
            completed=parse_count(_cell(row, 1)),
            overdue=parse_count(_cell(row, 2)),
        )

    def to_row(self) -> list[str]:
        return [self.owner_id, str(self.completed), str(self.overdue)]


@dataclass(slots=True, frozen=True)
class CompletionLogEntry:
    task_name: str
    owner_id: str
    completed_at_local: str

    def to_row(self) -> list[str]:
        return [self.task_name, self.owner_id, self.completed_at_local]


@dataclass(slots=True, frozen=True)
class CompletionIncrement:
    owner_id: str
    previous: int
    completed: int


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
    owner_id: str
    completed: int
    overdue: int

    @property
    def score(self) -> int:
        return self.completed * 5 - self.overdue * 6
