# src/deadline_bot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reconciliation and scheduling code depends on these Protocols instead of
the Google Sheets / Matrix implementations, so both are swappable in tests.
"""

from collections.abc import Sequence
from typing import Awaitable, Protocol

from ..tasks.task_models import CompletionLogEntry, CompletionRecord, Task


class Store(Protocol):
    """
    Tabular task/completion store.

    Writes are full-range replaces (clear + set); there is no per-row patch.
    Nothing here is transactional and other writers may edit the sheet at any time.
    Implementations raise StoreReadError / StoreWriteError.
    """

    def list_tasks(self) -> list[Task]: ...
    def replace_tasks(self, tasks: Sequence[Task]) -> None: ...
    def append_task(self, task: Task) -> None: ...

    def list_completions(self) -> list[CompletionRecord]: ...
    def replace_completions(self, records: Sequence[CompletionRecord]) -> None: ...

    def append_completion_log(self, entry: CompletionLogEntry) -> None: ...


class Notifier(Protocol):
    """
    Outbound messages.

    send_direct raises DeliveryError when the recipient cannot be reached
    (unknown user, DMs refused); callers log and move on.
    """

    def send_direct(self, user_id: str, text: str) -> Awaitable[None]: ...
    def send_channel(self, text: str) -> Awaitable[None]: ...
