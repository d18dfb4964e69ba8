# src/deadline_bot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the Sheets store, the read cache and the scheduler together.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import Notifier, Store
from ..core.state import AppState
from ..storage.sheets_store import GoogleSheetsStore
from ..tasks.cache import Cache
from ..tasks.task_scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, store: Store | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the store) injectable makes the app easier to test and
    avoids hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if store is None:
        store = GoogleSheetsStore.from_settings(settings)

    return AppState(
        settings=settings,
        store=store,
        cache=Cache(default_ttl=settings.cache_ttl_seconds),
    )


def create_scheduler(state: AppState, notifier: Notifier) -> NotificationScheduler:
    settings = state.settings
    return NotificationScheduler(
        state.store,
        notifier,
        state.cache,
        fast_interval_seconds=settings.completion_poll_seconds,
        slow_interval_seconds=settings.task_poll_seconds,
        sweep_interval_seconds=settings.cache_sweep_seconds,
        lookback=settings.new_task_lookback,
        horizon_start=settings.reminder_window_start,
        horizon_end=settings.reminder_window_end,
        post_task_summary=settings.post_task_summary,
    )
