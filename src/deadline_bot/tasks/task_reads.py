# src/deadline_bot/tasks/task_reads.py

from __future__ import annotations

import logging

from ..core.ports import Store
from .cache import Cache
from .reconciler import dedupe_rows
from .task_models import CacheKey, CompletionRecord, Task

logger = logging.getLogger(__name__)


def fetch_tasks(store: Store, cache: Cache | None = None) -> list[Task]:
    """
    Task rows through the cache.

    Store errors propagate and nothing is cached for them, so the next caller
    retries the remote read.
    """
    if cache is not None:
        cached = cache.get(CacheKey.TASKS)
        if cached is not None:
            return list(cached)

    tasks = store.list_tasks()
    logger.debug("Fetched %d task rows", len(tasks))
    if cache is not None:
        cache.set(CacheKey.TASKS, tuple(tasks))
    return tasks


def fetch_completions(store: Store, cache: Cache | None = None) -> dict[str, CompletionRecord]:
    """Completion records keyed by owner (first row wins on duplicates)."""
    if cache is not None:
        cached = cache.get(CacheKey.COMPLETIONS)
        if cached is not None:
            return dict(cached)

    records = dedupe_rows(store.list_completions(), key=lambda r: r.owner_id)
    snapshot = {r.owner_id: r for r in records}
    logger.debug("Fetched %d completion records", len(snapshot))
    if cache is not None:
        cache.set(CacheKey.COMPLETIONS, dict(snapshot))
    return snapshot
