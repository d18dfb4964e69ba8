# src/deadline_bot/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.cache import Cache
from .ports import Store


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    store: Store
    cache: Cache
