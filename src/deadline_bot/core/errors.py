# src/deadline_bot/core/errors.py

from __future__ import annotations

"""
Error taxonomy.

Store and Notifier errors are caught per item inside the polling drivers and
logged; they never stop a cycle. ConfigError is the only fatal one and is
raised before any driver starts.
"""


class DeadlineBotError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(DeadlineBotError):
    """Required settings are missing or invalid."""


class StoreError(DeadlineBotError):
    """Any failure talking to the backing spreadsheet."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class StoreVerificationError(StoreError):
    """A write reported success but re-reading shows it did not take effect."""


class DeliveryError(DeadlineBotError):
    """A message could not be delivered to one recipient."""

    def __init__(self, recipient: str, reason: str) -> None:
        super().__init__(f"delivery to {recipient} failed: {reason}")
        self.recipient = recipient
        self.reason = reason
