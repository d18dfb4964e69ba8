"""Deadline bot: spreadsheet-backed task tracking with chat notifications."""

__version__ = "0.1.0"
