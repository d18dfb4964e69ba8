# src/deadline_bot/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time; `validate()` is called by the entry point.
- Legacy variable names (GOOGLE_SHEET_1_ID, CACHE_TTL, ...) keep working as fallbacks.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta, timezone, tzinfo
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .core.errors import ConfigError

ENV_PREFIX = "DEADLINE_BOT"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv() -> None:
    """Load .env from the working directory; real environment variables win."""
    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _legacy_ms(name: str) -> float | None:
    """Legacy duration variables are in milliseconds."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw) / 1000.0
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Google Sheets ----
    tasks_sheet_id: str
    completions_sheet_id: str
    completion_log_sheet_id: str
    google_credentials_file: Optional[Path]
    google_service_account_email: str
    google_private_key: str

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_store_path: Path
    matrix_channel_room: str

    # ---- Polling / cache ----
    completion_poll_seconds: float
    task_poll_seconds: float
    cache_ttl_seconds: float
    cache_sweep_seconds: float

    # ---- Notification windows ----
    new_task_lookback_minutes: float
    reminder_window_start_hours: float
    reminder_window_end_hours: float
    post_task_summary: bool

    # ---- Time ----
    local_utc_offset_hours: float

    @property
    def local_tz(self) -> tzinfo:
        return timezone(timedelta(hours=self.local_utc_offset_hours))

    @property
    def new_task_lookback(self) -> timedelta:
        return timedelta(minutes=self.new_task_lookback_minutes)

    @property
    def reminder_window_start(self) -> timedelta:
        return timedelta(hours=self.reminder_window_start_hours)

    @property
    def reminder_window_end(self) -> timedelta:
        return timedelta(hours=self.reminder_window_end_hours)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "deadline-bot")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/deadline_bot"))

        tasks_sheet_id = (_first_env(_k("TASKS_SHEET_ID"), "GOOGLE_SHEET_1_ID", default="") or "").strip()
        completions_sheet_id = (
            _first_env(_k("COMPLETIONS_SHEET_ID"), "GOOGLE_SHEET_2_ID", default="") or ""
        ).strip()
        completion_log_sheet_id = (
            _first_env(_k("COMPLETION_LOG_SHEET_ID"), "GOOGLE_SHEET_3_ID", default="") or ""
        ).strip()

        creds_raw = _first_env(_k("GOOGLE_CREDENTIALS_FILE"), "GOOGLE_APPLICATION_CREDENTIALS", default=None)
        google_credentials_file = Path(creds_raw).expanduser() if creds_raw else None
        google_service_account_email = (
            _first_env(_k("GOOGLE_SERVICE_ACCOUNT_EMAIL"), "GOOGLE_SERVICE_ACCOUNT_EMAIL", default="") or ""
        ).strip()
        google_private_key = _first_env(_k("GOOGLE_PRIVATE_KEY"), "GOOGLE_PRIVATE_KEY", default="") or ""

        matrix_homeserver = (_first_env(_k("MATRIX_HOMESERVER"), "MATRIX_HOMESERVER", default="") or "").strip()
        matrix_user_id = (_first_env(_k("MATRIX_USER_ID"), "MATRIX_USER_ID", default="") or "").strip()
        matrix_password = (_first_env(_k("MATRIX_PASSWORD"), "MATRIX_PASSWORD", default="") or "").strip()
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")
        matrix_channel_room = (
            _first_env(_k("MATRIX_CHANNEL_ROOM"), "MATRIX_CHANNEL_ROOM", default="") or ""
        ).strip()

        completion_poll_seconds = _env_float(_k("COMPLETION_POLL_SECONDS"), 60.0)
        task_poll_seconds = _env_float(_k("TASK_POLL_SECONDS"), 600.0)
        cache_ttl_seconds = _env_float(_k("CACHE_TTL_SECONDS"), _legacy_ms("CACHE_TTL") or 300.0)
        cache_sweep_seconds = _env_float(
            _k("CACHE_SWEEP_SECONDS"), _legacy_ms("CACHE_CLEANUP_INTERVAL") or 1800.0
        )

        new_task_lookback_minutes = _env_float(_k("NEW_TASK_LOOKBACK_MINUTES"), 10.0)
        reminder_window_start_hours = _env_float(_k("REMINDER_WINDOW_START_HOURS"), 11.0)
        reminder_window_end_hours = _env_float(_k("REMINDER_WINDOW_END_HOURS"), 12.0)
        post_task_summary = _env_bool(_k("POST_TASK_SUMMARY"), True)

        local_utc_offset_hours = _env_float(_k("LOCAL_UTC_OFFSET_HOURS"), 7.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_sheet_id=tasks_sheet_id,
            completions_sheet_id=completions_sheet_id,
            completion_log_sheet_id=completion_log_sheet_id,
            google_credentials_file=google_credentials_file,
            google_service_account_email=google_service_account_email,
            google_private_key=google_private_key,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_store_path=matrix_store_path,
            matrix_channel_room=matrix_channel_room,
            completion_poll_seconds=completion_poll_seconds,
            task_poll_seconds=task_poll_seconds,
            cache_ttl_seconds=cache_ttl_seconds,
            cache_sweep_seconds=cache_sweep_seconds,
            new_task_lookback_minutes=new_task_lookback_minutes,
            reminder_window_start_hours=reminder_window_start_hours,
            reminder_window_end_hours=reminder_window_end_hours,
            post_task_summary=post_task_summary,
            local_utc_offset_hours=local_utc_offset_hours,
        )

    def missing(self) -> list[str]:
        """Names of required settings that are not set."""
        out: list[str] = []
        if not self.tasks_sheet_id:
            out.append(_k("TASKS_SHEET_ID"))
        if not self.completions_sheet_id:
            out.append(_k("COMPLETIONS_SHEET_ID"))
        if not self.completion_log_sheet_id:
            out.append(_k("COMPLETION_LOG_SHEET_ID"))
        if self.google_credentials_file is None and not (
            self.google_service_account_email and self.google_private_key.strip()
        ):
            out.append(_k("GOOGLE_CREDENTIALS_FILE"))
        if not self.matrix_homeserver:
            out.append(_k("MATRIX_HOMESERVER"))
        if not self.matrix_user_id:
            out.append(_k("MATRIX_USER_ID"))
        if not self.matrix_channel_room:
            out.append(_k("MATRIX_CHANNEL_ROOM"))
        return out

    def validate(self) -> "Settings":
        missing = self.missing()
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        if self.reminder_window_start_hours > self.reminder_window_end_hours:
            raise ConfigError("Reminder window start must not be after its end")
        if min(self.completion_poll_seconds, self.task_poll_seconds, self.cache_sweep_seconds) <= 0:
            raise ConfigError("Poll and sweep intervals must be positive")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    _load_dotenv()
    return Settings.from_env()
