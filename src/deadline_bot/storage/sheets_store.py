# src/deadline_bot/storage/sheets_store.py

from __future__ import annotations

"""
Google Sheets implementation of the Store port.

Three spreadsheets, first tab, header in row 1:
- tasks:           task name | deadline | owner           (A2:C)
- completions:     owner | completed | overdue             (A2:C)
- completion log:  task name | owner | completed at (local) (A:C, append only)

Writes are full-range replaces: clear the range, then set all rows. There is no
per-row patch, so concurrent writers can overwrite each other.
"""

import logging
from collections.abc import Sequence
from datetime import tzinfo
from pathlib import Path
from typing import Any

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..core.errors import ConfigError, StoreReadError, StoreWriteError
from ..tasks.task_models import DEFAULT_LOCAL_TZ, CompletionLogEntry, CompletionRecord, Task

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"

TASKS_RANGE = "A2:C"
COMPLETIONS_RANGE = "A2:C"
COMPLETION_LOG_RANGE = "A:C"

_API_ERRORS = (HttpError, GoogleAuthError, OSError)


def load_credentials(settings) -> service_account.Credentials:
    """
    Service-account credentials from a key file, or from email + private key env vars.

    Private keys pasted into .env usually carry literal "\\n"; they are unescaped here.
    """
    key_file = getattr(settings, "google_credentials_file", None)
    if key_file:
        path = Path(key_file)
        if not path.exists():
            raise ConfigError(f"Google credentials file not found: {path}")
        return service_account.Credentials.from_service_account_file(str(path), scopes=SCOPES)

    email = (getattr(settings, "google_service_account_email", "") or "").strip()
    private_key = (getattr(settings, "google_private_key", "") or "").replace("\\n", "\n").strip()
    if not email or not private_key:
        raise ConfigError(
            "Google credentials missing: set DEADLINE_BOT_GOOGLE_CREDENTIALS_FILE or "
            "GOOGLE_SERVICE_ACCOUNT_EMAIL + GOOGLE_PRIVATE_KEY"
        )
    info = {
        "type": "service_account",
        "client_email": email,
        "private_key": private_key,
        "token_uri": TOKEN_URI,
    }
    try:
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except ValueError as e:
        raise ConfigError(f"Invalid Google service account key: {e}") from e


def build_sheets_service(credentials) -> Any:
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


class GoogleSheetsStore:
    def __init__(
        self,
        service: Any,
        *,
        tasks_sheet_id: str,
        completions_sheet_id: str,
        completion_log_sheet_id: str,
        tasks_range: str = TASKS_RANGE,
        completions_range: str = COMPLETIONS_RANGE,
        completion_log_range: str = COMPLETION_LOG_RANGE,
        tz: tzinfo = DEFAULT_LOCAL_TZ,
    ) -> None:
        self._service = service
        self.tasks_sheet_id = tasks_sheet_id
        self.completions_sheet_id = completions_sheet_id
        self.completion_log_sheet_id = completion_log_sheet_id
        self.tasks_range = tasks_range
        self.completions_range = completions_range
        self.completion_log_range = completion_log_range
        self.tz = tz

    @classmethod
    def from_settings(cls, settings) -> GoogleSheetsStore:
        service = build_sheets_service(load_credentials(settings))
        store = cls(
            service,
            tasks_sheet_id=settings.tasks_sheet_id,
            completions_sheet_id=settings.completions_sheet_id,
            completion_log_sheet_id=settings.completion_log_sheet_id,
            tz=settings.local_tz,
        )
        logger.info(
            "GoogleSheetsStore ready tasks=%s completions=%s log=%s",
            store.tasks_sheet_id,
            store.completions_sheet_id,
            store.completion_log_sheet_id,
        )
        return store

    # ---- low-level helpers ----

    def _values(self) -> Any:
        return self._service.spreadsheets().values()

    def _read(self, spreadsheet_id: str, range_: str) -> list[list[str]]:
        try:
            response = self._values().get(spreadsheetId=spreadsheet_id, range=range_).execute()
        except _API_ERRORS as e:
            raise StoreReadError(f"read {spreadsheet_id} {range_} failed: {e}") from e
        rows = response.get("values", []) or []
        logger.debug("Read %d rows from %s %s", len(rows), spreadsheet_id, range_)
        return rows

    def _replace(self, spreadsheet_id: str, range_: str, rows: list[list[str]]) -> None:
        values = self._values()
        try:
            values.clear(spreadsheetId=spreadsheet_id, range=range_, body={}).execute()
            if rows:
                values.update(
                    spreadsheetId=spreadsheet_id,
                    range=range_,
                    valueInputOption="RAW",
                    body={"values": rows},
                ).execute()
        except _API_ERRORS as e:
            raise StoreWriteError(f"replace {spreadsheet_id} {range_} failed: {e}") from e
        logger.debug("Replaced %s %s with %d rows", spreadsheet_id, range_, len(rows))

    def _append(self, spreadsheet_id: str, range_: str, rows: list[list[str]]) -> None:
        try:
            self._values().append(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            ).execute()
        except _API_ERRORS as e:
            raise StoreWriteError(f"append {spreadsheet_id} {range_} failed: {e}") from e
        logger.debug("Appended %d rows to %s %s", len(rows), spreadsheet_id, range_)

    # ---- Store port ----

    def list_tasks(self) -> list[Task]:
        rows = self._read(self.tasks_sheet_id, self.tasks_range)
        return [Task.from_row(r, self.tz) for r in rows if any(str(c).strip() for c in r)]

    def replace_tasks(self, tasks: Sequence[Task]) -> None:
        self._replace(self.tasks_sheet_id, self.tasks_range, [t.to_row() for t in tasks])

    def append_task(self, task: Task) -> None:
        self._append(self.tasks_sheet_id, self.tasks_range, [task.to_row()])

    def list_completions(self) -> list[CompletionRecord]:
        rows = self._read(self.completions_sheet_id, self.completions_range)
        return [CompletionRecord.from_row(r) for r in rows if r]

    def replace_completions(self, records: Sequence[CompletionRecord]) -> None:
        self._replace(self.completions_sheet_id, self.completions_range, [r.to_row() for r in records])

    def append_completion_log(self, entry: CompletionLogEntry) -> None:
        self._append(self.completion_log_sheet_id, self.completion_log_range, [entry.to_row()])
