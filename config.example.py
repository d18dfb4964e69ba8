# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets: keep them in .env (local, gitignored).

Legacy names (GOOGLE_SHEET_1_ID, CACHE_TTL, ...) are accepted as fallbacks; the
prefixed name wins when both are set.
"""

ENV_VARS = {
    # App / logging
    "DEADLINE_BOT_APP_NAME": "App display name, also the Matrix device name (default: deadline-bot).",
    "DEADLINE_BOT_LOG_LEVEL": "Console logging level (default: INFO). The log file is always DEBUG.",
    "DEADLINE_BOT_DATA_DIR": "Local data directory for logs and the Matrix session (default: .local/deadline_bot).",
    # Google Sheets
    "DEADLINE_BOT_TASKS_SHEET_ID": "Spreadsheet with task name | deadline | owner (fallback: GOOGLE_SHEET_1_ID).",
    "DEADLINE_BOT_COMPLETIONS_SHEET_ID": "Spreadsheet with owner | completed | overdue (fallback: GOOGLE_SHEET_2_ID).",
    "DEADLINE_BOT_COMPLETION_LOG_SHEET_ID": "Append-only completion log (fallback: GOOGLE_SHEET_3_ID).",
    "DEADLINE_BOT_GOOGLE_CREDENTIALS_FILE": "Service account JSON key (fallback: GOOGLE_APPLICATION_CREDENTIALS).",
    "DEADLINE_BOT_GOOGLE_SERVICE_ACCOUNT_EMAIL": "Used with the private key when no key file is set.",
    "DEADLINE_BOT_GOOGLE_PRIVATE_KEY": "PEM private key; literal \\n sequences are unescaped.",
    # Matrix
    "DEADLINE_BOT_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "DEADLINE_BOT_MATRIX_USER_ID": "Matrix user ID (bot).",
    "DEADLINE_BOT_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "DEADLINE_BOT_MATRIX_STORE_PATH": "Session and E2EE store path (default: <data_dir>/matrix_store).",
    "DEADLINE_BOT_MATRIX_CHANNEL_ROOM": "Room ID for completion announcements and the task summary.",
    # Polling / cache
    "DEADLINE_BOT_COMPLETION_POLL_SECONDS": "Completion poll interval (default: 60).",
    "DEADLINE_BOT_TASK_POLL_SECONDS": "Task poll interval (default: 600).",
    "DEADLINE_BOT_CACHE_TTL_SECONDS": "Read cache TTL (default: 300; legacy CACHE_TTL is in ms).",
    "DEADLINE_BOT_CACHE_SWEEP_SECONDS": "Cache sweep interval (default: 1800; legacy CACHE_CLEANUP_INTERVAL is in ms).",
    # Notification windows
    "DEADLINE_BOT_NEW_TASK_LOOKBACK_MINUTES": "A deadline this recent counts as a newly assigned task (default: 10).",
    "DEADLINE_BOT_REMINDER_WINDOW_START_HOURS": "Reminder window start, hours before the deadline (default: 11).",
    "DEADLINE_BOT_REMINDER_WINDOW_END_HOURS": "Reminder window end, hours before the deadline (default: 12).",
    "DEADLINE_BOT_POST_TASK_SUMMARY": "Post the open-task list to the channel every task poll (default: true).",
    # Time
    "DEADLINE_BOT_LOCAL_UTC_OFFSET_HOURS": "Timezone of naive sheet deadlines and log stamps (default: 7).",
}
