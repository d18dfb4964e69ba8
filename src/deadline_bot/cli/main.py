# src/deadline_bot/cli/main.py

"""
CLI entrypoint.

Initializes logging, validates settings, builds AppState, logs in to Matrix,
then runs the polling drivers and the Matrix sync loop on one event loop
until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from ..cli.bootstrap import create_initial_state, create_scheduler
from ..config import get_settings
from ..connectors.matrix_client import create_matrix_client, run_sync_loop
from ..connectors.matrix_notifier import MatrixNotifier
from ..core.errors import ConfigError
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import run_scheduler

logger = logging.getLogger(__name__)


async def _run(state: AppState) -> int:
    settings = state.settings

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; exiting.")
        return 1

    notifier = MatrixNotifier(client, settings.matrix_channel_room)
    scheduler = create_scheduler(state, notifier)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    signals: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not supported on every platform (e.g. Windows event loops).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_event.set)
            signals.append(sig)

    sync_task = asyncio.create_task(run_sync_loop(client, stop_event), name="matrix-sync")
    scheduler_task = asyncio.create_task(run_scheduler(scheduler), name="scheduler")
    stop_task = asyncio.create_task(stop_event.wait(), name="stop")
    tasks = (sync_task, scheduler_task, stop_task)

    code = 0
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if task is not stop_task and not task.cancelled() and task.exception() is not None:
                logger.error("%s stopped with an error", task.get_name(), exc_info=task.exception())
                code = 1
    finally:
        logger.info("Shutting down...")
        for task in tasks:
            task.cancel()
        # Failures were logged above; collect the results so nothing is re-raised here.
        await asyncio.gather(*tasks, return_exceptions=True)
        for sig in signals:
            loop.remove_signal_handler(sig)
        await client.close()

    return code


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    try:
        settings.validate()
        state = create_initial_state(settings=settings)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(2)

    logger.info("Starting %s...", settings.app_name)
    try:
        code = asyncio.run(_run(state))
    except KeyboardInterrupt:
        code = 0
    logger.info("Bye.")
    sys.exit(code)


if __name__ == "__main__":
    main()
