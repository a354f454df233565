# src/tasklist_sync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL on an asyncio
loop until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import print_ts, run_console_loop
from ..core.errors import TaskListError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _report_sync_error(error: TaskListError) -> None:
    logger.warning("Task sync error: %s", error)
    print_ts(f"Error loading tasks: {error}")


async def _run(settings) -> None:
    state = create_initial_state(settings=settings, on_sync_error=_report_sync_error)
    try:
        await run_console_loop(state)
    finally:
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tasklist")
    setup_logging(log_dir=log_dir, log_name=settings.app_name, console_level=console_level)

    # httpx logs every request at INFO; keep the file log readable.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info("Starting %s (backend=%s)...", settings.app_name, settings.backend)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
