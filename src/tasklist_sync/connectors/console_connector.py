# src/tasklist_sync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_view
from ..core.state import AppState
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

PROMPT = ">>> "


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_console_loop(state: AppState) -> None:
    """
    Slash-command REPL.

    stdin is read in a worker thread so snapshot pushes keep arriving
    (and get printed) while the prompt waits.
    """
    logger.info("Console connector started.")
    app_name = str(getattr(getattr(state, "settings", None), "app_name", "tasklist"))
    print_ts(f"[{app_name}] Type /help for commands. Use /exit to quit.\n")

    busy = False

    def emit(text: str) -> None:
        # Immediate user-visible feedback for slow backend calls.
        print_ts(text)

    def on_view_change(_visible: list[Task]) -> None:
        # Command replies already render the view; only show unsolicited pushes.
        if busy or not state.controller.running:
            return
        print()
        print_ts("[sync] " + render_view(state))
        print(PROMPT, end="", flush=True)

    state.view.add_listener(on_view_change)
    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, PROMPT)).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                print_ts("Commands start with '/'. Use /help to list them.")
                continue

            busy = True
            try:
                reply = await command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."
            finally:
                busy = False

            if reply is not None:
                print_ts(reply)
    finally:
        state.view.remove_listener(on_view_change)

    logger.info("Console connector finished.")
