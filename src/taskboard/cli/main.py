# src/taskboard/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, resolves the operator through the actor
directory, then runs the slash-command console in the main thread.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.bootstrap import build_orchestrator, create_initial_state
from ..cli.commands import registry as command_registry
from ..config import get_settings
from ..core.errors import TaskboardError, friendly_error_message
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..recurring.models import Viewer

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def run_console_loop(state: AppState, viewer: Viewer) -> None:
    logger.info("Console started (operator=%s role=%s).", viewer.actor_id, viewer.role.value)
    print(f"[{_ts_local()}] Type /help for commands. Use /exit to quit.\n")

    while True:
        try:
            line = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = command_registry.handle(state, line, viewer)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help to list them."
        print(f"[{_ts_local()}] {reply}")


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(settings)

    logger.info("Starting %s (log file %s)...", settings.app_name, log_file)
    state = create_initial_state(settings=settings)

    try:
        viewer = build_orchestrator(state).resolve_viewer(settings.operator_id)
    except TaskboardError as e:
        logger.error("Cannot start console: %s", e)
        print(friendly_error_message(e))
        raise SystemExit(2) from e

    try:
        run_console_loop(state, viewer)
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
