# src/taskloom/cli/console.py

from __future__ import annotations

import concurrent.futures
import logging
from datetime import datetime

from .commands import registry as command_registry
from .runner import EngineBackgroundRunner

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def run_console_loop(runner: EngineBackgroundRunner) -> None:
    engine = runner.state.engine
    logger.info("Console started (engine=%s).", engine.name)
    _print_ts("[CONSOLE] Queue tasks with /add. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = input(">>> ").strip()
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

        parsed = command_registry.parse(user_input)
        if parsed is None:
            _print_ts("Not a command. Use /help to list available commands.")
            continue
        if isinstance(parsed, str):
            _print_ts(parsed)
            continue

        handler, arg_text = parsed
        try:
            reply = runner.submit(handler(engine, arg_text))
        except concurrent.futures.TimeoutError:
            logger.warning("Command timed out: %s", user_input)
            reply = "Command timed out."
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        _print_ts(reply)

    logger.info("Console finished.")
