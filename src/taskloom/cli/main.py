# src/taskloom/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the engine in a background thread, then
either runs the console REPL in the main thread or waits for SIGINT/SIGTERM (headless).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..config import get_settings
from ..logging_setup import setup_logging
from .bootstrap import create_initial_state
from .console import run_console_loop
from .runner import start_engine_in_background

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    runner = start_engine_in_background(state)
    if runner is None:
        logger.error("Engine failed to start.")
        raise SystemExit(1)

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    if not settings.console_enabled:
        # The console loop handles Ctrl+C itself; headless mode relies on signals.
        try:
            signal.signal(signal.SIGINT, _handle_signal)
            signal.signal(signal.SIGTERM, _handle_signal)
        except (ValueError, OSError):
            logger.debug("Signal handlers not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            run_console_loop(runner)
        else:
            logger.info("Console disabled. Engine runs headless. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        runner.stop()
        runner.join(timeout=30.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
