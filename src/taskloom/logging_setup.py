# src/taskloom/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path


# Loggers that emit a DEBUG line on every processing pass or snapshot.
CHATTY_LOGGERS = (
    "taskloom.tasks.task_engine",
    "taskloom.tasks.queue_store",
    "taskloom.tasks.redis_store",
    "taskloom.tasks.executors",
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter for the REPL.

    Engine lines at INFO+ (admissions, completions, failures) stay visible even when the
    console runs at DEBUG; per-pass DEBUG chatter from CHATTY_LOGGERS only reaches the
    log file. Other taskloom modules pass through. Third-party loggers (redis, asyncio)
    need WARNING, captured Python warnings need ERROR.
    """

    def __init__(self, chatty: tuple[str, ...] = CHATTY_LOGGERS) -> None:
        super().__init__()
        self._chatty = chatty

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith(self._chatty):
            return record.levelno >= logging.INFO

        if name == "taskloom" or name.startswith("taskloom."):
            return True

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        return record.levelno >= logging.WARNING

def setup_logging(
    *,
    log_dir: str | Path = ".local/taskloom",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler: readable + filtered for interactive use
    - File handler: full logs for debugging

    Call this ONCE, very early (before first logger.info).
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskloom.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)
