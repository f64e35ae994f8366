# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from taskloom.logging_setup import _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("taskloom.tasks.task_engine", logging.DEBUG, False),
        ("taskloom.tasks.task_engine", logging.INFO, True),
        ("taskloom.tasks.queue_store", logging.DEBUG, False),
        ("taskloom.cli.console", logging.DEBUG, True),
        ("redis.connection", logging.INFO, False),
        ("redis.connection", logging.WARNING, True),
        ("py.warnings", logging.WARNING, False),
        ("py.warnings", logging.ERROR, True),
    ],
)
def test_console_filter(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown


def test_setup_logging_writes_full_log_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    try:
        setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)
        logging.getLogger("taskloom.tasks.task_engine").debug("pass finished")

        for h in root.handlers:
            h.flush()
        text = (tmp_path / "logs" / "taskloom.log").read_text(encoding="utf-8")
        assert "pass finished" in text
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
