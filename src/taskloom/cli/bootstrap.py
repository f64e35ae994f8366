# src/taskloom/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the queue store and the demo executors into a TaskEngine.
"""

from __future__ import annotations

import asyncio
import logging

from ..config import Settings, get_settings
from ..core.ports import QueueStore
from ..core.state import AppState
from ..tasks.executors import EchoExecutor, FunctionExecutor
from ..tasks.queue_store import create_queue_store
from ..tasks.task_engine import TaskEngine
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

MAX_SLEEP_SECONDS = 60.0


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.queue_db_path.parent.mkdir(parents=True, exist_ok=True)


def _valid_sleep(task: Task) -> bool:
    seconds = task.params.get("seconds", 1)
    return isinstance(seconds, (int, float)) and 0 <= seconds <= MAX_SLEEP_SECONDS


async def _sleep_task(task: Task) -> dict[str, float]:
    seconds = float(task.params.get("seconds", 1))
    await asyncio.sleep(seconds)
    return {"slept": seconds}


def build_demo_executors() -> list:
    """Executors available from the console: echo (offline) and sleep (slow task)."""
    return [
        EchoExecutor(("echo",)),
        FunctionExecutor(("sleep",), _sleep_task, validator=_valid_sleep),
    ]


def create_initial_state(*, settings: Settings | None = None, store: QueueStore | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the store) injectable makes the app easier to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if store is None:
        store = create_queue_store(settings)

    engine = TaskEngine(
        settings.app_name,
        build_demo_executors(),
        store=store,
        config=settings.engine_config(),
    )
    logger.info(
        "Engine %s wired store=%s types=%s",
        engine.name,
        settings.store_backend,
        ",".join(sorted(engine.get_supported_task_types())),
    )
    return AppState(settings=settings, store=store, engine=engine)
