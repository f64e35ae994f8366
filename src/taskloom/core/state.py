# src/taskloom/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..config import Settings
from ..tasks.task_engine import TaskEngine
from .ports import QueueStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Settings

    store: QueueStore
    engine: TaskEngine
