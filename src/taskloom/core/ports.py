# src/taskloom/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The engine depends on Protocols instead of concrete implementations.
This keeps storage backends and task executors swappable and makes testing easier.
"""

from typing import Any, Awaitable, Protocol

TaskRecord = dict[str, Any]
# Serialized Task (Task.to_dict()).


class QueueStore(Protocol):
    """
    Durable key/value store for queue snapshots.

    Keys are namespaced per engine and queue ("{engine}_{execution|waiting}").
    Backends raise PersistenceError on failure.
    """

    def save(self, key: str, tasks: list[TaskRecord]) -> Awaitable[None]: ...

    def load(self, key: str) -> Awaitable[list[TaskRecord]]: ...

    def delete(self, key: str) -> Awaitable[None]: ...

    def close(self) -> Awaitable[None]: ...
