# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

from taskloom.core.ports import TaskRecord
from taskloom.tasks.errors import PersistenceError
from taskloom.tasks.executors import TaskExecutor
from taskloom.tasks.queue_store import MemoryQueueStore
from taskloom.tasks.task_engine import (
    EngineConfig,
    PersistenceConfig,
    PersistenceStrategy,
    QueueConfig,
    RecoveryPolicy,
    TaskEngine,
)
from taskloom.tasks.task_models import Task


def make_config(
    *,
    max_concurrency: int = 1,
    execution: int = 3,
    waiting: int = 10,
    strategy: PersistenceStrategy = PersistenceStrategy.FIXED_DURATION,
    fixed_duration: float = 3600.0,
    recovery: RecoveryPolicy = RecoveryPolicy.REQUEUE,
) -> EngineConfig:
    """Engine config with millisecond loop timings for tests."""
    return EngineConfig(
        max_concurrency=max_concurrency,
        queue=QueueConfig(execution_queue_size=execution, waiting_queue_size=waiting),
        persistence=PersistenceConfig(
            strategy=strategy,
            fixed_duration=fixed_duration,
            recovery_policy=recovery,
        ),
        idle_interval=0.005,
        pass_interval=0.002,
        error_backoff=0.01,
    )


class GatedExecutor(TaskExecutor):
    """
    Executor whose tasks block until gate is set.

    Tracks how many executions run at once (peak) and which keys started/finished.
    Keys listed in fail_keys raise once the gate opens.
    """

    def __init__(self, task_types: Iterable[str] = ("work",), fail_keys: Iterable[str] = ()) -> None:
        self.task_types = frozenset(task_types)
        self.fail_keys = set(fail_keys)
        self.gate = asyncio.Event()
        self.running = 0
        self.peak = 0
        self.started: list[str] = []
        self.finished: list[str] = []

    async def execute(self, task: Task) -> Any:
        self.started.append(task.key)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await self.gate.wait()
            if task.key in self.fail_keys:
                raise RuntimeError(f"boom {task.key}")
            return {"done": task.key}
        finally:
            self.running -= 1
            self.finished.append(task.key)


class HookRecordingExecutor(TaskExecutor):
    """Records hook order and the task status seen by each hook."""

    def __init__(self) -> None:
        self.task_types = frozenset({"hooked"})
        self.calls: list[tuple[str, str]] = []

    async def before_execute(self, task: Task) -> None:
        self.calls.append(("before", task.status.value))

    async def execute(self, task: Task) -> Any:
        self.calls.append(("execute", task.status.value))
        return 42

    async def after_execute(self, task: Task, result: Any) -> None:
        self.calls.append(("after", task.status.value))


class CountingQueueStore(MemoryQueueStore):
    """MemoryQueueStore that counts calls; load_delay makes loads suspend."""

    def __init__(self, load_delay: float = 0.0) -> None:
        super().__init__()
        self.load_delay = load_delay
        self.load_calls = 0
        self.save_calls = 0

    async def save(self, key: str, tasks: list[TaskRecord]) -> None:
        self.save_calls += 1
        await super().save(key, tasks)

    async def load(self, key: str) -> list[TaskRecord]:
        self.load_calls += 1
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        return await super().load(key)


class FailingQueueStore:
    """Every operation fails like an unreachable backend."""

    def __init__(self) -> None:
        self.save_calls = 0

    async def save(self, key: str, tasks: list[TaskRecord]) -> None:
        self.save_calls += 1
        raise PersistenceError(f"disk on fire ({key})")

    async def load(self, key: str) -> list[TaskRecord]:
        raise PersistenceError(f"disk on fire ({key})")

    async def delete(self, key: str) -> None:
        raise PersistenceError(f"disk on fire ({key})")

    async def close(self) -> None:
        return


async def drive_until(engine: TaskEngine, predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Run processing passes by hand until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await engine.process_pass()
        await asyncio.sleep(0.001)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Wait (without driving the engine) until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.002)
