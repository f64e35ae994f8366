# src/taskloom/tasks/executors.py

from __future__ import annotations

"""
Task executors.

An executor is the business logic for one family of task types. Executors are
registered into a TaskEngine at construction; the engine picks one by task.type.

Hooks:
- validate(task)        -> extra admission-time checks at dispatch (default: accept)
- before_execute(task)  -> runs after the task is marked EXECUTING
- after_execute(task, result) -> runs before the task is marked COMPLETED
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from .task_models import Task

logger = logging.getLogger(__name__)

TaskFunc = Callable[[Task], Awaitable[Any]]
TaskValidator = Callable[[Task], bool]


class TaskExecutor:
    """Base executor. Subclasses set task_types and implement execute()."""

    task_types: frozenset[str] = frozenset()

    async def execute(self, task: Task) -> Any:
        raise NotImplementedError(f"{type(self).__name__} must implement execute()")

    def validate(self, task: Task) -> bool:
        return True

    async def before_execute(self, task: Task) -> None:
        logger.debug("before_execute key=%s type=%s", task.key, task.type)

    async def after_execute(self, task: Task, result: Any) -> None:
        logger.debug("after_execute key=%s type=%s", task.key, task.type)


class FunctionExecutor(TaskExecutor):
    """Adapter: turn a coroutine function into an executor."""

    def __init__(
        self,
        task_types: Iterable[str],
        func: TaskFunc,
        *,
        validator: TaskValidator | None = None,
    ) -> None:
        self.task_types = frozenset(task_types)
        if not self.task_types:
            raise ValueError("FunctionExecutor needs at least one task type")
        self._func = func
        self._validator = validator

    async def execute(self, task: Task) -> Any:
        return await self._func(task)

    def validate(self, task: Task) -> bool:
        if self._validator is None:
            return True
        return bool(self._validator(task))


class EchoExecutor(TaskExecutor):
    """
    Offline demo executor: returns the task params unchanged.

    Used by the CLI so the engine can be exercised without any external services.
    A params["fail"] value makes the task fail on purpose.
    """

    def __init__(self, task_types: Iterable[str] = ("echo",)) -> None:
        self.task_types = frozenset(task_types)

    async def execute(self, task: Task) -> Any:
        reason = task.params.get("fail")
        if reason:
            raise RuntimeError(str(reason))
        return {"echo": dict(task.params)}
