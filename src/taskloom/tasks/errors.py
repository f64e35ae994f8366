# src/taskloom/tasks/errors.py

from __future__ import annotations

"""
Error taxonomy for the task engine.

Admission errors are raised synchronously from TaskEngine.add_task.
Validation/execution errors are recorded on the failed task and only logged.
Persistence errors are raised by queue stores and absorbed by the engine.
"""


class TaskEngineError(Exception):
    """Base class for all task engine errors."""


class AdmissionError(TaskEngineError):
    """A task could not be admitted; the engine state is unchanged."""


class UnsupportedTaskTypeError(AdmissionError):
    def __init__(self, engine_name: str, task_type: str) -> None:
        super().__init__(f"[{engine_name}] unsupported task type: {task_type!r}")
        self.engine_name = engine_name
        self.task_type = task_type


class QueueFullError(AdmissionError):
    def __init__(self, engine_name: str, key: str) -> None:
        super().__init__(f"[{engine_name}] task queues are full, rejected: {key}")
        self.engine_name = engine_name
        self.key = key


class DuplicateTaskError(AdmissionError):
    def __init__(self, engine_name: str, key: str) -> None:
        super().__init__(f"[{engine_name}] task already queued: {key}")
        self.engine_name = engine_name
        self.key = key


class InvalidTransitionError(TaskEngineError):
    """Illegal task status transition (programming error)."""


class ValidationError(TaskEngineError):
    """Task failed generic or type-specific validation at dispatch time."""


class ExecutionError(TaskEngineError):
    """The executor's business logic failed for a task."""


class PersistenceError(TaskEngineError):
    """A queue snapshot could not be written or read."""
