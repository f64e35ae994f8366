# src/taskloom/tasks/task_models.py

from __future__ import annotations

import hashlib
import json
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .errors import InvalidTransitionError


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    PENDING -> EXECUTING -> COMPLETED
    PENDING | EXECUTING -> FAILED
    """

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


def derive_key(task_type: str, params: Mapping[str, Any] | None) -> str:
    """Stable key for payloads without one: same type + params -> same key."""
    canonical = json.dumps(dict(params or {}), sort_keys=True, ensure_ascii=False, default=str)
    digest = hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:16]
    return f"{task_type}_{digest}"


def _describe_error(error: BaseException | str | None) -> str:
    if error is None:
        return "unknown error"
    if isinstance(error, BaseException):
        msg = str(error)
        return f"{type(error).__name__}: {msg}" if msg else type(error).__name__
    return str(error)


@dataclass(slots=True)
class Task:
    key: str
    type: str
    params: dict[str, Any] = field(default_factory=dict)
    status: TaskStatus = TaskStatus.PENDING
    created_at: float = field(default_factory=time.time)
    updated_at: float = 0.0

    result: Any = None
    error: str | None = None

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = self.created_at

    # ---- predicates ----

    def is_pending(self) -> bool:
        return self.status == TaskStatus.PENDING

    def is_executing(self) -> bool:
        return self.status == TaskStatus.EXECUTING

    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_failed(self) -> bool:
        return self.status == TaskStatus.FAILED

    def is_final(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def is_expired(self, max_age_seconds: float, now_ts: float | None = None) -> bool:
        """True when the task is older than max_age_seconds (status is ignored)."""
        now = time.time() if now_ts is None else now_ts
        return (now - self.created_at) > float(max_age_seconds)

    # ---- transitions ----

    def _set_status(self, status: TaskStatus) -> None:
        self.status = status
        self.updated_at = time.time()

    def mark_as_executing(self) -> None:
        if not self.is_pending():
            raise InvalidTransitionError(f"task {self.key}: {self.status} -> executing")
        self._set_status(TaskStatus.EXECUTING)

    def mark_as_completed(self, result: Any) -> None:
        if not self.is_executing():
            raise InvalidTransitionError(f"task {self.key}: {self.status} -> completed")
        self.result = result
        self.error = None
        self._set_status(TaskStatus.COMPLETED)

    def mark_as_failed(self, error: BaseException | str | None) -> None:
        if self.is_final():
            raise InvalidTransitionError(f"task {self.key}: {self.status} -> failed")
        self.result = None
        self.error = _describe_error(error)
        self._set_status(TaskStatus.FAILED)

    def requeue(self) -> None:
        """Put an interrupted EXECUTING task back to PENDING (recovery only)."""
        if not self.is_executing():
            raise InvalidTransitionError(f"task {self.key}: {self.status} -> pending")
        self.result = None
        self.error = None
        self._set_status(TaskStatus.PENDING)

    # ---- misc ----

    def validate_params(self) -> bool:
        if not isinstance(self.key, str) or not self.key.strip():
            return False
        if not isinstance(self.type, str) or not self.type.strip():
            return False
        return isinstance(self.params, dict)

    def execution_time(self) -> float:
        return self.updated_at - self.created_at

    def summary(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "type": self.type,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "execution_time": self.execution_time(),
            "has_error": self.error is not None,
        }

    # ---- serialization ----

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "type": self.type,
            "params": self.params,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "result": self.result,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Task:
        """
        Rebuild a task from to_dict() output.

        The status is restored as stored (never re-derived); unknown statuses raise ValueError.
        """
        key = data.get("key")
        task_type = data.get("type")
        if not key or not task_type:
            raise ValueError(f"task record is missing key/type: {dict(data)!r}")

        params = data.get("params") or {}
        created_at = float(data.get("created_at") or time.time())
        return cls(
            key=str(key),
            type=str(task_type),
            params=dict(params) if isinstance(params, Mapping) else {},
            status=TaskStatus(data.get("status") or TaskStatus.PENDING.value),
            created_at=created_at,
            updated_at=float(data.get("updated_at") or created_at),
            result=data.get("result"),
            error=data.get("error"),
        )

    # ---- constructors ----

    @staticmethod
    def generate_key(task_type: str, identifier: str) -> str:
        return f"{task_type}_{identifier}_{int(time.time() * 1000)}"

    @classmethod
    def create(
        cls,
        task_type: str,
        params: dict[str, Any] | None = None,
        identifier: str | None = None,
    ) -> Task:
        ident = identifier or uuid.uuid4().hex[:9]
        return cls(key=cls.generate_key(task_type, ident), type=task_type, params=dict(params or {}))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Task:
        """Build a PENDING task from a producer payload {key?, type, params?}."""
        task_type = str(payload.get("type") or "")
        params_any = payload.get("params")
        params = dict(params_any) if isinstance(params_any, Mapping) else {}
        key = payload.get("key") or derive_key(task_type, params)
        return cls(key=str(key), type=task_type, params=params)
