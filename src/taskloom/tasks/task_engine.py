# src/taskloom/tasks/task_engine.py

from __future__ import annotations

"""
Task engine.

One engine owns one execution queue, one waiting queue and a task index, and runs
a single cooperative loop that:
- drains finished tasks out of the execution queue,
- dispatches PENDING tasks up to max_concurrency,
- promotes waiting tasks (FIFO) into free execution slots,
- snapshots both queues to the queue store.

Task bodies run as independent asyncio tasks; the loop never awaits them.
Executors (one per task-type family) are registered at construction and picked by task.type.

To stop the engine, await engine.stop() (running executions are allowed to finish).
"""

import asyncio
import contextlib
import logging
import time
from collections import OrderedDict, deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..core.ports import QueueStore, TaskRecord
from .errors import (
    DuplicateTaskError,
    ExecutionError,
    PersistenceError,
    QueueFullError,
    TaskEngineError,
    UnsupportedTaskTypeError,
    ValidationError,
)
from .executors import TaskExecutor
from .queue_store import MemoryQueueStore
from .task_models import Task

logger = logging.getLogger(__name__)

DEFAULT_EXECUTION_QUEUE_SIZE = 3
DEFAULT_WAITING_QUEUE_SIZE = 10
DEFAULT_FIXED_DURATION_SECONDS = 3600.0


class QueueType(StrEnum):
    EXECUTION = "execution"
    WAITING = "waiting"


class PersistenceStrategy(StrEnum):
    NONE = "none"  # no snapshots, no recovery, no expiry sweep
    FIXED_DURATION = "fixed_duration"


class RecoveryPolicy(StrEnum):
    """What to do with tasks snapshotted as EXECUTING when the engine restarts."""

    REQUEUE = "requeue"
    FAIL = "fail"
    KEEP = "keep"


@dataclass(frozen=True, slots=True)
class QueueConfig:
    execution_queue_size: int = DEFAULT_EXECUTION_QUEUE_SIZE
    waiting_queue_size: int = DEFAULT_WAITING_QUEUE_SIZE


@dataclass(frozen=True, slots=True)
class PersistenceConfig:
    strategy: PersistenceStrategy = PersistenceStrategy.FIXED_DURATION
    fixed_duration: float = DEFAULT_FIXED_DURATION_SECONDS  # seconds
    recovery_policy: RecoveryPolicy = RecoveryPolicy.REQUEUE


@dataclass(frozen=True, slots=True)
class EngineConfig:
    max_concurrency: int = 1
    queue: QueueConfig = field(default_factory=QueueConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)

    # Loop timings (seconds)
    idle_interval: float = 1.0
    pass_interval: float = 0.1
    error_backoff: float = 2.0

    completed_history_size: int = 100

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.queue.execution_queue_size < 1 or self.queue.waiting_queue_size < 1:
            raise ValueError("queue sizes must be >= 1")
        if self.persistence.fixed_duration <= 0:
            raise ValueError("fixed_duration must be > 0")
        if min(self.idle_interval, self.pass_interval, self.error_backoff) < 0:
            raise ValueError("loop intervals must be >= 0")
        if self.completed_history_size < 0:
            raise ValueError("completed_history_size must be >= 0")


class TaskEngine:
    """
    Bounded two-stage task queue with a built-in scheduler loop.

    Public surface: initialize(), add_task(), start(), stop(), get_task().
    Only the engine's own loop and completion handlers mutate its queues and index.
    """

    def __init__(
        self,
        name: str,
        executors: Iterable[TaskExecutor],
        *,
        store: QueueStore | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        if not name or not name.strip():
            raise ValueError("engine name is required")

        self.name = name.strip()
        self.config = config or EngineConfig()
        self._store: QueueStore = store if store is not None else MemoryQueueStore()

        self._executors: dict[str, TaskExecutor] = {}
        for executor in executors:
            for task_type in executor.task_types:
                if task_type in self._executors:
                    raise ValueError(f"[{self.name}] task type registered twice: {task_type!r}")
                self._executors[task_type] = executor
        if not self._executors:
            raise ValueError(f"[{self.name}] at least one executor with task types is required")

        self._execution_queue: list[Task] = []
        self._waiting_queue: deque[Task] = deque()
        self._index: dict[str, Task] = {}
        self._completed: OrderedDict[str, Task] = OrderedDict()

        self._processing_count = 0
        self._inflight: set[asyncio.Task[None]] = set()

        self._initialized = False
        self._init_task: asyncio.Task[None] | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._pass_running = False

    # ---- introspection ----

    @property
    def processing_count(self) -> int:
        return self._processing_count

    @property
    def execution_queue(self) -> tuple[Task, ...]:
        return tuple(self._execution_queue)

    @property
    def waiting_queue(self) -> tuple[Task, ...]:
        return tuple(self._waiting_queue)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def persistent(self) -> bool:
        return self.config.persistence.strategy != PersistenceStrategy.NONE

    def queue_key(self, queue_type: QueueType) -> str:
        return f"{self.name}_{queue_type.value}"

    def get_supported_task_types(self) -> frozenset[str]:
        return frozenset(self._executors)

    def can_handle(self, task_type: str) -> bool:
        return task_type in self._executors

    def get_task(self, key: str) -> Task | None:
        return self._index.get(key) or self._completed.get(key)

    def has_queued_tasks(self) -> bool:
        return any(t.is_pending() for t in self._execution_queue) or bool(self._waiting_queue)

    def _has_finished_tasks(self) -> bool:
        return any(t.is_final() for t in self._execution_queue)

    def stats(self) -> dict[str, Any]:
        return {
            "engine": self.name,
            "running": self.is_running,
            "processing": self._processing_count,
            "max_concurrency": self.config.max_concurrency,
            "execution_queue": len(self._execution_queue),
            "waiting_queue": len(self._waiting_queue),
            "indexed": len(self._index),
            "completed": len(self._completed),
        }

    # ---- initialization ----

    async def initialize(self) -> None:
        """
        Recover persisted queues and sweep expired tasks, once.

        Concurrent callers await the same in-flight initialization.
        A failed initialization is not cached, so a later call retries it.
        """
        if self._initialized:
            return

        if self._init_task is None:
            self._init_task = asyncio.create_task(self._do_initialize(), name=f"{self.name}-init")

        init_task = self._init_task
        try:
            await asyncio.shield(init_task)
        except Exception:
            if self._init_task is init_task:
                self._init_task = None
            raise

    async def _do_initialize(self) -> None:
        logger.info("[%s] initializing engine", self.name)
        try:
            await self._load_queues()
            self._clear_expired_tasks()
        except Exception:
            logger.exception("[%s] engine initialization failed", self.name)
            raise
        self._initialized = True
        logger.info(
            "[%s] engine initialized execution=%d waiting=%d",
            self.name,
            len(self._execution_queue),
            len(self._waiting_queue),
        )

    # ---- admission ----

    async def add_task(self, task_or_payload: Task | Mapping[str, Any]) -> Task:
        """
        Admit a task (or a {key?, type, params} payload).

        Raises an AdmissionError subclass when the type is unsupported, the key is
        already queued, or both queues are full. Nothing is mutated on failure.
        """
        await self.initialize()

        if isinstance(task_or_payload, Task):
            task = task_or_payload
        elif isinstance(task_or_payload, Mapping):
            task = Task.from_payload(task_or_payload)
        else:
            raise TypeError(f"expected Task or mapping payload, got {type(task_or_payload).__name__}")

        if not self.can_handle(task.type):
            raise UnsupportedTaskTypeError(self.name, task.type)

        if task.key in self._index:
            raise DuplicateTaskError(self.name, task.key)

        qcfg = self.config.queue
        if len(self._execution_queue) < qcfg.execution_queue_size:
            self._execution_queue.append(task)
            where = QueueType.EXECUTION
        elif len(self._waiting_queue) < qcfg.waiting_queue_size:
            self._waiting_queue.append(task)
            where = QueueType.WAITING
        else:
            raise QueueFullError(self.name, task.key)

        self._completed.pop(task.key, None)
        self._index[task.key] = task
        logger.info("[%s] task admitted to %s queue: %s", self.name, where.value, task.key)
        return task

    # ---- loop ----

    async def start(self) -> None:
        """Initialize if needed and launch the processing loop (no-op if already running)."""
        await self.initialize()

        if self.is_running:
            logger.debug("[%s] engine already running", self.name)
            return

        self._loop_task = asyncio.create_task(self._run_loop(), name=f"{self.name}-loop")
        logger.info("[%s] engine started", self.name)

    async def stop(self) -> None:
        """Stop the loop, wait for running executions, then write a final snapshot."""
        loop_task, self._loop_task = self._loop_task, None
        if loop_task is not None:
            loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await loop_task

        if self._inflight:
            logger.info("[%s] waiting for %d running task(s)", self.name, len(self._inflight))
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

        if self._initialized:
            self._drain_finished_tasks()
            await self._save_queues()
        logger.info("[%s] engine stopped", self.name)

    async def _run_loop(self) -> None:
        cfg = self.config
        while True:
            try:
                if not self.has_queued_tasks() and not self._has_finished_tasks():
                    await asyncio.sleep(cfg.idle_interval)
                    continue

                await self.process_pass()
                await asyncio.sleep(cfg.pass_interval)
            except Exception:
                logger.exception("[%s] processing loop error", self.name)
                await asyncio.sleep(cfg.error_backoff)

    async def process_pass(self) -> None:
        """One pass: drain -> dispatch -> promote -> persist."""
        if self._pass_running:
            return

        self._pass_running = True
        try:
            self._drain_finished_tasks()
            self._dispatch_pending_tasks()
            self._promote_waiting_tasks()
            await self._save_queues()
        finally:
            self._pass_running = False

    def _drain_finished_tasks(self) -> None:
        finished = [t for t in self._execution_queue if t.is_final()]
        if not finished:
            return

        self._execution_queue = [t for t in self._execution_queue if not t.is_final()]
        for task in finished:
            if self._index.get(task.key) is task:
                del self._index[task.key]
            if task.is_completed():
                self._remember_completed(task)

        logger.debug("[%s] drained %d finished task(s)", self.name, len(finished))

    def _remember_completed(self, task: Task) -> None:
        limit = self.config.completed_history_size
        if limit <= 0:
            return
        self._completed[task.key] = task
        self._completed.move_to_end(task.key)
        while len(self._completed) > limit:
            self._completed.popitem(last=False)

    def clear_completed(self) -> int:
        """Forget completed tasks kept for get_task(). Returns how many were dropped."""
        n = len(self._completed)
        self._completed.clear()
        return n

    # ---- dispatch ----

    def _dispatch_pending_tasks(self) -> None:
        max_concurrency = self.config.max_concurrency
        for task in list(self._execution_queue):
            if not task.is_pending():
                continue

            if self._processing_count >= max_concurrency:
                logger.debug(
                    "[%s] concurrency limit reached (%d/%d)",
                    self.name,
                    self._processing_count,
                    max_concurrency,
                )
                break

            # Reserve the slot before anything async happens.
            self._processing_count += 1
            self._dispatch(task)

    def validate_task(self, task: Task | None) -> bool:
        """Generic checks + the executor's type-specific validate()."""
        if task is None or not task.validate_params() or not task.is_pending():
            return False
        executor = self._executors.get(task.type)
        if executor is None:
            return False
        return executor.validate(task)

    def _dispatch(self, task: Task) -> None:
        # Validation and the EXECUTING transition happen synchronously, so a task
        # can never be picked up by two passes.
        try:
            if not self.validate_task(task):
                raise ValidationError(f"[{self.name}] task validation failed: {task.key}")
            task.mark_as_executing()
        except Exception as exc:
            error = exc if isinstance(exc, TaskEngineError) else ValidationError(f"{type(exc).__name__}: {exc}")
            logger.error("[%s] task rejected at dispatch: %s (%s)", self.name, task.key, error)
            self._fail_task(task, error)
            self._release_slot(task)
            return

        job = asyncio.create_task(self._execute_with_concurrency_control(task), name=f"{self.name}:{task.key}")
        self._inflight.add(job)
        job.add_done_callback(self._inflight.discard)

    async def _execute_with_concurrency_control(self, task: Task) -> None:
        executor = self._executors[task.type]
        logger.info(
            "[%s] executing task: %s (concurrency %d/%d)",
            self.name,
            task.key,
            self._processing_count,
            self.config.max_concurrency,
        )
        try:
            await executor.before_execute(task)
            result = await executor.execute(task)
            await executor.after_execute(task, result)
            task.mark_as_completed(result)
            logger.info("[%s] task completed: %s", self.name, task.key)
        except Exception as exc:
            logger.error("[%s] task failed: %s", self.name, task.key, exc_info=True)
            error = exc if isinstance(exc, TaskEngineError) else ExecutionError(f"{type(exc).__name__}: {exc}")
            self._fail_task(task, error)
        finally:
            self._release_slot(task)

    def _fail_task(self, task: Task, error: BaseException | str) -> None:
        if not task.is_final():
            task.mark_as_failed(error)
        if self._index.get(task.key) is task:
            del self._index[task.key]

    def _release_slot(self, task: Task) -> None:
        self._processing_count -= 1
        logger.debug(
            "[%s] slot released by %s, processing=%d",
            self.name,
            task.key,
            self._processing_count,
        )

    def _promote_waiting_tasks(self) -> None:
        size = self.config.queue.execution_queue_size
        while self._waiting_queue and len(self._execution_queue) < size:
            task = self._waiting_queue.popleft()
            self._execution_queue.append(task)
            logger.info("[%s] task promoted to execution queue: %s", self.name, task.key)

    # ---- persistence ----

    async def _save_queues(self) -> None:
        if not self.persistent:
            return

        execution = [t.to_dict() for t in self._execution_queue]
        waiting = [t.to_dict() for t in self._waiting_queue]
        try:
            await asyncio.gather(
                self._store.save(self.queue_key(QueueType.EXECUTION), execution),
                self._store.save(self.queue_key(QueueType.WAITING), waiting),
            )
        except PersistenceError as exc:
            logger.error("[%s] failed to save queues: %s", self.name, exc)
            return
        except Exception:
            logger.exception("[%s] failed to save queues", self.name)
            return
        logger.debug("[%s] queues saved execution=%d waiting=%d", self.name, len(execution), len(waiting))

    async def _load_queues(self) -> None:
        if not self.persistent:
            return

        try:
            execution_data, waiting_data = await asyncio.gather(
                self._store.load(self.queue_key(QueueType.EXECUTION)),
                self._store.load(self.queue_key(QueueType.WAITING)),
            )
        except Exception:
            logger.exception("[%s] failed to load queues; starting empty", self.name)
            return

        seen: set[str] = set()
        execution = self._restore_tasks(execution_data, seen)
        waiting = self._restore_tasks(waiting_data, seen)

        # Respect the current limits even if the snapshot was written with larger ones.
        qcfg = self.config.queue
        overflow = execution[qcfg.execution_queue_size :]
        execution = execution[: qcfg.execution_queue_size]
        waiting = overflow + waiting
        if len(waiting) > qcfg.waiting_queue_size:
            dropped = waiting[qcfg.waiting_queue_size :]
            waiting = waiting[: qcfg.waiting_queue_size]
            logger.warning(
                "[%s] dropped %d recovered task(s) over the waiting limit: %s",
                self.name,
                len(dropped),
                ", ".join(t.key for t in dropped),
            )

        self._execution_queue = execution
        self._waiting_queue = deque(waiting)
        self._index = {t.key: t for t in (*self._execution_queue, *self._waiting_queue)}

        logger.info(
            "[%s] recovered queues execution=%d waiting=%d",
            self.name,
            len(self._execution_queue),
            len(self._waiting_queue),
        )

    def _restore_tasks(self, records: list[TaskRecord], seen: set[str]) -> list[Task]:
        policy = self.config.persistence.recovery_policy
        out: list[Task] = []
        for record in records:
            try:
                task = Task.from_dict(record)
            except (TypeError, ValueError):
                logger.warning("[%s] skipping unreadable task record: %r", self.name, record)
                continue

            if task.key in seen:
                logger.warning("[%s] skipping duplicate recovered task: %s", self.name, task.key)
                continue
            seen.add(task.key)

            if task.is_completed():
                self._remember_completed(task)
                continue
            if task.is_failed():
                continue

            if task.is_executing():
                if policy == RecoveryPolicy.REQUEUE:
                    task.requeue()
                    logger.info("[%s] interrupted task requeued: %s", self.name, task.key)
                elif policy == RecoveryPolicy.FAIL:
                    task.mark_as_failed(ExecutionError("interrupted by restart"))
                    logger.warning("[%s] interrupted task failed: %s", self.name, task.key)
                    continue

            out.append(task)
        return out

    def _clear_expired_tasks(self) -> None:
        if self.config.persistence.strategy != PersistenceStrategy.FIXED_DURATION:
            return

        max_age = self.config.persistence.fixed_duration
        now_ts = time.time()
        expired: list[Task] = []

        def keep(task: Task) -> bool:
            if task.is_expired(max_age, now_ts):
                expired.append(task)
                return False
            return True

        self._execution_queue = [t for t in self._execution_queue if keep(t)]
        self._waiting_queue = deque(t for t in self._waiting_queue if keep(t))
        for task in expired:
            if self._index.get(task.key) is task:
                del self._index[task.key]

        # Recovered completed tasks only live in the history.
        for key, task in list(self._completed.items()):
            if task.is_expired(max_age, now_ts):
                del self._completed[key]
                expired.append(task)

        if expired:
            logger.info("[%s] cleared %d expired task(s)", self.name, len(expired))

    async def clear_persisted_queues(self) -> None:
        """Delete both queue snapshots from the store (in-memory queues are untouched)."""
        await asyncio.gather(
            self._store.delete(self.queue_key(QueueType.EXECUTION)),
            self._store.delete(self.queue_key(QueueType.WAITING)),
        )
        logger.info("[%s] persisted queues cleared", self.name)
