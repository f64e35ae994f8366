# tests/test_bootstrap.py

from __future__ import annotations

import asyncio

from taskloom.cli.bootstrap import build_demo_executors, create_initial_state
from taskloom.cli.runner import start_engine_in_background
from taskloom.tasks.queue_store import MemoryQueueStore
from taskloom.tasks.task_models import Task


def test_create_initial_state_wires_engine(settings) -> None:
    state = create_initial_state(settings=settings)

    assert state.settings is settings
    assert isinstance(state.store, MemoryQueueStore)
    assert state.engine.name == "test-engine"
    assert state.engine.get_supported_task_types() == frozenset({"echo", "sleep"})
    assert state.engine.config.max_concurrency == 2
    assert settings.data_dir.is_dir()


def test_sleep_executor_validates_duration() -> None:
    sleep_executor = next(e for e in build_demo_executors() if "sleep" in e.task_types)

    assert sleep_executor.validate(Task(key="a", type="sleep", params={"seconds": 0.1}))
    assert not sleep_executor.validate(Task(key="b", type="sleep", params={"seconds": 600}))
    assert not sleep_executor.validate(Task(key="c", type="sleep", params={"seconds": "soon"}))


def test_background_runner_processes_submitted_tasks(settings) -> None:
    state = create_initial_state(settings=settings)
    runner = start_engine_in_background(state)
    assert runner is not None

    async def wait_done(key: str) -> Task:
        while True:
            task = state.engine.get_task(key)
            if task is not None and task.is_final():
                return task
            await asyncio.sleep(0.005)

    try:
        runner.submit(state.engine.add_task({"type": "echo", "key": "bg", "params": {"n": 7}}))
        task = runner.submit(wait_done("bg"), timeout=5.0)
    finally:
        runner.stop()
        runner.join(timeout=5.0)

    assert task.is_completed()
    assert task.result == {"echo": {"n": 7}}
    assert not runner.thread.is_alive()
