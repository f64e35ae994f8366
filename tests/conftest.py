# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskloom.config import Settings
from taskloom.tasks.queue_store import MemoryQueueStore


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """
    Settings read from a controlled environment.

    Paths point into tmp_path and loop timings are shortened so engine tests run fast.
    """
    monkeypatch.setenv("TASKLOOM_APP_NAME", "test-engine")
    monkeypatch.setenv("TASKLOOM_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TASKLOOM_STORE_BACKEND", "memory")
    monkeypatch.setenv("TASKLOOM_MAX_CONCURRENCY", "2")
    monkeypatch.setenv("TASKLOOM_IDLE_INTERVAL", "0.01")
    monkeypatch.setenv("TASKLOOM_PASS_INTERVAL", "0.005")
    monkeypatch.setenv("TASKLOOM_ERROR_BACKOFF", "0.01")
    return Settings.from_env()


@pytest.fixture()
def store() -> MemoryQueueStore:
    return MemoryQueueStore()
