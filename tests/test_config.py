# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskloom.config import Settings
from taskloom.tasks.task_engine import PersistenceStrategy, RecoveryPolicy

_ENV_NAMES = (
    "TASKLOOM_APP_NAME",
    "TASKLOOM_CONSOLE_ENABLED",
    "TASKLOOM_DATA_DIR",
    "TASKLOOM_QUEUE_DB_PATH",
    "TASKLOOM_STORE_BACKEND",
    "TASKLOOM_REDIS_URL",
    "REDIS_URL",
    "TASKLOOM_MAX_CONCURRENCY",
    "TASKLOOM_EXECUTION_QUEUE_SIZE",
    "TASKLOOM_WAITING_QUEUE_SIZE",
    "TASKLOOM_PERSISTENCE_STRATEGY",
    "TASKLOOM_FIXED_DURATION_SECONDS",
    "TASKLOOM_RECOVERY_POLICY",
    "TASKLOOM_COMPLETED_HISTORY_SIZE",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    s = Settings.from_env()

    assert s.app_name == "taskloom"
    assert s.store_backend == "sqlite"
    assert s.queue_db_path == Path(".local/taskloom") / "queues.sqlite3"
    assert s.redis_url is None
    assert s.console_enabled is True

    cfg = s.engine_config()
    assert cfg.max_concurrency == 1
    assert cfg.queue.execution_queue_size == 3
    assert cfg.queue.waiting_queue_size == 10
    assert cfg.persistence.strategy == PersistenceStrategy.FIXED_DURATION
    assert cfg.persistence.fixed_duration == 3600.0
    assert cfg.persistence.recovery_policy == RecoveryPolicy.REQUEUE


def test_env_overrides(clean_env, tmp_path: Path) -> None:
    clean_env.setenv("TASKLOOM_DATA_DIR", str(tmp_path))
    clean_env.setenv("TASKLOOM_STORE_BACKEND", "Redis")
    clean_env.setenv("REDIS_URL", "redis://cache:6379/1")
    clean_env.setenv("TASKLOOM_MAX_CONCURRENCY", "4")
    clean_env.setenv("TASKLOOM_EXECUTION_QUEUE_SIZE", "6")
    clean_env.setenv("TASKLOOM_WAITING_QUEUE_SIZE", "20")
    clean_env.setenv("TASKLOOM_PERSISTENCE_STRATEGY", "none")
    clean_env.setenv("TASKLOOM_FIXED_DURATION_SECONDS", "120")
    clean_env.setenv("TASKLOOM_RECOVERY_POLICY", "fail")
    clean_env.setenv("TASKLOOM_CONSOLE_ENABLED", "no")

    s = Settings.from_env()
    cfg = s.engine_config()

    assert s.queue_db_path == tmp_path / "queues.sqlite3"
    assert s.store_backend == "redis"
    assert s.console_enabled is False
    assert s.redis_url == "redis://cache:6379/1"
    assert cfg.max_concurrency == 4
    assert cfg.queue.execution_queue_size == 6
    assert cfg.queue.waiting_queue_size == 20
    assert cfg.persistence.strategy == PersistenceStrategy.NONE
    assert cfg.persistence.fixed_duration == 120.0
    assert cfg.persistence.recovery_policy == RecoveryPolicy.FAIL


def test_invalid_values_fall_back(clean_env) -> None:
    clean_env.setenv("TASKLOOM_STORE_BACKEND", "mongo")
    clean_env.setenv("TASKLOOM_MAX_CONCURRENCY", "zero")
    clean_env.setenv("TASKLOOM_WAITING_QUEUE_SIZE", "-5")
    clean_env.setenv("TASKLOOM_FIXED_DURATION_SECONDS", "-1")
    clean_env.setenv("TASKLOOM_RECOVERY_POLICY", "retry-forever")

    s = Settings.from_env()
    cfg = s.engine_config()

    assert s.store_backend == "sqlite"
    assert cfg.max_concurrency == 1
    assert cfg.queue.waiting_queue_size == 1
    assert cfg.persistence.fixed_duration == 3600.0
    assert cfg.persistence.recovery_policy == RecoveryPolicy.REQUEUE


def test_project_redis_url_wins(clean_env) -> None:
    clean_env.setenv("REDIS_URL", "redis://generic:6379")
    clean_env.setenv("TASKLOOM_REDIS_URL", "redis://mine:6379")

    assert Settings.from_env().redis_url == "redis://mine:6379"
