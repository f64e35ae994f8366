# src/taskloom/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Engine tuning (limits, loop timings, persistence) is configuration, not constants.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .tasks.task_engine import (
    DEFAULT_EXECUTION_QUEUE_SIZE,
    DEFAULT_FIXED_DURATION_SECONDS,
    DEFAULT_WAITING_QUEUE_SIZE,
    EngineConfig,
    PersistenceConfig,
    PersistenceStrategy,
    QueueConfig,
    RecoveryPolicy,
)

ENV_PREFIX = "TASKLOOM"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    queue_db_path: Path

    # ---- Queue store ----
    store_backend: str
    redis_url: Optional[str]

    # ---- Engine ----
    max_concurrency: int
    execution_queue_size: int
    waiting_queue_size: int
    persistence_strategy: str
    fixed_duration_seconds: float
    recovery_policy: str

    idle_interval: float
    pass_interval: float
    error_backoff: float
    completed_history_size: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="taskloom") or "taskloom"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskloom"))
        queue_db_path = _env_path(_k("QUEUE_DB_PATH"), data_dir / "queues.sqlite3")

        store_backend = _env_choice(_k("STORE_BACKEND"), "sqlite", {"memory", "sqlite", "redis"})
        redis_url = _first_env(_k("REDIS_URL"), "REDIS_URL", default=None)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            queue_db_path=queue_db_path,
            store_backend=store_backend,
            redis_url=redis_url,
            max_concurrency=max(1, _env_int(_k("MAX_CONCURRENCY"), 1)),
            execution_queue_size=max(1, _env_int(_k("EXECUTION_QUEUE_SIZE"), DEFAULT_EXECUTION_QUEUE_SIZE)),
            waiting_queue_size=max(1, _env_int(_k("WAITING_QUEUE_SIZE"), DEFAULT_WAITING_QUEUE_SIZE)),
            persistence_strategy=_env_choice(
                _k("PERSISTENCE_STRATEGY"),
                PersistenceStrategy.FIXED_DURATION.value,
                {s.value for s in PersistenceStrategy},
            ),
            fixed_duration_seconds=_env_float(_k("FIXED_DURATION_SECONDS"), DEFAULT_FIXED_DURATION_SECONDS),
            recovery_policy=_env_choice(
                _k("RECOVERY_POLICY"),
                RecoveryPolicy.REQUEUE.value,
                {p.value for p in RecoveryPolicy},
            ),
            idle_interval=max(0.0, _env_float(_k("IDLE_INTERVAL"), 1.0)),
            pass_interval=max(0.0, _env_float(_k("PASS_INTERVAL"), 0.1)),
            error_backoff=max(0.0, _env_float(_k("ERROR_BACKOFF"), 2.0)),
            completed_history_size=max(0, _env_int(_k("COMPLETED_HISTORY_SIZE"), 100)),
        )

    def engine_config(self) -> EngineConfig:
        fixed_duration = self.fixed_duration_seconds
        if fixed_duration <= 0:
            fixed_duration = DEFAULT_FIXED_DURATION_SECONDS
        return EngineConfig(
            max_concurrency=self.max_concurrency,
            queue=QueueConfig(
                execution_queue_size=self.execution_queue_size,
                waiting_queue_size=self.waiting_queue_size,
            ),
            persistence=PersistenceConfig(
                strategy=PersistenceStrategy(self.persistence_strategy),
                fixed_duration=fixed_duration,
                recovery_policy=RecoveryPolicy(self.recovery_policy),
            ),
            idle_interval=self.idle_interval,
            pass_interval=self.pass_interval,
            error_backoff=self.error_backoff,
            completed_history_size=self.completed_history_size,
        )


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings.from_env()
