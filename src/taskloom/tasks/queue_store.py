# src/taskloom/tasks/queue_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from ..core.ports import QueueStore, TaskRecord
from .errors import PersistenceError

logger = logging.getLogger(__name__)


# ---- snapshot envelope ----

def encode_snapshot(key: str, tasks: list[TaskRecord]) -> str:
    """Serialize a queue snapshot: {"queue", "tasks", "saved_at"}."""
    envelope = {"queue": key, "tasks": list(tasks), "saved_at": time.time()}
    try:
        return json.dumps(envelope, ensure_ascii=False, default=str)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"failed to encode snapshot {key!r}: {exc}") from exc


def decode_snapshot(key: str, raw: str | bytes | None) -> list[TaskRecord]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise PersistenceError(f"corrupted snapshot {key!r}: {exc}") from exc

    tasks: Any = data.get("tasks") if isinstance(data, dict) else None
    if not isinstance(tasks, list):
        raise PersistenceError(f"snapshot {key!r} has no task list")
    return [t for t in tasks if isinstance(t, dict)]


class MemoryQueueStore:
    """
    In-process queue store.

    Snapshots are kept encoded, so loads never alias the engine's live objects.
    Nothing survives a process restart; meant for tests and ephemeral engines.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def save(self, key: str, tasks: list[TaskRecord]) -> None:
        self._data[key] = encode_snapshot(key, tasks)

    async def load(self, key: str) -> list[TaskRecord]:
        return decode_snapshot(key, self._data.get(key))

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def close(self) -> None:
        return

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqliteQueueStore:
    """
    SQLite queue snapshot store.

    One row per queue key; every save replaces the whole snapshot.

    Thread-safety:
    - each call opens its own SQLite connection
    - blocking work runs in a worker thread (asyncio.to_thread)
    """

    def __init__(self, db_path: str | Path = "queues.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteQueueStore ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS queue_snapshots (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL DEFAULT '{}',
                    updated_at REAL NOT NULL DEFAULT 0
                )
                """
            )

            cur.execute("PRAGMA table_info(queue_snapshots)")
            cols = {row["name"] for row in cur.fetchall()}
            if "updated_at" not in cols:
                cur.execute("ALTER TABLE queue_snapshots ADD COLUMN updated_at REAL NOT NULL DEFAULT 0")
                logger.info("SqliteQueueStore migration: added column updated_at")

            conn.commit()
        finally:
            conn.close()

    def _save_sync(self, key: str, payload: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO queue_snapshots(key, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (key, payload, time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    def _load_sync(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT payload FROM queue_snapshots WHERE key = ?", (key,)).fetchone()
            return row["payload"] if row else None
        finally:
            conn.close()

    def _delete_sync(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM queue_snapshots WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    async def save(self, key: str, tasks: list[TaskRecord]) -> None:
        payload = encode_snapshot(key, tasks)
        try:
            await asyncio.to_thread(self._save_sync, key, payload)
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to save snapshot {key!r}: {exc}") from exc
        logger.debug("Saved snapshot key=%s tasks=%d", key, len(tasks))

    async def load(self, key: str) -> list[TaskRecord]:
        try:
            raw = await asyncio.to_thread(self._load_sync, key)
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to load snapshot {key!r}: {exc}") from exc
        if raw is None:
            logger.debug("No snapshot for key=%s (first run)", key)
        return decode_snapshot(key, raw)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, key)
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to delete snapshot {key!r}: {exc}") from exc

    async def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return


def create_queue_store(settings) -> QueueStore:
    """Instantiate the configured queue store backend (memory | sqlite | redis)."""
    backend = str(getattr(settings, "store_backend", "sqlite") or "sqlite").strip().lower()

    if backend == "memory":
        return MemoryQueueStore()

    if backend == "sqlite":
        return SqliteQueueStore(settings.queue_db_path)

    if backend == "redis":
        from .redis_store import RedisQueueStore

        return RedisQueueStore(redis_url=getattr(settings, "redis_url", None))

    raise ValueError(f"Unsupported queue store backend: {backend!r}. Use memory, sqlite or redis.")
