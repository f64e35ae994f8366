# src/taskloom/tasks/redis_store.py

"""Redis-backed QueueStore implementation."""

from __future__ import annotations

import logging
import os
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..core.ports import TaskRecord
from .errors import PersistenceError
from .queue_store import decode_snapshot, encode_snapshot

logger = logging.getLogger(__name__)


def _redis_url_from_env() -> str:
    redis_url = os.getenv("REDIS_URL")
    if redis_url:
        return redis_url

    host = os.getenv("REDIS_HOST")
    if not host:
        raise ValueError(
            "Redis configuration is missing. Set TASKLOOM_REDIS_URL, REDIS_URL or a combination of "
            "(REDIS_HOST, REDIS_PORT and REDIS_PASSWORD)"
        )
    port = os.getenv("REDIS_PORT") or "6379"
    password = os.getenv("REDIS_PASSWORD")
    if password:
        return f"redis://:{password}@{host}:{port}"
    return f"redis://{host}:{port}"


class RedisQueueStore:
    """
    Redis-backed queue snapshot store.

    - One string value per queue key (JSON snapshot), no TTL: expiry is the engine's job.
    - Connection is created lazily and checked with PING on first use.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: str = "taskloom:queue:",
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        self.redis_url = redis_url or (None if client is not None else _redis_url_from_env())
        self.key_prefix = key_prefix
        self.redis: Optional[aioredis.Redis] = client

    async def _get_redis(self) -> aioredis.Redis:
        if self.redis is None:
            try:
                self.redis = aioredis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=10,
                )
                await self.redis.ping()
            except (RedisError, OSError) as exc:
                self.redis = None
                raise PersistenceError(
                    f"Failed to connect to Redis at {self.redis_url}: {exc}"
                ) from exc
        return self.redis

    def _full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def save(self, key: str, tasks: list[TaskRecord]) -> None:
        payload = encode_snapshot(key, tasks)
        redis = await self._get_redis()
        try:
            await redis.set(self._full_key(key), payload)
        except RedisError as exc:
            raise PersistenceError(f"failed to save snapshot {key!r}: {exc}") from exc

    async def load(self, key: str) -> list[TaskRecord]:
        redis = await self._get_redis()
        try:
            raw = await redis.get(self._full_key(key))
        except RedisError as exc:
            raise PersistenceError(f"failed to load snapshot {key!r}: {exc}") from exc
        return decode_snapshot(key, raw)

    async def delete(self, key: str) -> None:
        redis = await self._get_redis()
        try:
            await redis.delete(self._full_key(key))
        except RedisError as exc:
            raise PersistenceError(f"failed to delete snapshot {key!r}: {exc}") from exc

    async def close(self) -> None:
        """Close the shared Redis connection (idempotent)."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
