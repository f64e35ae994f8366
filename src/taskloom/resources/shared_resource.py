# src/taskloom/resources/shared_resource.py

from __future__ import annotations

"""
Shared resource handles with single-flight creation.

A SharedResource wraps one expensive, process-wide object (a browser page, a renderer,
a client session...). The first acquire() creates it; callers that arrive while creation
is in flight await the same creation instead of starting another one.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class ResourceHandle(Generic[T]):
    owner: SharedResource[T]
    value: T
    released: bool = False


class SharedResource(Generic[T]):
    """
    Reference-counted resource with single-flight creation.

    - acquire(): returns a handle; creates the resource if needed.
    - release(handle): drops one reference; closes the resource at zero unless keep_alive.
    - close(): closes the resource regardless of outstanding handles.

    A failed creation is propagated to every waiter and is not cached.
    """

    def __init__(
        self,
        factory: Callable[[], Awaitable[T]],
        closer: Callable[[T], Awaitable[None]] | None = None,
        *,
        name: str = "resource",
        keep_alive: bool = False,
    ) -> None:
        self.name = name
        self._factory = factory
        self._closer = closer
        self._keep_alive = keep_alive

        self._lock = asyncio.Lock()
        self._creating: asyncio.Task[T] | None = None
        self._value: T | None = None
        self._has_value = False
        self._refs = 0

    @property
    def is_creating(self) -> bool:
        return self._creating is not None

    @property
    def exists(self) -> bool:
        return self._has_value

    @property
    def ref_count(self) -> int:
        return self._refs

    async def _create(self) -> T:
        logger.info("[%s] creating shared resource", self.name)
        try:
            value = await self._factory()
        except Exception:
            logger.exception("[%s] shared resource creation failed", self.name)
            raise
        finally:
            self._creating = None

        self._value = value
        self._has_value = True
        logger.info("[%s] shared resource created", self.name)
        return value

    async def acquire(self) -> ResourceHandle[T]:
        while True:
            async with self._lock:
                if self._has_value:
                    self._refs += 1
                    return ResourceHandle(owner=self, value=self._value)  # type: ignore[arg-type]
                if self._creating is None:
                    self._creating = asyncio.create_task(self._create(), name=f"{self.name}-create")
                creating = self._creating

            logger.debug("[%s] waiting for in-flight creation", self.name)
            await asyncio.shield(creating)
            # A faster caller may have released and closed it meanwhile; re-check.

    async def release(self, handle: ResourceHandle[T]) -> None:
        if handle.owner is not self:
            raise ValueError(f"[{self.name}] handle belongs to another resource")

        async with self._lock:
            if handle.released:
                return
            handle.released = True
            self._refs -= 1
            if self._refs > 0 or self._keep_alive:
                return
            has_value, value = self._detach()

        if has_value:
            await self._dispose(value)  # type: ignore[arg-type]

    async def close(self) -> None:
        async with self._lock:
            has_value, value = self._detach()

        if has_value:
            await self._dispose(value)  # type: ignore[arg-type]

    def _detach(self) -> tuple[bool, T | None]:
        """Forget the current value (caller holds the lock)."""
        if not self._has_value:
            return False, None
        value = self._value
        self._value = None
        self._has_value = False
        self._refs = 0
        return True, value

    async def _dispose(self, value: T) -> None:
        if self._closer is not None:
            await self._closer(value)
        logger.info("[%s] shared resource closed", self.name)

    @contextlib.asynccontextmanager
    async def handle(self) -> AsyncIterator[T]:
        h = await self.acquire()
        try:
            yield h.value
        finally:
            await self.release(h)

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "exists": self._has_value,
            "creating": self.is_creating,
            "refs": self._refs,
        }
