# src/taskloom/cli/runner.py

from __future__ import annotations

"""
Background engine runner.

The engine lives in its own thread with its own event loop, so the blocking console
REPL can run in the main thread. Other threads never touch the engine directly: they
submit coroutines to the engine's loop and wait for the result.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.state import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class EngineBackgroundRunner:
    state: AppState
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def submit(self, coro: Coroutine[Any, Any, T], timeout: float | None = 30.0) -> T:
        """Run a coroutine on the engine loop and wait for its result."""
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Engine loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _run_engine(state: AppState, stop_event: asyncio.Event) -> None:
    await state.engine.start()
    try:
        await stop_event.wait()
    finally:
        await state.engine.stop()
        await state.store.close()


def start_engine_in_background(state: AppState) -> EngineBackgroundRunner | None:
    """Start the engine loop in a daemon thread and return a handle to talk to it."""
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_engine(state, stop_event))
        except Exception:
            logger.exception("Engine thread crashed.")
        finally:
            with contextlib.suppress(RuntimeError):
                loop.close()

    t = threading.Thread(target=runner, name=f"{state.engine.name}-engine", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Engine thread did not initialize properly.")
        return None

    logger.info("Engine background thread started.")
    return EngineBackgroundRunner(state=state, thread=t, loop=loop, stop_event=stop_event)
