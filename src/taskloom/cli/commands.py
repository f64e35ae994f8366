# src/taskloom/cli/commands.py

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..tasks.errors import AdmissionError
from ..tasks.task_engine import TaskEngine

# Handlers receive the engine and the raw argument text and return a coroutine
# producing the reply; the caller decides which loop runs it.
CommandHandler = Callable[[TaskEngine, str], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def parse(self, line: str) -> tuple[CommandHandler, str] | str | None:
        """
        Resolve "/command args".

        Returns (handler, arg_text), an error reply string, or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].strip().split(maxsplit=1)
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        arg_text = parts[1] if len(parts) > 1 else ""

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."
        return handler, arg_text

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def parse_add_args(arg_text: str) -> dict[str, Any]:
    """
    "/add <type> [key] [json-params]" -> task payload.

    The key is optional; a token starting with "{" starts the JSON params.
    """
    parts = arg_text.strip().split(maxsplit=1)
    if not parts:
        raise ValueError("Usage: /add <type> [key] [json-params]")

    payload: dict[str, Any] = {"type": parts[0]}
    rest = parts[1].strip() if len(parts) > 1 else ""

    if rest and not rest.startswith("{"):
        key_and_rest = rest.split(maxsplit=1)
        payload["key"] = key_and_rest[0]
        rest = key_and_rest[1].strip() if len(key_and_rest) > 1 else ""

    if rest:
        params = json.loads(rest)
        if not isinstance(params, dict):
            raise ValueError("params must be a JSON object")
        payload["params"] = params
    return payload


async def cmd_help(engine: TaskEngine, arg_text: str) -> str:
    return registry.build_help()


async def cmd_add(engine: TaskEngine, arg_text: str) -> str:
    try:
        payload = parse_add_args(arg_text)
    except ValueError as e:
        return str(e)

    try:
        task = await engine.add_task(payload)
    except AdmissionError as e:
        return f"Rejected: {e}"
    return f"Queued {task.key} ({task.type})."


async def cmd_get(engine: TaskEngine, arg_text: str) -> str:
    key = arg_text.strip()
    if not key:
        return "Usage: /get <key>"

    task = engine.get_task(key)
    if task is None:
        return f"No task with key={key} (never admitted, failed, or forgotten)."

    lines = [f"Task {task.key}:", f"  type: {task.type}", f"  status: {task.status.value}"]
    if task.result is not None:
        lines.append(f"  result: {json.dumps(task.result, ensure_ascii=False, default=str)}")
    if task.error:
        lines.append(f"  error: {task.error}")
    return "\n".join(lines)


async def cmd_status(engine: TaskEngine, arg_text: str) -> str:
    s = engine.stats()
    return (
        "Status:\n"
        f"  Engine: {s['engine']} ({'running' if s['running'] else 'stopped'})\n"
        f"  Processing: {s['processing']}/{s['max_concurrency']}\n"
        f"  Execution queue: {s['execution_queue']}/{engine.config.queue.execution_queue_size}\n"
        f"  Waiting queue: {s['waiting_queue']}/{engine.config.queue.waiting_queue_size}\n"
        f"  Completed (kept): {s['completed']}\n"
        f"  Task types: {', '.join(sorted(engine.get_supported_task_types()))}"
    )


async def cmd_clear(engine: TaskEngine, arg_text: str) -> str:
    n = engine.clear_completed()
    return f"Forgot {n} completed task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("add", cmd_add, help_text="Queue a task: /add <type> [key] [json-params].")
registry.register("get", cmd_get, help_text="Show a task: /get <key>.")
registry.register("status", cmd_status, help_text="Show engine queues and concurrency.")
registry.register("clear", cmd_clear, help_text="Forget completed tasks.")
