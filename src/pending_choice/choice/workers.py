# src/pending_choice/choice/workers.py

"""
Task worker registry.

A worker applies the chosen option of a task. Workers are looked up by the
task's logical name in an explicitly constructed registry that the engine
receives at construction time.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from ..core.ports import InboundMessage
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)


class UnknownTaskWorkerError(LookupError):
    """No worker is registered for a task name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No worker registered for task: {name!r}")
        self.name = name


@dataclass(frozen=True, slots=True)
class WorkerContext:
    task: Task
    message: InboundMessage
    settings: Any = None


class TaskWorker(Protocol):
    def execute(self, context: WorkerContext, *, option: str) -> Awaitable[None]: ...


WorkerFn = Callable[[WorkerContext, str], Awaitable[None]]


class FunctionTaskWorker:
    """Adapts a plain async function (context, option) to the TaskWorker protocol."""

    def __init__(self, fn: WorkerFn) -> None:
        self._fn = fn

    async def execute(self, context: WorkerContext, *, option: str) -> None:
        await self._fn(context, option)


class EchoTaskWorker:
    """Logs the chosen option and does nothing else. Used for console demo tasks."""

    async def execute(self, context: WorkerContext, *, option: str) -> None:
        logger.info(
            "Echo worker: task id=%s name=%r option=%r (by %s in %s)",
            context.task.id,
            context.task.name,
            option,
            context.message.entity_id,
            context.message.room_id,
        )


class TaskWorkerRegistry:
    def __init__(self) -> None:
        self._workers: dict[str, TaskWorker] = {}

    def register(self, name: str, worker: TaskWorker, *, replace: bool = False) -> None:
        key = (name or "").strip()
        if not key:
            raise ValueError("worker name is required")
        if key in self._workers and not replace:
            raise ValueError(f"worker already registered for task: {key!r}")
        self._workers[key] = worker
        logger.debug("Task worker registered name=%r worker=%s", key, type(worker).__name__)

    def unregister(self, name: str) -> None:
        self._workers.pop((name or "").strip(), None)

    def get(self, name: str) -> TaskWorker:
        worker = self._workers.get((name or "").strip())
        if worker is None:
            raise UnknownTaskWorkerError(name)
        return worker

    def names(self) -> list[str]:
        return sorted(self._workers)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip() in self._workers

    def __len__(self) -> int:
        return len(self._workers)
