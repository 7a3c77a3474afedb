# src/pending_choice/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The engine depends on Protocols instead of concrete implementations.
This keeps connectors/storage/LLM providers swappable and makes testing easier.
"""

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..tasks.task_models import Room, Task


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """A user message as seen by the engine (transport-neutral)."""

    text: str
    entity_id: str
    room_id: str
    source: str | None = None


@dataclass(frozen=True, slots=True)
class OutboundContent:
    """
    A message for the output channel.

    actions carries the outcome tag(s), e.g. ["CHOOSE_OPTION"].
    """

    text: str
    actions: list[str] = field(default_factory=list)
    source: str | None = None


OutputChannel = Callable[[OutboundContent], Awaitable[None]]


class TaskRepo(Protocol):
    def list_tasks(self, *, room_id: str | None, tags: Iterable[str] | None = None) -> Awaitable[list[Task]]: ...
    def delete_task(self, task_id: int) -> Awaitable[Any]: ...
    def get_room(self, room_id: str) -> Awaitable[Room | None]: ...


class RoleResolver(Protocol):
    """Maps (actor, server) to a role name. Unknown actors may yield None."""

    def role_of(self, entity_id: str, server_id: str) -> Awaitable[Any]: ...


class ModelService(Protocol):
    """Prompt in, free-form text out. Output is untrusted."""

    def complete(
            self,
            prompt: str,
            *,
            stop_sequences: Sequence[str] | None = None,
            temperature: float | None = None,
            max_tokens: int | None = None,
    ) -> Awaitable[str]: ...
