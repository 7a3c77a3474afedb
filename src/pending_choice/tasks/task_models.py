# src/pending_choice/tasks/task_models.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

AWAITING_CHOICE = "AWAITING_CHOICE"

# Implicit option available on every task; cancels it without running a worker.
ABORT_OPTION = "ABORT"
ABORT_DESCRIPTION = "Cancel this task"


@dataclass(frozen=True, slots=True)
class TaskOption:
    """Canonical option shape. Every raw descriptor is normalized into this."""

    name: str
    description: str


def normalize_option(raw: Any) -> TaskOption | None:
    """
    Normalize a single option descriptor.

    Accepted shapes:
    - "post"                                  -> TaskOption("post", "post")
    - {"name": "post"}                        -> TaskOption("post", "post")
    - {"name": "post", "description": "..."}  -> TaskOption("post", "...")

    Anything else (empty names, numbers, nested lists) is dropped.
    """
    if isinstance(raw, str):
        name = raw.strip()
        return TaskOption(name=name, description=name) if name else None

    if isinstance(raw, Mapping):
        name = str(raw.get("name") or "").strip()
        if not name:
            return None
        desc = str(raw.get("description") or "").strip()
        return TaskOption(name=name, description=desc or name)

    return None


def normalize_options(raw: Any) -> tuple[TaskOption, ...]:
    if not raw or isinstance(raw, (str, Mapping)) or not isinstance(raw, Iterable):
        return ()

    out: list[TaskOption] = []
    for item in raw:
        opt = normalize_option(item)
        if opt is None:
            logger.debug("Dropping malformed option descriptor: %r", item)
            continue
        out.append(opt)
    return tuple(out)


@dataclass(slots=True)
class Task:
    id: int
    name: str
    room_id: str | None

    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def options(self) -> tuple[TaskOption, ...]:
        return normalize_options((self.metadata or {}).get("options"))

    @property
    def has_options(self) -> bool:
        return bool(self.options)


@dataclass(frozen=True, slots=True)
class Room:
    id: str
    server_id: str | None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class Candidate:
    """
    One row of the per-attempt candidate list.

    position is 1-based within this attempt's list; it is NOT Task.id.
    """

    position: int
    task: Task
    options: tuple[TaskOption, ...]


@dataclass(frozen=True, slots=True)
class Decision:
    """Structured extraction result. Both fields None means "no confident selection"."""

    task_id: int | None = None
    selected_option: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.task_id is not None and self.selected_option is not None
