# src/pending_choice/tasks/task_api.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .task_models import AWAITING_CHOICE, normalize_options
from .task_store import TaskStore

logger = logging.getLogger(__name__)


def create_choice_task(
    store: TaskStore,
    *,
    name: str,
    room_id: str,
    options: Iterable[str | Mapping[str, Any]],
    description: str = "",
    tag: str = AWAITING_CHOICE,
    extra_tags: Iterable[str] = (),
    metadata: dict[str, Any] | None = None,
) -> int:
    """
    Convenience helper: store a task that waits for a human choice.

    Options are kept as given (bare names or {name, description} objects);
    readers normalize them. A task without any usable option would never be
    eligible, so it is rejected here.
    """
    raw_options = list(options)
    if not normalize_options(raw_options):
        raise ValueError("at least one option is required")

    meta = dict(metadata or {})
    meta["options"] = raw_options

    tags = [tag, *[t for t in extra_tags if t != tag]]

    task_id = store.add_task(
        name=name,
        room_id=room_id,
        description=description,
        tags=tags,
        metadata=meta,
    )
    logger.info("Choice task created id=%s name=%r room=%s options=%d", task_id, name, room_id, len(raw_options))
    return task_id
