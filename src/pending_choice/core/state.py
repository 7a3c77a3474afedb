# src/pending_choice/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..choice.engine import ChoiceResolutionEngine
from ..choice.workers import TaskWorkerRegistry
from ..tasks.task_store import TaskStore
from .ports import ModelService, RoleResolver


@dataclass
class AppState:
    """
    Wired application objects shared by connectors and commands.

    task_store is the synchronous SQLite store used by commands;
    the engine talks to the same database through its async facade.
    """

    settings: Any

    task_store: TaskStore
    model: ModelService
    roles: RoleResolver
    workers: TaskWorkerRegistry
    engine: ChoiceResolutionEngine
