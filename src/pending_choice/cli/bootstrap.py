# src/pending_choice/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/roles/model/workers/engine).
"""

from __future__ import annotations

import logging

from ..choice.engine import ChoiceResolutionEngine
from ..choice.extractor import OptionExtractor
from ..choice.workers import TaskWorkerRegistry
from ..config import get_settings
from ..core.ports import ModelService, RoleResolver
from ..core.roles import StaticRoleResolver
from ..core.state import AppState
from ..llm.client import ModelServiceError, OpenRouterModelService
from ..llm.offline import OfflineModelService
from ..tasks.task_models import Room
from ..tasks.task_store import AsyncTaskStore, TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.matrix_store_path.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_model_service(settings) -> ModelService:
    try:
        return OpenRouterModelService(settings)
    except ModelServiceError as e:
        # Fallback for demos / local runs without external services.
        logger.warning("LLM unavailable (%s); using offline model service.", e)
        return OfflineModelService()


def create_initial_state(
    *,
    settings=None,
    model: ModelService | None = None,
    roles: RoleResolver | None = None,
    workers: TaskWorkerRegistry | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings and collaborators injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    task_store = TaskStore(settings.tasks_db_path)

    # The console always talks in its own room on its own "server".
    task_store.upsert_room(
        Room(id=settings.console_room_id, server_id=settings.console_server_id, name="console")
    )

    if model is None:
        model = create_model_service(settings)
    if roles is None:
        roles = StaticRoleResolver(settings.server_roles)
    if workers is None:
        workers = TaskWorkerRegistry()

    extractor = OptionExtractor(
        model,
        temperature=settings.extraction_temperature,
        max_tokens=settings.extraction_max_tokens,
    )
    engine = ChoiceResolutionEngine(
        AsyncTaskStore(task_store),
        roles,
        extractor,
        workers,
        choice_tag=settings.choice_tag,
        settings=settings,
    )

    return AppState(
        settings=settings,
        task_store=task_store,
        model=model,
        roles=roles,
        workers=workers,
        engine=engine,
    )
