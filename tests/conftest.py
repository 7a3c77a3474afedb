# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from pending_choice.choice.engine import ChoiceResolutionEngine
from pending_choice.choice.extractor import OptionExtractor
from pending_choice.choice.workers import TaskWorkerRegistry
from pending_choice.cli.bootstrap import create_initial_state
from pending_choice.core.roles import Role, StaticRoleResolver
from pending_choice.core.state import AppState
from pending_choice.tasks.task_models import AWAITING_CHOICE, Room
from pending_choice.tasks.task_store import TaskStore

from .fakes import ADMIN, OWNER, ROOM, SERVER, FakeModelService, FakeRoleResolver, FakeTaskRepo, RecordingChannel


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="pending-choice-test",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        matrix_store_path=tmp_path / "matrix_store",
        tasks_db_path=tmp_path / "tasks.sqlite3",
        # Console identity
        console_user_id="console",
        console_room_id="console",
        console_server_id="console",
        # LLM
        llm_models=["test/model-a", "test/model-b"],
        extraction_temperature=0.0,
        extraction_max_tokens=128,
        # Choice
        choice_tag=AWAITING_CHOICE,
        server_roles={("console", "console"): "OWNER"},
    )


@pytest.fixture()
def model() -> FakeModelService:
    return FakeModelService()


@pytest.fixture()
def state(settings: SimpleNamespace, model: FakeModelService) -> AppState:
    """
    AppState wired with a fake model service.

    NOTE: We keep the real SQLite TaskStore here because its correctness
    is part of what we want to test.
    """
    return create_initial_state(
        settings=settings,
        model=model,
        roles=StaticRoleResolver(settings.server_roles),
    )


@pytest.fixture()
def task_store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "store.sqlite3")


@pytest.fixture()
def repo() -> FakeTaskRepo:
    return FakeTaskRepo(rooms=[Room(id=ROOM, server_id=SERVER, name="Room 1")])


@pytest.fixture()
def roles() -> FakeRoleResolver:
    return FakeRoleResolver({(SERVER, OWNER): Role.OWNER, (SERVER, ADMIN): "admin"})


@pytest.fixture()
def workers() -> TaskWorkerRegistry:
    return TaskWorkerRegistry()


@pytest.fixture()
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture()
def engine(
    repo: FakeTaskRepo,
    roles: FakeRoleResolver,
    model: FakeModelService,
    workers: TaskWorkerRegistry,
) -> ChoiceResolutionEngine:
    return ChoiceResolutionEngine(repo, roles, OptionExtractor(model), workers)
