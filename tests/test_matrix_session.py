# tests/test_matrix_session.py

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest
from nio import AsyncClient, LoginResponse

from pending_choice.connectors import matrix_client
from pending_choice.connectors.matrix_client import SESSION_FILE_NAME, MatrixSession, create_matrix_client


def _matrix_settings(tmp_path: Path, **overrides) -> SimpleNamespace:
    values = {
        "app_name": "pending-choice-test",
        "matrix_homeserver": "https://hs.example",
        "matrix_user_id": "@bot:hs.example",
        "matrix_password": "",
        "matrix_store_path": tmp_path / "matrix_store",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_session_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "store" / SESSION_FILE_NAME
    MatrixSession("@bot:hs.example", "DEVICE", "secret").save(path)

    assert MatrixSession.load(path) == MatrixSession("@bot:hs.example", "DEVICE", "secret")
    assert not path.with_suffix(".tmp").exists()


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[1, 2]",
        json.dumps({"user_id": "@bot:hs.example", "device_id": "DEVICE"}),
        json.dumps({"user_id": "@bot:hs.example", "device_id": "DEVICE", "access_token": "  "}),
        json.dumps({"user_id": "@bot:hs.example", "device_id": 7, "access_token": "secret"}),
    ],
)
def test_unusable_session_file_loads_as_none(tmp_path: Path, content: str) -> None:
    path = tmp_path / SESSION_FILE_NAME
    path.write_text(content, "utf-8")
    assert MatrixSession.load(path) is None


def test_missing_session_file_loads_as_none(tmp_path: Path) -> None:
    assert MatrixSession.load(tmp_path / SESSION_FILE_NAME) is None


def test_apply_restores_login_on_client() -> None:
    client = AsyncClient("https://hs.example", "@bot:hs.example")
    MatrixSession("@bot:hs.example", "DEVICE", "secret").apply(client)

    assert client.user_id == "@bot:hs.example"
    assert client.device_id == "DEVICE"
    assert client.access_token == "secret"


@pytest.mark.asyncio
async def test_unconfigured_matrix_gives_no_client(tmp_path: Path) -> None:
    assert await create_matrix_client(_matrix_settings(tmp_path, matrix_homeserver="")) is None


@pytest.mark.asyncio
async def test_stored_session_is_reused(tmp_path: Path) -> None:
    settings = _matrix_settings(tmp_path)
    MatrixSession("@bot:hs.example", "DEVICE", "secret").save(settings.matrix_store_path / SESSION_FILE_NAME)

    client = await create_matrix_client(settings)
    try:
        assert client is not None
        assert client.access_token == "secret"
        assert client.device_id == "DEVICE"
    finally:
        if client is not None:
            await client.close()


@pytest.mark.asyncio
async def test_session_of_another_user_is_not_reused(tmp_path: Path) -> None:
    settings = _matrix_settings(tmp_path)
    MatrixSession("@old:hs.example", "DEVICE", "secret").save(settings.matrix_store_path / SESSION_FILE_NAME)

    # No password to fall back on, so nothing is created.
    assert await create_matrix_client(settings) is None


@pytest.mark.asyncio
async def test_password_login_saves_session(tmp_path: Path, monkeypatch) -> None:
    settings = _matrix_settings(tmp_path, matrix_password="hunter2")
    calls: list[dict] = []

    async def fake_login(self, password=None, device_name="", token=None):
        calls.append({"password": password, "device_name": device_name})
        resp = LoginResponse("@bot:hs.example", "NEWDEVICE", "fresh-token")
        self.restore_login(resp.user_id, resp.device_id, resp.access_token)
        return resp

    monkeypatch.setattr(matrix_client.AsyncClient, "login", fake_login)

    client = await create_matrix_client(settings)
    try:
        assert client is not None
        assert calls == [{"password": "hunter2", "device_name": "pending-choice-test (Python)"}]
        saved = MatrixSession.load(settings.matrix_store_path / SESSION_FILE_NAME)
        assert saved == MatrixSession("@bot:hs.example", "NEWDEVICE", "fresh-token")
    finally:
        if client is not None:
            await client.close()
