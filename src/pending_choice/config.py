# src/pending_choice/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Settings are built lazily on first get_settings() call.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHOICE"

DEFAULT_SERVER_ROLES = "console/console=OWNER"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def parse_role_assignments(raw: str) -> dict[tuple[str, str], str]:
    """
    Parse "server/entity=ROLE" items separated by commas or whitespace.

    A slash separates server and entity because Matrix ids contain colons:
      "console/console=OWNER !room:hs.org/@me:hs.org=ADMIN"
    Malformed items are skipped.
    """
    out: dict[tuple[str, str], str] = {}
    for item in raw.replace(",", " ").split():
        key, sep, role = item.rpartition("=")
        if not sep or not key or not role:
            logger.warning("Ignoring malformed role assignment: %r", item)
            continue
        server_id, sep, entity_id = key.partition("/")
        if not sep or not server_id or not entity_id:
            logger.warning("Ignoring malformed role assignment: %r", item)
            continue
        out[(server_id, entity_id)] = role.strip().upper()
    return out


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    matrix_enabled: bool

    # ---- Console identity ----
    console_user_id: str
    console_room_id: str
    console_server_id: str

    # ---- LLM / OpenRouter ----
    openrouter_api_key: str | None
    openrouter_base_url: str
    llm_models: list[str]
    extra_headers: dict[str, str]
    extraction_temperature: float
    extraction_max_tokens: int
    llm_read_timeout_seconds: float
    llm_connect_timeout_seconds: float

    # ---- Choice resolution ----
    choice_tag: str
    server_roles: dict[tuple[str, str], str]

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_rooms: list[str]
    matrix_admin_level: int
    matrix_owner_level: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    matrix_store_path: Path
    tasks_db_path: Path

    @staticmethod
    def from_env() -> Settings:
        app_name = _first_env(_k("APP_NAME"), default="pending-choice") or "pending-choice"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        matrix_enabled = _env_bool(_k("MATRIX_ENABLED"), False)

        console_user_id = _env(_k("CONSOLE_USER_ID"), "console").strip() or "console"
        console_room_id = _env(_k("CONSOLE_ROOM_ID"), "console").strip() or "console"
        console_server_id = _env(_k("CONSOLE_SERVER_ID"), "console").strip() or "console"

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        http_referer = _env(_k("HTTP_REFERER"), "https://example.com")
        title = _env(_k("APP_TITLE"), app_name)
        extra_headers = {
            "HTTP-Referer": http_referer,
            "X-Title": title,
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "qwen/qwen-2.5-72b-instruct:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )

        # Extraction is a classification call: keep it short and near-deterministic.
        extraction_temperature = _env_float(_k("EXTRACTION_TEMPERATURE"), 0.0)
        extraction_max_tokens = _env_int(_k("EXTRACTION_MAX_TOKENS"), 128)
        # A slow model must not hang a resolution attempt.
        llm_read_timeout_seconds = _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 25.0)
        llm_connect_timeout_seconds = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)

        choice_tag = _env(_k("TAG"), "AWAITING_CHOICE").strip() or "AWAITING_CHOICE"
        server_roles = parse_role_assignments(_env(_k("SERVER_ROLES"), DEFAULT_SERVER_ROLES))

        matrix_homeserver = (_first_env(_k("MATRIX_HOMESERVER"), "MATRIX_HOMESERVER", default="") or "").strip()
        matrix_user_id = (_first_env(_k("MATRIX_USER_ID"), "MATRIX_USER_ID", default="") or "").strip()
        matrix_password = (_first_env(_k("MATRIX_PASSWORD"), "MATRIX_PASSWORD", default="") or "").strip()
        matrix_rooms = _env_list(_k("MATRIX_ROOMS"), [])
        matrix_admin_level = _env_int(_k("MATRIX_ADMIN_LEVEL"), 50)
        matrix_owner_level = _env_int(_k("MATRIX_OWNER_LEVEL"), 100)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/pending-choice"))
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            matrix_enabled=matrix_enabled,
            console_user_id=console_user_id,
            console_room_id=console_room_id,
            console_server_id=console_server_id,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
            extraction_temperature=extraction_temperature,
            extraction_max_tokens=extraction_max_tokens,
            llm_read_timeout_seconds=llm_read_timeout_seconds,
            llm_connect_timeout_seconds=llm_connect_timeout_seconds,
            choice_tag=choice_tag,
            server_roles=server_roles,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_rooms=matrix_rooms,
            matrix_admin_level=matrix_admin_level,
            matrix_owner_level=matrix_owner_level,
            data_dir=data_dir,
            matrix_store_path=matrix_store_path,
            tasks_db_path=tasks_db_path,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Load .env (never overriding the real environment) and build Settings once."""
    global _settings
    if _settings is None:
        load_dotenv(override=False)
        _settings = Settings.from_env()
    return _settings
