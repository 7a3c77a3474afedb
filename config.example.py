# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file lists every CHOICE_* variable read by pending_choice.config.
"""

ENV_VARS = {
    # App / logging
    "CHOICE_APP_NAME": "App display name (default: pending-choice).",
    "CHOICE_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "CHOICE_CONSOLE_ENABLED": "Enable console connector (true/false, default: true).",
    "CHOICE_MATRIX_ENABLED": "Enable Matrix connector (true/false, default: false).",
    # Console identity
    "CHOICE_CONSOLE_USER_ID": "Entity id of the console user (default: console).",
    "CHOICE_CONSOLE_ROOM_ID": "Room id used by the console (default: console).",
    "CHOICE_CONSOLE_SERVER_ID": "Server id of the console room (default: console).",
    # Choice resolution
    "CHOICE_TAG": "Tag marking tasks that await a choice (default: AWAITING_CHOICE).",
    "CHOICE_SERVER_ROLES": (
        "Static roles as 'server/entity=ROLE' items, comma/space separated "
        "(default: console/console=OWNER). Roles: OWNER, ADMIN."
    ),
    # LLM / OpenRouter
    "CHOICE_OPENROUTER_API_KEY": "OpenRouter API key (without it an offline model is used).",
    "CHOICE_OPENROUTER_BASE_URL": "OpenRouter base URL (default: https://openrouter.ai/api/v1).",
    "CHOICE_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "CHOICE_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "CHOICE_APP_TITLE": "Optional OpenRouter metadata header title.",
    "CHOICE_EXTRACTION_TEMPERATURE": "Temperature for option extraction (default: 0.0).",
    "CHOICE_EXTRACTION_MAX_TOKENS": "Max tokens for option extraction (default: 128).",
    "CHOICE_LLM_READ_TIMEOUT_SECONDS": "LLM read timeout in seconds (default: 25).",
    "CHOICE_LLM_CONNECT_TIMEOUT_SECONDS": "LLM connect timeout in seconds (default: 5).",
    # Matrix
    "CHOICE_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "CHOICE_MATRIX_USER_ID": "Matrix user ID (bot).",
    "CHOICE_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "CHOICE_MATRIX_ROOMS": "Optional allowlist of room IDs (empty => all rooms).",
    "CHOICE_MATRIX_ADMIN_LEVEL": "Power level mapped to ADMIN (default: 50).",
    "CHOICE_MATRIX_OWNER_LEVEL": "Power level mapped to OWNER (default: 100).",
    # Paths (gitignored)
    "CHOICE_DATA_DIR": "Local data directory (default: .local/pending-choice).",
    "CHOICE_MATRIX_STORE_PATH": "Matrix session store path (default: <data_dir>/matrix_store).",
    "CHOICE_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
}
