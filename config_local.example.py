# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env` for secrets. This file should contain only safe overrides.
"""

# Example: enable Matrix connector locally
# MATRIX_ENABLED = True

# Example: let a Matrix user act as OWNER in one room, in addition to the console user
# SERVER_ROLES = "console/console=OWNER !abc:example.org/@me:example.org=OWNER"

# Example: override local paths (prefer env vars; only do this if you really need it)
# from pathlib import Path
# DATA_DIR = Path(".local/pending-choice")
# TASKS_DB_PATH = DATA_DIR / "tasks.sqlite3"
