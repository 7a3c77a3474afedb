# src/pending_choice/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path

LOG_FILE_NAME = "pending-choice.log"

# Minimum level a record needs to reach the console, by logger-name prefix.
# The longest matching prefix wins; anything unlisted needs ERROR.
CONSOLE_LEVELS: dict[str, int] = {
    "pending_choice": logging.NOTSET,
    # Per-message state transitions are DEBUG; keep them in the file.
    "pending_choice.choice.engine": logging.INFO,
    # Matrix runs in a background thread next to the REPL prompt.
    "pending_choice.connectors.matrix_connector": logging.WARNING,
    "pending_choice.connectors.matrix_client": logging.WARNING,
    "py.warnings": logging.ERROR,
}

# Applied to the library loggers themselves so their DEBUG chatter never
# reaches the file either.
LIBRARY_LEVELS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "nio": logging.INFO,
}


class ConsoleLevelFilter(logging.Filter):
    """Per-logger minimum levels for the interactive console handler."""

    def __init__(self, levels: Mapping[str, int] | None = None, default: int = logging.ERROR) -> None:
        super().__init__()
        self.levels = dict(CONSOLE_LEVELS if levels is None else levels)
        self.default = default

    def min_level(self, name: str) -> int:
        best: str | None = None
        for prefix in self.levels:
            if name == prefix or name.startswith(prefix + "."):
                if best is None or len(prefix) > len(best):
                    best = prefix
        return self.default if best is None else self.levels[best]

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.min_level(record.name)


def setup_logging(
    *,
    log_dir: str | Path = ".local/pending-choice",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console gets `console_level` narrowed by ConsoleLevelFilter; the file in
    `log_dir` gets everything from `file_level` up, including the engine's
    per-message transitions.

    Call this ONCE, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(ConsoleLevelFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    for name, level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    logging.captureWarnings(True)
    return log_file
