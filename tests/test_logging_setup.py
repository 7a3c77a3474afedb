# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from pending_choice.logging_setup import ConsoleLevelFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    "name, level, shown",
    [
        ("pending_choice.cli.main", logging.DEBUG, True),
        ("pending_choice.choice.engine", logging.DEBUG, False),
        ("pending_choice.choice.engine", logging.INFO, True),
        ("pending_choice.choice.extractor", logging.DEBUG, True),
        ("pending_choice.connectors.matrix_connector", logging.INFO, False),
        ("pending_choice.connectors.matrix_connector", logging.WARNING, True),
        ("pending_choice.connectors.matrix_client", logging.INFO, False),
        ("pending_choice.connectors.console_connector", logging.INFO, True),
        ("pending_choice_other", logging.WARNING, False),
        ("httpx", logging.WARNING, False),
        ("httpx", logging.ERROR, True),
        ("py.warnings", logging.WARNING, False),
    ],
)
def test_console_filter_defaults(name, level, shown) -> None:
    assert ConsoleLevelFilter().filter(_record(name, level)) is shown


def test_console_filter_longest_prefix_wins() -> None:
    f = ConsoleLevelFilter({"app": logging.WARNING, "app.loud": logging.CRITICAL, "app.loud.quiet": logging.DEBUG})

    assert f.min_level("app.other") == logging.WARNING
    assert f.min_level("app.loud.thing") == logging.CRITICAL
    assert f.min_level("app.loud.quiet.deeper") == logging.DEBUG
    assert f.min_level("elsewhere") == logging.ERROR


def test_setup_logging_keeps_engine_debug_in_file_only(tmp_path: Path, capsys) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.DEBUG)
        logging.getLogger("pending_choice.choice.engine").debug("transition -> VALIDATING")
        logging.getLogger("pending_choice.choice.engine").info("task executed")
        for h in root.handlers:
            h.flush()

        err = capsys.readouterr().err
        text = log_file.read_text(encoding="utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)

    assert log_file.name == "pending-choice.log"
    assert "transition -> VALIDATING" in text
    assert "task executed" in text
    assert "transition -> VALIDATING" not in err
    assert "task executed" in err
