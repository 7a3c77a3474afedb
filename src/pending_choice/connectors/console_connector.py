# src/pending_choice/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..choice.engine import ResolutionKind
from ..cli.commands import registry as command_registry
from ..core.ports import InboundMessage, OutboundContent
from ..core.state import AppState
from ..llm.client import friendly_llm_error_message

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def _print_outcome(content: OutboundContent) -> None:
    tags = f" [{', '.join(content.actions)}]" if content.actions else ""
    _print_ts(f"<<<{tags} {content.text.rstrip()}")


async def handle_console_line(state: AppState, line: str) -> None:
    """One console input: slash command or a reply to pending choices."""
    s = state.settings
    user_id = s.console_user_id
    room_id = s.console_room_id

    cmd_response = await command_registry.handle(state, line, user_id=user_id, room_id=room_id)
    if cmd_response is not None:
        _print_ts(cmd_response)
        return

    message = InboundMessage(text=line, entity_id=user_id, room_id=room_id, source="console")
    result = await state.engine.process(message, _print_outcome)
    if result.kind == ResolutionKind.SKIPPED:
        _print_ts("(nothing to choose: no pending tasks with options here, or you lack the role)")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (room=%s).", state.settings.console_room_id)
    _print_ts("[CONSOLE] Reply to pending choices. Use /help for commands. Use /exit to quit.\n")

    # One loop for the whole session: async HTTP clients stay bound to it.
    loop = asyncio.new_event_loop()

    try:
        _console_session(state, loop)
    finally:
        loop.close()

    logger.info("Console connector finished.")


def _console_session(state: AppState, loop: asyncio.AbstractEventLoop) -> None:
    while True:
        try:
            user_input = input(">>> You: ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            loop.run_until_complete(handle_console_line(state, user_input))
        except RuntimeError as e:
            msg = friendly_llm_error_message(e)
            logger.info("Console runtime error: %s", msg)
            _print_ts(f"[ERROR] {msg}")
        except Exception:
            logger.exception("Console handler crashed.")
            _print_ts("Internal error while handling the message.")
