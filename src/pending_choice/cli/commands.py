# src/pending_choice/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..choice.engine import describe_choice_action
from ..choice.workers import EchoTaskWorker
from ..core.roles import get_user_server_role, is_privileged
from ..core.state import AppState
from ..tasks.task_api import create_choice_task

CommandResult = str | Awaitable[str]
CommandHandler = Callable[[AppState, list[str], str | None, str | None], CommandResult]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        room_id: str | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        result = handler(state, args, user_id, room_id)
        if inspect.isawaitable(result):
            result = await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _parse_option(raw: str) -> str | dict[str, Any] | None:
    """"post" -> "post"; "post=Publish now" -> {"name": "post", "description": "Publish now"}."""
    name, sep, desc = raw.partition("=")
    name = name.strip()
    if not name:
        return None
    desc = desc.strip()
    if sep and desc:
        return {"name": name, "description": desc}
    return name


def cmd_help(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    return f"{registry.build_help()}\n\nPlain messages are read as choices:\n{describe_choice_action()}"


def cmd_status(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    s = state.settings
    models = ", ".join(list(getattr(s, "llm_models", []) or []))
    workers = ", ".join(state.workers.names()) or "(none)"
    return (
        "Status:\n"
        f"  Model service: {type(state.model).__name__}\n"
        f"  Models (priority -> fallback): {models}\n"
        f"  Awaiting-choice tag: {getattr(s, 'choice_tag', '?')}\n"
        f"  Tasks DB: {getattr(s, 'tasks_db_path', '?')} ({state.task_store.count_tasks()} tasks)\n"
        f"  Workers: {workers}"
    )


def cmd_tasks(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    """/tasks -> pending choice tasks in this room."""
    if not room_id:
        return "This command is only available in a room/chat context (missing room_id)."

    tag = getattr(state.settings, "choice_tag", "AWAITING_CHOICE")
    tasks = state.task_store.list_tasks(room_id=room_id, tags=[tag])
    if not tasks:
        return "No pending choices in this room."

    lines = [f"Pending choices in {room_id}:"]
    for t in tasks:
        opts = ", ".join(o.name for o in t.options) or "(no options)"
        lines.append(f"  [{t.id}] {t.name}: {opts}")
    return "\n".join(lines)


async def _privileged_in_room(state: AppState, user_id: str | None, room_id: str) -> bool:
    room = state.task_store.get_room(room_id)
    server_id = room.server_id if room is not None else None
    role = await get_user_server_role(state.roles, user_id, server_id)
    return is_privileged(role)


async def cmd_task(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    """
    /task add <name> | opt1, opt2=description  -> create a pending choice
    /task drop <id>                            -> delete a task of this room

    Both need OWNER/ADMIN on the room's server, same as resolving a choice.
    """
    usage = "Usage: /task add <name> | opt1, opt2=description  or  /task drop <id>"
    if not args:
        return usage

    sub = args[0].lower()
    if sub not in ("add", "drop"):
        return usage
    if not room_id:
        return "This command is only available in a room/chat context (missing room_id)."

    if sub == "add":
        name, sep, raw_opts = " ".join(args[1:]).partition("|")
        name = name.strip()
        options = [o for o in (_parse_option(p) for p in raw_opts.split(",")) if o is not None]
        if not name or not sep or not options:
            return usage
        if not await _privileged_in_room(state, user_id, room_id):
            return "Only OWNER/ADMIN can manage tasks in this room."

        tag = getattr(state.settings, "choice_tag", "AWAITING_CHOICE")
        task_id = create_choice_task(state.task_store, name=name, room_id=room_id, options=options, tag=tag)

        if name not in state.workers:
            state.workers.register(name, EchoTaskWorker())
        return f"Created task [{task_id}] {name} with {len(options)} option(s)."

    raw_id = args[1] if len(args) > 1 else ""
    if not (raw_id.isascii() and raw_id.isdigit()):
        return usage
    if not await _privileged_in_room(state, user_id, room_id):
        return "Only OWNER/ADMIN can manage tasks in this room."

    task = state.task_store.get_task(int(raw_id))
    # Ids are global; never reveal or touch another room's task.
    if task is None or task.room_id != room_id:
        return f"No task with id {raw_id} in this room."

    state.task_store.delete_task(task.id)
    logger.info("Task %s dropped via command by %s in %s", task.id, user_id, room_id)
    return f"Task [{task.id}] deleted."


async def cmd_whoami(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    if not user_id or not room_id:
        return "No user_id/room_id in this context."
    room = state.task_store.get_room(room_id)
    server_id = room.server_id if room is not None else None
    role = await get_user_server_role(state.roles, user_id, server_id)
    return f"{user_id} in {room_id} (server {server_id or '?'}): {role.value}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings (model/tag/db/workers).")
registry.register("tasks", cmd_tasks, help_text="List pending choices in this room.")
registry.register("task", cmd_task, help_text="Create or drop a task: /task add <name> | a, b  or  /task drop <id>.")
registry.register("whoami", cmd_whoami, help_text="Show your role for this room.")
