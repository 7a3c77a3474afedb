# src/pending_choice/choice/engine.py

"""
Choice resolution engine.

Resolves a pending multi-option task from a free-form reply:

  IDLE -> VALIDATING -> EXTRACTING -> {ABORTING | EXECUTING | REPORTING_OPTIONS} -> DONE

Key invariants:
- validation only reads; an ineligible message produces no output at all,
- every handled message produces exactly one outcome message
  (pass-through of earlier interim responses aside),
- at most one task is deleted per attempt, and only after its effect
  (abort or successful execution) has completed,
- a failed execution keeps the task so the user can retry,
- nothing raised by the store/model/workers escapes handle().
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import InboundMessage, OutboundContent, OutputChannel, RoleResolver, TaskRepo
from ..core.roles import get_user_server_role, is_privileged
from ..tasks.task_models import ABORT_OPTION, AWAITING_CHOICE, Candidate, Decision, Task
from .extractor import OptionExtractor, build_candidates
from .prompts import format_options_listing
from .workers import TaskWorkerRegistry, WorkerContext

logger = logging.getLogger(__name__)

# Outcome tags (OutboundContent.actions).
CHOOSE_OPTION = "CHOOSE_OPTION"
SELECT_OPTION_INVALID = "SELECT_OPTION_INVALID"
SELECT_OPTION_ERROR = "SELECT_OPTION_ERROR"

NO_PENDING_TEXT = "There are no pending tasks with options to choose from."
EXECUTION_ERROR_TEXT = "There was an error processing your selection."
GENERIC_ERROR_TEXT = "There was an error processing the option selection."


class NoPendingChoicesError(RuntimeError):
    """Eligible tasks vanished between validation and handling."""


class ResolutionState(StrEnum):
    IDLE = "idle"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    ABORTING = "aborting"
    EXECUTING = "executing"
    REPORTING_OPTIONS = "reporting_options"
    DONE = "done"


class ResolutionKind(StrEnum):
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    EXECUTED = "executed"
    EXECUTION_FAILED = "execution_failed"
    OPTIONS_LISTED = "options_listed"
    NO_PENDING = "no_pending"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    kind: ResolutionKind
    task: Task | None = None
    option: str | None = None


@dataclass(frozen=True, slots=True)
class ActionSpec:
    """Descriptive metadata for the choice action (help text, examples)."""

    name: str
    similes: tuple[str, ...]
    description: str
    examples: tuple[tuple[str, str], ...]


CHOICE_ACTION = ActionSpec(
    name=CHOOSE_OPTION,
    similes=("SELECT_OPTION", "SELECT", "PICK", "CHOOSE"),
    description="Selects an option for a pending task that has multiple options",
    examples=(
        ("post", "Selected option: post for task: Confirm Twitter Post"),
        ("I choose cancel", "Selected option: cancel for task: Confirm Twitter Post"),
    ),
)


def describe_choice_action(action: ActionSpec = CHOICE_ACTION) -> str:
    lines = [f"{action.name} ({', '.join(action.similes)}): {action.description}.", "Examples:"]
    lines.extend(f'  "{said}" -> {reply}' for said, reply in action.examples)
    return "\n".join(lines)


class ChoiceResolutionEngine:
    def __init__(
        self,
        store: TaskRepo,
        roles: RoleResolver,
        extractor: OptionExtractor,
        workers: TaskWorkerRegistry,
        *,
        choice_tag: str = AWAITING_CHOICE,
        settings: Any = None,
    ) -> None:
        self.store = store
        self.roles = roles
        self.extractor = extractor
        self.workers = workers
        self.choice_tag = choice_tag
        self.settings = settings

    # ---- helpers ----

    @staticmethod
    def _enter(state: ResolutionState, message: InboundMessage) -> None:
        logger.debug("Choice resolution room=%s entity=%s -> %s", message.room_id, message.entity_id, state.value)

    async def _pending_tasks(self, room_id: str) -> list[Task]:
        tasks = await self.store.list_tasks(room_id=room_id, tags=[self.choice_tag])
        return list(tasks or [])

    @staticmethod
    def _match(decision: Decision, candidates: Sequence[Candidate]) -> tuple[Candidate, str] | None:
        """
        Bounds- and shape-check a Decision against this attempt's candidates.

        Returns (candidate, canonical option name) or None when the decision
        does not identify exactly one listed option.
        """
        if not decision.is_complete:
            return None

        task_id = int(decision.task_id or 0)
        if not 1 <= task_id <= len(candidates):
            logger.warning("Extracted taskId=%s out of range (1..%d)", decision.task_id, len(candidates))
            return None

        candidate = candidates[task_id - 1]
        wanted = (decision.selected_option or "").strip()

        if wanted.upper() == ABORT_OPTION:
            return candidate, ABORT_OPTION

        for opt in candidate.options:
            if opt.name == wanted:
                return candidate, opt.name
        folded = wanted.casefold()
        for opt in candidate.options:
            if opt.name.casefold() == folded:
                return candidate, opt.name

        logger.warning("Extracted option %r is not offered by task %r", wanted, candidate.task.name)
        return None

    @staticmethod
    async def _safe_send(send: OutputChannel, content: OutboundContent) -> None:
        try:
            await send(content)
        except Exception:
            logger.exception("Failed to deliver choice outcome actions=%s", content.actions)

    # ---- public API ----

    async def validate(self, message: InboundMessage, *, room: Any = None) -> bool:
        """
        Cheap, read-only eligibility check.

        Eligible iff the actor is OWNER/ADMIN on the room's server and at least
        one awaiting-choice task in the room has options. Fails closed.
        """
        self._enter(ResolutionState.VALIDATING, message)
        try:
            tasks = await self._pending_tasks(message.room_id)

            if room is None:
                room = await self.store.get_room(message.room_id)
            if room is None:
                logger.debug("Choice validation: unknown room=%s", message.room_id)
                return False

            role = await get_user_server_role(self.roles, message.entity_id, getattr(room, "server_id", None))
            if not is_privileged(role):
                logger.debug("Choice validation: entity=%s role=%s not allowed", message.entity_id, role.value)
                return False

            return any(t.has_options for t in tasks)
        except Exception:
            logger.exception("Choice validation failed room=%s entity=%s", message.room_id, message.entity_id)
            return False

    async def handle(
        self,
        message: InboundMessage,
        send: OutputChannel,
        *,
        responses: Iterable[OutboundContent] = (),
    ) -> ResolutionResult:
        source = message.source
        try:
            for response in responses:
                await send(response)

            candidates = build_candidates(await self._pending_tasks(message.room_id))
            if not candidates:
                raise NoPendingChoicesError("No pending tasks with options found")

            self._enter(ResolutionState.EXTRACTING, message)
            decision = await self.extractor.extract(candidates, message.text)

            selection = self._match(decision, candidates)
            if selection is None:
                self._enter(ResolutionState.REPORTING_OPTIONS, message)
                await send(
                    OutboundContent(
                        text=format_options_listing(candidates),
                        actions=[SELECT_OPTION_INVALID],
                        source=source,
                    )
                )
                return ResolutionResult(ResolutionKind.OPTIONS_LISTED)

            candidate, option = selection
            if option == ABORT_OPTION:
                return await self._abort(message, send, candidate.task)
            return await self._execute(message, send, candidate.task, option)

        except NoPendingChoicesError:
            logger.info("Choice handling: no pending tasks left in room=%s", message.room_id)
            await self._safe_send(
                send,
                OutboundContent(text=NO_PENDING_TEXT, actions=[SELECT_OPTION_ERROR], source=source),
            )
            return ResolutionResult(ResolutionKind.NO_PENDING)

        except Exception:
            logger.exception("Error in option selection handler room=%s", message.room_id)
            await self._safe_send(
                send,
                OutboundContent(text=GENERIC_ERROR_TEXT, actions=[SELECT_OPTION_ERROR], source=source),
            )
            return ResolutionResult(ResolutionKind.FAILED)

        finally:
            self._enter(ResolutionState.DONE, message)

    async def process(
        self,
        message: InboundMessage,
        send: OutputChannel,
        *,
        responses: Iterable[OutboundContent] = (),
        room: Any = None,
    ) -> ResolutionResult:
        """Validate, then handle. Ineligible messages are skipped silently."""
        if not await self.validate(message, room=room):
            return ResolutionResult(ResolutionKind.SKIPPED)
        return await self.handle(message, send, responses=responses)

    # ---- branches ----

    async def _abort(self, message: InboundMessage, send: OutputChannel, task: Task) -> ResolutionResult:
        self._enter(ResolutionState.ABORTING, message)
        await self.store.delete_task(task.id)
        logger.info("Choice task cancelled id=%s name=%r by=%s", task.id, task.name, message.entity_id)
        await self._safe_send(
            send,
            OutboundContent(
                text=f'Task "{task.name}" has been cancelled.',
                actions=[CHOOSE_OPTION],
                source=message.source,
            )
        )
        return ResolutionResult(ResolutionKind.CANCELLED, task=task, option=ABORT_OPTION)

    async def _execute(
        self, message: InboundMessage, send: OutputChannel, task: Task, option: str
    ) -> ResolutionResult:
        self._enter(ResolutionState.EXECUTING, message)
        try:
            worker = self.workers.get(task.name)
            await worker.execute(WorkerContext(task=task, message=message, settings=self.settings), option=option)
        except Exception:
            # Task is kept so the selection can be retried.
            logger.exception("Error executing task id=%s name=%r with option=%r", task.id, task.name, option)
            await self._safe_send(
                send,
                OutboundContent(text=EXECUTION_ERROR_TEXT, actions=[SELECT_OPTION_ERROR], source=message.source),
            )
            return ResolutionResult(ResolutionKind.EXECUTION_FAILED, task=task, option=option)

        await self.store.delete_task(task.id)
        logger.info("Choice task executed id=%s name=%r option=%r by=%s", task.id, task.name, option, message.entity_id)
        await self._safe_send(
            send,
            OutboundContent(
                text=f"Selected option: {option} for task: {task.name}",
                actions=[CHOOSE_OPTION],
                source=message.source,
            )
        )
        return ResolutionResult(ResolutionKind.EXECUTED, task=task, option=option)
