# tests/fakes.py

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from pending_choice.choice.workers import WorkerContext
from pending_choice.core.ports import OutboundContent
from pending_choice.core.roles import Role
from pending_choice.tasks.task_models import AWAITING_CHOICE, Room, Task

ROOM = "room-1"
SERVER = "server-1"
OWNER = "owner-1"
ADMIN = "admin-1"
STRANGER = "stranger-1"


def make_task(
    task_id: int,
    name: str,
    options,
    *,
    room_id: str = ROOM,
    tags=(AWAITING_CHOICE,),
    created_at: float | None = None,
) -> Task:
    metadata = {} if options is None else {"options": options}
    return Task(
        id=task_id,
        name=name,
        room_id=room_id,
        tags=list(tags),
        metadata=metadata,
        created_at=float(task_id if created_at is None else created_at),
    )


def decision_reply(task_id, option) -> str:
    """Model output in the shape the extraction prompt asks for."""
    tid = "null" if task_id is None else str(task_id)
    opt = "null" if option is None else f'"{option}"'
    return f'```json\n{{"taskId": {tid}, "selectedOption": {opt}}}\n```'


class FakeModelService:
    """
    Deterministic model service for unit tests.

    - Captures prompts for assertions
    - Returns a predefined text (or raises `error` if set)
    """

    def __init__(self, next_text: str = "", error: Exception | None = None) -> None:
        self.next_text = next_text
        self.error = error
        self.calls: list[dict] = []

    async def complete(
        self,
        prompt: str,
        *,
        stop_sequences: Sequence[str] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "stop_sequences": stop_sequences,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return self.next_text


class FakeTaskRepo:
    """
    In-memory TaskRepo.

    Records every call in `log` so tests can check ordering and that
    validation never mutates.
    """

    def __init__(self, tasks: Iterable[Task] = (), rooms: Iterable[Room] = ()) -> None:
        self.tasks: dict[int, Task] = {t.id: t for t in tasks}
        self.rooms: dict[str, Room] = {r.id: r for r in rooms}
        self.log: list[tuple] = []
        self.deleted: list[int] = []
        self.fail_list: Exception | None = None
        # Drop every task right after the first list_tasks call (a concurrent resolver won).
        self.vanish_after_first_list: bool = False

    async def list_tasks(self, *, room_id: str | None, tags: Iterable[str] | None = None) -> list[Task]:
        wanted = set(tags or [])
        self.log.append(("list_tasks", room_id, tuple(sorted(wanted))))
        if self.fail_list is not None:
            raise self.fail_list
        out = [
            t
            for t in sorted(self.tasks.values(), key=lambda x: (x.created_at, x.id))
            if (room_id is None or t.room_id == room_id) and wanted.issubset(t.tags)
        ]
        if self.vanish_after_first_list:
            self.vanish_after_first_list = False
            self.tasks.clear()
        return out

    async def delete_task(self, task_id: int) -> bool:
        self.log.append(("delete_task", task_id))
        self.deleted.append(task_id)
        return self.tasks.pop(task_id, None) is not None

    async def get_room(self, room_id: str) -> Room | None:
        self.log.append(("get_room", room_id))
        return self.rooms.get(room_id)

    @property
    def mutations(self) -> list[tuple]:
        return [entry for entry in self.log if entry[0] == "delete_task"]


class FakeRoleResolver:
    def __init__(self, roles: dict[tuple[str, str], object] | None = None, error: Exception | None = None) -> None:
        self.roles = dict(roles or {})
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def role_of(self, entity_id: str, server_id: str):
        self.calls.append((entity_id, server_id))
        if self.error is not None:
            raise self.error
        return self.roles.get((server_id, entity_id), Role.NONE)


@dataclass(slots=True)
class RecordingChannel:
    """OutputChannel that keeps everything it was given (optionally failing)."""

    sent: list[OutboundContent] = field(default_factory=list)
    fail_times: int = 0

    async def __call__(self, content: OutboundContent) -> None:
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("channel down")
        self.sent.append(content)

    @property
    def actions(self) -> list[str]:
        return [a for c in self.sent for a in c.actions]


@dataclass(slots=True)
class RecordingWorker:
    calls: list[tuple[WorkerContext, str]] = field(default_factory=list)

    async def execute(self, context: WorkerContext, *, option: str) -> None:
        self.calls.append((context, option))


@dataclass(slots=True)
class FailingWorker:
    error: Exception = field(default_factory=lambda: RuntimeError("worker exploded"))
    calls: int = 0

    async def execute(self, context: WorkerContext, *, option: str) -> None:
        self.calls += 1
        raise self.error
