# src/pending_choice/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import threading
import time
from dataclasses import dataclass

from nio import AsyncClient, MatrixRoom, RoomMessageText

from ..choice.engine import ChoiceResolutionEngine
from ..choice.extractor import OptionExtractor
from ..cli.bootstrap import create_model_service
from ..cli.commands import registry as command_registry
from ..core.ports import InboundMessage, OutboundContent
from ..core.roles import Role
from ..core.state import AppState
from ..tasks.task_models import Room
from ..tasks.task_store import AsyncTaskStore
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


class MatrixPowerLevelRoleResolver:
    """
    Roles from Matrix room power levels.

    Every Matrix room is its own "server" here: server_id is the room id.
    """

    def __init__(self, client: AsyncClient, *, owner_level: int = 100, admin_level: int = 50) -> None:
        self.client = client
        self.owner_level = owner_level
        self.admin_level = admin_level

    def level_to_role(self, level: int) -> Role:
        if level >= self.owner_level:
            return Role.OWNER
        if level >= self.admin_level:
            return Role.ADMIN
        return Role.NONE

    async def role_of(self, entity_id: str, server_id: str) -> Role:
        room = self.client.rooms.get(server_id)
        if room is None:
            return Role.NONE
        return self.level_to_role(int(room.power_levels.get_user_level(entity_id)))


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
        ignore_unverified_devices=True,
    )


async def _remember_room(repo: AsyncTaskStore, known_rooms: set[str], room: MatrixRoom) -> Room:
    """Each Matrix room is its own server; stored once per connector run."""
    r = Room(id=room.room_id, server_id=room.room_id, name=room.display_name)
    if room.room_id not in known_rooms:
        await repo.upsert_room(r)
        known_rooms.add(room.room_id)
    return r


async def _run_matrix_bot(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    init -> callbacks -> sync loop

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - we run a manual sync loop so we can exit promptly.
    """
    settings = state.settings

    startup_ts = _ms_now()
    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    roles = MatrixPowerLevelRoleResolver(
        client,
        owner_level=settings.matrix_owner_level,
        admin_level=settings.matrix_admin_level,
    )
    base = state.engine
    # Own model client: async HTTP clients are bound to the event loop that uses them.
    extractor = OptionExtractor(
        create_model_service(settings),
        temperature=base.extractor.temperature,
        max_tokens=base.extractor.max_tokens,
        stop_sequences=base.extractor.stop_sequences,
    )
    engine = ChoiceResolutionEngine(
        base.store,
        roles,
        extractor,
        base.workers,
        choice_tag=base.choice_tag,
        settings=base.settings,
    )
    # Commands in Matrix rooms see Matrix roles and the Matrix engine.
    matrix_state = dataclasses.replace(state, model=extractor.model, roles=roles, engine=engine)

    rooms_repo = AsyncTaskStore(state.task_store)
    known_rooms: set[str] = set()

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        # 1) Ignore messages sent before bot startup.
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return

        # 2) Ignore own messages.
        if event.sender == client.user_id:
            return

        # 3) Room allowlist filter.
        if allowed_rooms is not None and room.room_id not in allowed_rooms:
            return

        body = (event.body or "").strip()
        if not body:
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, body)

        async def send(content: OutboundContent) -> None:
            await _send_text(client, room_id=room.room_id, text=content.text)

        try:
            r = await _remember_room(rooms_repo, known_rooms, room)

            if body.startswith("/"):
                resp = await command_registry.handle(matrix_state, body, user_id=event.sender, room_id=room.room_id)
                if resp:
                    await _send_text(client, room_id=room.room_id, text=resp)
                return

            message = InboundMessage(text=body, entity_id=event.sender, room_id=room.room_id, source="matrix")
            result = await engine.process(message, send, room=r)
            logger.info("Matrix choice handling in %s -> %s", room.room_id, result.kind.value)
        except Exception:
            logger.exception("Failed to handle Matrix message.")

    client.add_event_callback(message_callback, RoomMessageText)

    # ---- Sync loop ----

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        while not stop_event.is_set():
            await client.sync(timeout=30000, full_state=False)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        with contextlib.suppress(Exception):
            await client.close()
        logger.info("Matrix connector stopped.")


@dataclass
class MatrixBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal Matrix stop (loop already closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_matrix_in_background(state: AppState) -> MatrixBackgroundRunner | None:
    """
    Start Matrix connector in a background thread (so console REPL can run in parallel).

    The console REPL is blocking (input()); the Matrix connector is async and wants its own event loop.
    """
    if not state.settings.matrix_enabled:
        logger.info("Matrix connector disabled, not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_matrix_bot(state, stop_event))
        finally:
            loop.close()

    t = threading.Thread(target=runner, daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Matrix thread did not initialize properly.")
        return None

    logger.info("Matrix background thread started.")
    return MatrixBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
