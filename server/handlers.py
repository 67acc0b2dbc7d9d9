"""WebSocket message handlers for the Pears card game.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict by dispatch(), which is also
the one place engine errors are turned into "error" messages for the
issuing connection.

Every handler that touches a room does its validation, mutation and
snapshot broadcast while holding that room's game_lock. A rejected command
leaves every room exactly as it was, including the caller's own seat.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from fastapi import WebSocket

from constants import MAX_ID_LENGTH
from errors import GameError, NotJoined, RoomNotFound
from logging_config import get_logger
from room import Room, RoomManager

logger = get_logger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection (the connection binding)."""

    websocket: WebSocket
    connection_id: str
    player_id: Optional[str] = None
    current_room: Optional[Room] = None

    def bind(self, room: Room, player_id: str) -> None:
        self.current_room = room
        self.player_id = player_id

    def unbind(self) -> None:
        self.current_room = None
        self.player_id = None


def clean_id(value: Any) -> str:
    """Stringify, trim and cap an id echoed back by a client."""
    if value is None:
        return ""
    return str(value).strip()[:MAX_ID_LENGTH]


def resolve_room(data: dict, ctx: ConnectionContext, room_manager: RoomManager) -> Room:
    """
    Find the room a command targets.

    The room code in the payload wins; without one the connection's bound
    room is used.

    Raises:
        RoomNotFound: The code does not resolve, or no code and no binding.
    """
    code = data.get("room_code")
    if code:
        return room_manager.find_room(code)
    if ctx.current_room is not None:
        return ctx.current_room
    raise RoomNotFound()


def require_binding(room: Room, ctx: ConnectionContext) -> None:
    """
    Check this connection is the live one for a seat in ``room``.

    A socket superseded by a rejoin from another tab keeps its old binding
    but is no longer the seat's connection, and may not act for it.

    Raises:
        NotJoined: Not bound to this room, or no longer the seat's connection.
    """
    if room is not ctx.current_room or not ctx.player_id:
        raise NotJoined()
    if room.get_connection(ctx.player_id) is not ctx.websocket:
        raise NotJoined()


@asynccontextmanager
async def bound_room(data: dict, ctx: ConnectionContext, room_manager: RoomManager) -> AsyncIterator[Room]:
    """Resolve the target room, take its lock and check the caller's binding under it."""
    room = resolve_room(data, ctx, room_manager)
    async with room.game_lock:
        require_binding(room, ctx)
        yield room


async def release_seat(room: Room, player_id: str, websocket: WebSocket, room_manager: RoomManager) -> None:
    """
    Disconnect a seat held by ``websocket``, tell the room, and collect the
    room if nobody is left connected.
    """
    async with room.game_lock:
        if room.disconnect(player_id, websocket):
            await room.broadcast_state()
        room_manager.garbage_collect(room.code)


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_create_room(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    previous_room, previous_id = ctx.current_room, ctx.player_id

    room, result = room_manager.create_room(data.get("player_name"), ctx.websocket)
    ctx.bind(room, result.player_id)

    async with room.game_lock:
        await ctx.websocket.send_json(result.to_message(room.code))
        await room.broadcast_state()

    if previous_room is not None and previous_id:
        await release_seat(previous_room, previous_id, ctx.websocket, room_manager)


async def handle_join_room(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = room_manager.find_room(data.get("room_code"))
    requested_id = clean_id(data.get("player_id")) or None
    previous_room, previous_id = ctx.current_room, ctx.player_id

    async with room.game_lock:
        # The room may have been collected while we waited for the lock
        if room_manager.get_room(room.code) is not room:
            raise RoomNotFound()

        same_room = previous_room is room and bool(previous_id)
        if same_room and requested_id is None:
            requested_id = previous_id

        # Raises before touching the room when the seat can't be had
        result = room.join(data.get("player_name"), ctx.websocket, requested_id)
        ctx.bind(room, result.player_id)

        if same_room and previous_id != result.player_id:
            # Switched seats within the room; the new seat keeps it alive
            room.disconnect(previous_id, ctx.websocket)

        logger.with_context(room_code=room.code, player_id=result.player_id).info(
            "Player rejoined" if result.rejoined else "Player joined"
        )

        await ctx.websocket.send_json(result.to_message(room.code))
        await room.broadcast_state()

    if previous_room is not None and previous_room is not room and previous_id:
        await release_seat(previous_room, previous_id, ctx.websocket, room_manager)


async def handle_toggle_ready(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    async with bound_room(data, ctx, room_manager) as room:
        room.game.toggle_ready(ctx.player_id)
        await room.broadcast_state()


# ---------------------------------------------------------------------------
# Game lifecycle handlers
# ---------------------------------------------------------------------------

async def handle_start_game(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    async with bound_room(data, ctx, room_manager) as room:
        room.game.start(ctx.player_id)
        await room.broadcast_state()


async def handle_rematch(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    async with bound_room(data, ctx, room_manager) as room:
        room.game.rematch(ctx.player_id)
        await room.broadcast_state()


# ---------------------------------------------------------------------------
# Round action handlers
# ---------------------------------------------------------------------------

async def handle_submit_card(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    card_id = clean_id(data.get("card_id"))
    async with bound_room(data, ctx, room_manager) as room:
        room.game.submit_card(ctx.player_id, card_id)
        await room.broadcast_state()


async def handle_judge_pick(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    submission_id = clean_id(data.get("submission_id"))
    async with bound_room(data, ctx, room_manager) as room:
        room.game.judge_pick(ctx.player_id, submission_id)
        await room.broadcast_state()


async def handle_next_round(data: dict, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    async with bound_room(data, ctx, room_manager) as room:
        room.game.next_round(ctx.player_id)
        await room.broadcast_state()


# ---------------------------------------------------------------------------
# Disconnect
# ---------------------------------------------------------------------------

async def handle_disconnect(ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    """Release this connection's seat when the socket goes away."""
    room = ctx.current_room
    player_id = ctx.player_id
    ctx.unbind()
    if room is None or player_id is None:
        return
    await release_seat(room, player_id, ctx.websocket, room_manager)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_room": handle_create_room,
    "join_room": handle_join_room,
    "toggle_ready": handle_toggle_ready,
    "start_game": handle_start_game,
    "submit_card": handle_submit_card,
    "judge_pick": handle_judge_pick,
    "next_round": handle_next_round,
    "rematch": handle_rematch,
}


async def send_error(ctx: ConnectionContext, code: str, message: str) -> None:
    await ctx.websocket.send_json({"type": "error", "code": code, "message": message})


async def dispatch(data: Any, ctx: ConnectionContext, **deps) -> None:
    """
    Route one client message to its handler.

    Engine errors go back to the issuing connection only; nothing is
    broadcast and the room is left as it was.
    """
    if not isinstance(data, dict):
        await send_error(ctx, "BAD_MESSAGE", "Messages must be JSON objects.")
        return

    msg_type = data.get("type")
    handler = HANDLERS.get(msg_type)
    if handler is None:
        await send_error(ctx, "UNKNOWN_MESSAGE", f"Unknown message type: {msg_type}")
        return

    log = logger.with_context(
        command=msg_type,
        room_code=ctx.current_room.code if ctx.current_room else None,
        player_id=ctx.player_id,
    )

    try:
        await handler(data, ctx, **deps)
    except GameError as e:
        log.info(f"Rejected {msg_type}: {e.message}", extra={"error_code": e.code})
        await ctx.websocket.send_json(e.to_dict())
    except Exception:
        log.exception(f"Handler for {msg_type} failed")
        await send_error(ctx, "INTERNAL_ERROR", "Something went wrong.")
