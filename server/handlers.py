"""WebSocket message handlers for the Close Rummy card game.

Each handler corresponds to a single message type from the client.
Handlers raise UserError subclasses for illegal intents; dispatch()
turns those into an error message for the sender only, so a rejected
action never reaches the other players.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket
from pydantic import ValidationError

from errors import InvalidPayload, NotInRoom, RoomNotFound, SeatTaken, UserError
from game import RoundPhase, RoundResult
from logging_config import get_logger
from models import (
    CloseRequest,
    CreateRoomRequest,
    DrawRequest,
    DropRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    StartRoundRequest,
)
from room import Room, RoomManager

logger = get_logger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: str
    current_room: Optional[Room] = None


def resolve_room(room_manager: RoomManager, room_id: str, ctx: ConnectionContext) -> Room:
    """
    Look up the room named in a payload and check the sender is seated.

    Raises:
        RoomNotFound, NotInRoom
    """
    room = room_manager.get_room(room_id)
    if room is None:
        raise RoomNotFound(room_id.strip().upper())
    if ctx.player_id not in room.players:
        raise NotInRoom()
    return room


def round_over_message(room: Room, result: RoundResult) -> dict:
    """Summary of a settled round, sent to everyone in the room."""
    names = {p.id: p.name for p in room.game.players}
    return {
        "type": "round_over",
        "roomId": room.code,
        "roundNumber": result.round_number,
        "closerId": result.closer_id,
        "closerName": names.get(result.closer_id),
        "closerCorrect": result.closer_correct,
        "autoClose": result.auto_close,
        "results": [
            {
                "id": p.id,
                "name": p.name,
                "handTotal": result.totals.get(p.id),
                "points": result.points.get(p.id),
                "score": p.score,
            }
            for p in room.game.players
        ],
    }


def check_seat_available(
    room_manager: RoomManager,
    player_id: str,
    ctx: ConnectionContext,
    target: Optional[Room] = None,
) -> None:
    """
    A player id holds at most one seat. Only the connection bound to it may
    carry it into another room; a seat in `target` itself is a reconnect.

    Raises:
        SeatTaken
    """
    seated = room_manager.find_player_room(player_id)
    if seated is None or seated is target:
        return
    if seated is ctx.current_room and ctx.player_id == player_id:
        return
    raise SeatTaken(f"Player {player_id} is already seated in room {seated.code}")


async def _switch_room(
    ctx: ConnectionContext,
    room: Room,
    player_id: str,
    room_manager: RoomManager,
    broadcast_game_state,
) -> None:
    """Bind the connection to `room`, giving up the seat it held elsewhere."""
    previous, previous_id = ctx.current_room, ctx.player_id
    ctx.current_room = room
    ctx.player_id = player_id

    if previous is None or previous is room or previous_id not in previous.players:
        return
    async with previous.game_lock:
        room_manager.leave_room(previous, previous_id)
        if not previous.is_empty():
            await broadcast_game_state(previous)


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_create_room(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    request = CreateRoomRequest.model_validate(data)
    player_id = request.player_id or ctx.player_id
    check_seat_available(room_manager, player_id, ctx)

    room = room_manager.create_room(request.name, player_id, ctx.websocket, ctx.connection_id)
    await _switch_room(ctx, room, player_id, room_manager, broadcast_game_state)

    await ctx.websocket.send_json({
        "type": "room_created",
        "roomId": room.code,
        "playerId": player_id,
        "reconnectToken": room.players[player_id].token,
    })
    async with room.game_lock:
        await broadcast_game_state(room)


async def handle_join_room(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    request = JoinRoomRequest.model_validate(data)
    player_id = request.player_id or ctx.player_id

    room = room_manager.get_room(request.room_id)
    if room is None:
        raise RoomNotFound(request.room_id.strip().upper())
    if ctx.current_room is room and ctx.player_id in room.players and ctx.player_id != player_id:
        raise SeatTaken("You already hold a seat in this room")
    check_seat_available(room_manager, player_id, ctx, target=room)

    async with room.game_lock:
        room, reconnected = room_manager.join_room(
            room.code, request.name, player_id, ctx.websocket, ctx.connection_id,
            token=request.reconnect_token,
        )

    await _switch_room(ctx, room, player_id, room_manager, broadcast_game_state)

    await ctx.websocket.send_json({
        "type": "room_joined",
        "roomId": room.code,
        "playerId": player_id,
        "reconnected": reconnected,
        "reconnectToken": room.players[player_id].token,
    })
    async with room.game_lock:
        await broadcast_game_state(room)


async def handle_leave_room(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    request = LeaveRoomRequest.model_validate(data)
    room = resolve_room(room_manager, request.room_id, ctx)

    async with room.game_lock:
        room_manager.leave_room(room, ctx.player_id)
        if ctx.current_room is room:
            ctx.current_room = None
        await ctx.websocket.send_json({"type": "room_left", "roomId": room.code})
        if not room.is_empty():
            await broadcast_game_state(room)


# ---------------------------------------------------------------------------
# Round / turn handlers
# ---------------------------------------------------------------------------

async def handle_start_round(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    request = StartRoundRequest.model_validate(data)
    room = resolve_room(room_manager, request.room_id, ctx)

    async with room.game_lock:
        room_manager.start_round(room, ctx.player_id)
        logger.with_context(room_code=room.code, player_id=ctx.player_id).info(
            f"Round {room.game.round_number} dealt to {len(room.game.players)} players"
        )
        await broadcast_game_state(room)


async def handle_action_draw(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    request = DrawRequest.model_validate(data)
    room = resolve_room(room_manager, request.room_id, ctx)

    async with room.game_lock:
        drawn = room.game.draw(ctx.player_id, from_discard=request.from_discard)
        logger.with_context(room_code=room.code, player_id=ctx.player_id).debug(
            f"drew {[c.label() for c in drawn]} (from_discard={request.from_discard})"
        )
        await broadcast_game_state(room)


async def handle_action_drop(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    request = DropRequest.model_validate(data)
    room = resolve_room(room_manager, request.room_id, ctx)

    async with room.game_lock:
        dropped = room.game.drop(ctx.player_id, request.selected_ids)
        logger.with_context(room_code=room.code, player_id=ctx.player_id).debug(
            f"dropped {[c.label() for c in dropped]}"
        )
        await broadcast_game_state(room)

        # Emptying the hand settles the round on the spot
        if room.game.phase == RoundPhase.LOBBY and room.game.last_round:
            await room.broadcast(round_over_message(room, room.game.last_round))


async def handle_action_close(data: dict, ctx: ConnectionContext, *, room_manager, broadcast_game_state, **kw) -> None:
    request = CloseRequest.model_validate(data)
    room = resolve_room(room_manager, request.room_id, ctx)

    async with room.game_lock:
        result = room.game.close(ctx.player_id)
        logger.with_context(room_code=room.code, player_id=ctx.player_id).info(
            f"Close called, correct={result.closer_correct}"
        )
        await broadcast_game_state(room)
        await room.broadcast(round_over_message(room, result))


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_room": handle_create_room,
    "join_room": handle_join_room,
    "leave_room": handle_leave_room,
    "start_round": handle_start_round,
    "action_draw": handle_action_draw,
    "action_drop": handle_action_drop,
    "action_close": handle_action_close,
}


async def dispatch(data: dict, ctx: ConnectionContext, **deps) -> None:
    """
    Route one inbound message to its handler.

    Unknown message types are ignored. Payload validation failures and
    UserErrors are reported to the sender only; anything else propagates.
    """
    handler = HANDLERS.get(data.get("type"))
    if handler is None:
        logger.debug(f"Ignoring unknown message type {data.get('type')!r}")
        return

    try:
        await handler(data, ctx, **deps)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        error = InvalidPayload(f"Invalid {data.get('type')} request: {fields}")
        await ctx.websocket.send_json(error.to_message())
    except UserError as e:
        logger.with_context(player_id=ctx.player_id).info(
            f"Rejected {data.get('type')}: {e.code}"
        )
        await ctx.websocket.send_json(e.to_message())
