"""FastAPI WebSocket server for the Close Rummy card game."""

import json
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from config import config
from errors import InvalidPayload, InvariantViolation
from handlers import ConnectionContext, dispatch
from logging_config import connection_id_var, setup_logging
from room import Room, RoomManager, RoomPlayer

setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


async def broadcast_game_state(room: Room) -> None:
    """Push each connected player their own view of the room."""
    for pid, player in list(room.players.items()):
        if not player.websocket:
            continue
        await room.send_to(pid, {
            "type": "game_state",
            "game_state": room.snapshot_for(pid),
        })


async def on_player_removed(room: Room, removed: RoomPlayer) -> None:
    """Grace period ran out: tell the remaining players. Called under the room lock."""
    await broadcast_game_state(room)


room_manager = RoomManager(on_player_removed=on_player_removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    from routers.health import set_health_dependencies
    set_health_dependencies(room_manager=room_manager)

    logger.info(f"Close Rummy server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _close_all_websockets()
    room_manager.rooms.clear()
    logger.info("Shutdown complete")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(room_manager.rooms.values()):
        for player in room.players.values():
            if player.websocket:
                try:
                    await player.websocket.close(code=1001, reason="Server shutting down")
                except Exception as e:
                    logger.debug(f"Closing websocket for {player.id} failed: {e}")
    logger.info("All WebSocket connections closed")


app = FastAPI(
    title="Close Rummy",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

from routers.health import router as health_router
app.include_router(health_router)


async def handle_disconnect(ctx: ConnectionContext) -> None:
    """Mark the player offline and start their grace timer."""
    room = ctx.current_room
    if room is None or room_manager.get_room(room.code) is not room:
        return

    async with room.game_lock:
        if room_manager.player_disconnected(room, ctx.player_id, ctx.connection_id):
            await broadcast_game_state(room)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    connection_id_var.set(connection_id)
    logger.debug(f"WebSocket connected as {connection_id}")

    # Until the client names a stable player id, the connection id stands in
    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
        player_id=connection_id,
    )

    handler_deps = dict(
        room_manager=room_manager,
        broadcast_game_state=broadcast_game_state,
    )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json(InvalidPayload("Message is not valid JSON").to_message())
                continue
            if not isinstance(data, dict):
                await websocket.send_json(InvalidPayload("Message must be a JSON object").to_message())
                continue
            await dispatch(data, ctx, **handler_deps)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
    except InvariantViolation:
        logger.exception(f"Invariant violated handling a message from {ctx.player_id}")
        raise
    except Exception:
        logger.exception(f"WebSocket {connection_id} failed")
        raise
    finally:
        await handle_disconnect(ctx)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Close Rummy server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
