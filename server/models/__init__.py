"""Message models for the Close Rummy WebSocket protocol."""

from .messages import (
    CloseRequest,
    CreateRoomRequest,
    DrawRequest,
    DropRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    StartRoundRequest,
)

__all__ = [
    "CloseRequest",
    "CreateRoomRequest",
    "DrawRequest",
    "DropRequest",
    "JoinRoomRequest",
    "LeaveRoomRequest",
    "StartRoundRequest",
]
