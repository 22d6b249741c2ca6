"""
Inbound WebSocket message payloads.

Clients send camelCase keys (roomId, fromDiscard, selectedIds); each
model accepts those aliases as well as the snake_case field names.
Unknown keys such as "type" are ignored.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateRoomRequest(_Request):
    """Create a room and sit down as its host."""
    name: str = ""
    player_id: Optional[str] = Field(default=None, alias="playerId")


class JoinRoomRequest(_Request):
    """Join a room, or reclaim a seat with the token issued when it was taken."""
    room_id: str = Field(alias="roomId")
    name: str = ""
    player_id: Optional[str] = Field(default=None, alias="playerId")
    reconnect_token: Optional[str] = Field(default=None, alias="reconnectToken")


class StartRoundRequest(_Request):
    """Host asks to deal a new round."""
    room_id: str = Field(alias="roomId")


class DrawRequest(_Request):
    """Draw the turn's card(s)."""
    room_id: str = Field(alias="roomId")
    from_discard: bool = Field(default=False, alias="fromDiscard")


class DropRequest(_Request):
    """Drop same-rank cards, in the order given."""
    room_id: str = Field(alias="roomId")
    selected_ids: list[int] = Field(default_factory=list, alias="selectedIds")


class CloseRequest(_Request):
    """Call close before drawing."""
    room_id: str = Field(alias="roomId")


class LeaveRoomRequest(_Request):
    """Give up the seat immediately."""
    room_id: str = Field(alias="roomId")
