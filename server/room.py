"""
Room management for multiplayer Close Rummy games.

This module handles room creation, player management, reconnection, and
WebSocket communication for multiplayer game sessions.

A Room contains:
    - A unique 4-character code for joining
    - A collection of RoomPlayers in seat order
    - A Game instance with the actual round state
    - A lock serializing every mutation of that state

Players are keyed by a stable logical id chosen by the client, not by
their connection. A dropped connection only marks the player offline; the
seat is held for a grace period before the player is removed.
"""

import asyncio
import logging
import random
import secrets
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol

from fastapi import WebSocket

from constants import (
    MAX_NAME_LENGTH,
    RECONNECT_GRACE_SECONDS,
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
)
from errors import InvalidName, NotHost, NotInRoom, RoomNotFound, SeatTaken
from game import Game, Player

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Default scheduler: run `callback` on the event loop after `delay` seconds."""
    return asyncio.get_running_loop().call_later(delay, callback)


def clean_name(name: Optional[str]) -> str:
    """
    Trim and truncate a display name.

    Raises:
        InvalidName: If nothing is left after trimming.
    """
    cleaned = (name or "").strip()[:MAX_NAME_LENGTH].strip()
    if not cleaned:
        raise InvalidName()
    return cleaned


@dataclass
class RoomPlayer:
    """
    A player in a game room (lobby-level representation).

    This is separate from game.Player - RoomPlayer tracks the player's
    current connection, while game.Player tracks in-game state like
    cards, scores and whether the player is online.

    Attributes:
        id: Stable logical player identifier.
        name: Display name.
        websocket: Current WebSocket connection (None while offline).
        connection_id: Id of the connection currently bound to this seat.
        token: Secret handed only to the seat owner; required to reclaim
            the seat from a new connection.
    """

    id: str
    name: str
    websocket: Optional[WebSocket] = None
    connection_id: Optional[str] = None
    token: str = field(default_factory=lambda: secrets.token_urlsafe(16), repr=False)


@dataclass
class Room:
    """
    A game room that hosts a Close Rummy table.

    Attributes:
        code: Room code for joining (e.g., "AB3D").
        host_id: Player who may start rounds.
        players: Dict mapping player IDs to RoomPlayer objects, in seat order.
        game: The Game instance containing round state.
        game_lock: asyncio.Lock for serializing game mutations.
    """

    code: str
    host_id: Optional[str] = None
    players: dict[str, RoomPlayer] = field(default_factory=dict)
    game: Game = field(default_factory=Game)
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def add_player(
        self,
        player_id: str,
        name: str,
        websocket: Optional[WebSocket] = None,
        connection_id: Optional[str] = None,
    ) -> RoomPlayer:
        """
        Seat a new player at the end of the roster.

        The first player to join becomes the host.

        Raises:
            RoomFull: If the roster is at capacity.
            RoundInProgress: If a round is being played.
        """
        self.game.add_player(Player(id=player_id, name=name))

        room_player = RoomPlayer(
            id=player_id,
            name=name,
            websocket=websocket,
            connection_id=connection_id,
        )
        self.players[player_id] = room_player
        if self.host_id is None:
            self.host_id = player_id

        self.game.add_log(f"{name} joined the room")
        return room_player

    def reattach(
        self,
        player_id: str,
        websocket: Optional[WebSocket],
        connection_id: Optional[str] = None,
    ) -> RoomPlayer:
        """Bind a new connection to an existing seat and mark it online."""
        room_player = self.players[player_id]
        room_player.websocket = websocket
        room_player.connection_id = connection_id

        game_player = self.game.get_player(player_id)
        if not game_player.connected:
            game_player.connected = True
            self.game.add_log(f"{room_player.name} reconnected")
        return room_player

    def mark_disconnected(self, player_id: str) -> None:
        """Drop the player's connection but keep their seat and hand."""
        room_player = self.players[player_id]
        room_player.websocket = None
        room_player.connection_id = None
        self.game.get_player(player_id).connected = False
        self.game.add_log(f"{room_player.name} disconnected")

    def remove_player(self, player_id: str) -> Optional[RoomPlayer]:
        """
        Remove a player from the room.

        Hands the host role to the next player in seat order if the host
        leaves. Turn hand-off is handled by Game.remove_player.

        Returns:
            The removed RoomPlayer, or None if not found.
        """
        if player_id not in self.players:
            return None

        idx = self.game.index_of(player_id)
        room_player = self.players.pop(player_id)
        self.game.remove_player(player_id)
        self.game.add_log(f"{room_player.name} left")

        if self.host_id == player_id:
            if self.game.players:
                new_host = self.game.players[idx % len(self.game.players)]
                self.host_id = new_host.id
                self.game.add_log(f"New host: {new_host.name}")
            else:
                self.host_id = None

        return room_player

    def get_player(self, player_id: str) -> Optional[RoomPlayer]:
        """Get a player by ID, or None if not found."""
        return self.players.get(player_id)

    def is_empty(self) -> bool:
        """Check if the room has no players."""
        return len(self.players) == 0

    def snapshot_for(self, player_id: str) -> dict:
        """
        Full game state for one player, including room-level fields.

        Args:
            player_id: The recipient.
        """
        state = self.game.get_state(player_id)
        for player_data in state["players"]:
            player_data["isHost"] = player_data["id"] == self.host_id
        state.update({
            "roomId": self.code,
            "hostId": self.host_id,
            "youId": player_id,
        })
        return state

    async def broadcast(self, message: dict) -> None:
        """
        Send a message to every connected player in the room.

        Args:
            message: JSON-serializable message dict.
        """
        for player_id in list(self.players):
            await self.send_to(player_id, message)

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to a specific player.

        Args:
            player_id: ID of the recipient player.
            message: JSON-serializable message dict.
        """
        player = self.players.get(player_id)
        if player and player.websocket:
            try:
                await player.websocket.send_json(message)
            except Exception as e:
                logger.debug(f"Send to {player_id} in {self.code} failed: {e}")


class RoomManager:
    """
    Manages all active game rooms.

    Provides room creation with unique codes, lookup, joining, and the
    disconnect grace period. A single RoomManager instance is used by
    the server; tests inject a fake scheduler to drive grace timers.
    """

    def __init__(
        self,
        grace_seconds: float = RECONNECT_GRACE_SECONDS,
        scheduler: Optional[Scheduler] = None,
        on_player_removed: Optional[Callable[[Room, RoomPlayer], Awaitable[None]]] = None,
    ) -> None:
        """
        Initialize an empty room manager.

        Args:
            grace_seconds: How long a disconnected player keeps their seat.
            scheduler: Callable(delay, callback) returning a cancellable handle.
            on_player_removed: Awaited after a grace-period removal, with
                the room lock still held, e.g. to broadcast the updated state.
        """
        self.rooms: dict[str, Room] = {}
        self.grace_seconds = grace_seconds
        self.scheduler = scheduler or call_later
        self.on_player_removed = on_player_removed
        self._pending_removals: dict[tuple[str, str], TimerHandle] = {}
        self._expiry_tasks: set[asyncio.Task] = set()

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique room code."""
        for _ in range(max_attempts):
            code = "".join(random.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def create_room(
        self,
        name: str,
        player_id: str,
        websocket: Optional[WebSocket] = None,
        connection_id: Optional[str] = None,
    ) -> Room:
        """
        Create a new room with the creator as host and sole member.

        Raises:
            InvalidName: If the name is empty after trimming.
        """
        name = clean_name(name)
        code = self._generate_code()
        room = Room(code=code)
        room.add_player(player_id, name, websocket, connection_id)
        self.rooms[code] = room
        room.game.add_log(f"{name} created room {code}")
        logger.info(f"Room created: {code} by {name}")
        return room

    def join_room(
        self,
        code: str,
        name: str,
        player_id: str,
        websocket: Optional[WebSocket] = None,
        connection_id: Optional[str] = None,
        token: Optional[str] = None,
    ) -> tuple[Room, bool]:
        """
        Join a room in the lobby, or reclaim a seat already held.

        A player id that is already seated in the room is a reconnection,
        allowed at any phase, but only with the seat's token.

        Returns:
            (room, reconnected)

        Raises:
            RoomNotFound, SeatTaken, InvalidName, RoomFull, RoundInProgress
        """
        room = self.get_room(code or "")
        if room is None:
            raise RoomNotFound((code or "").strip().upper())

        if player_id in room.players:
            seat_token = room.players[player_id].token
            if not token or not secrets.compare_digest(token.encode(), seat_token.encode()):
                raise SeatTaken()
            self.reconnect(room, player_id, websocket, connection_id)
            return room, True

        name = clean_name(name)
        room.add_player(player_id, name, websocket, connection_id)
        logger.info(f"{name} joined room {room.code}")
        return room, False

    def start_round(self, room: Room, actor_id: str) -> None:
        """
        Start a round on behalf of the host.

        Raises:
            NotInRoom, NotHost, RoundInProgress, InsufficientPlayers
        """
        if actor_id not in room.players:
            raise NotInRoom()
        if room.host_id != actor_id:
            raise NotHost()
        room.game.start_round()
        logger.info(f"Round {room.game.round_number} started in {room.code}")

    def get_room(self, code: str) -> Optional[Room]:
        """
        Get a room by its code (case-insensitive).

        Args:
            code: The room code.

        Returns:
            The Room if found, None otherwise.
        """
        return self.rooms.get(code.strip().upper())

    def remove_room(self, code: str) -> None:
        """
        Delete a room and cancel any pending removals in it.

        Args:
            code: The room code to remove.
        """
        if code in self.rooms:
            del self.rooms[code]
            logger.info(f"Room {code} closed")
        for key in [k for k in self._pending_removals if k[0] == code]:
            self._pending_removals.pop(key).cancel()

    def find_player_room(self, player_id: str) -> Optional[Room]:
        """Find the room a player id is seated in, or None."""
        for room in self.rooms.values():
            if player_id in room.players:
                return room
        return None

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    def reconnect(
        self,
        room: Room,
        player_id: str,
        websocket: Optional[WebSocket],
        connection_id: Optional[str] = None,
    ) -> RoomPlayer:
        """Cancel any pending removal and bind the new connection to the seat."""
        self._cancel_removal(room.code, player_id)
        room_player = room.reattach(player_id, websocket, connection_id)
        logger.info(f"{room_player.name} reconnected to {room.code}")
        return room_player

    def player_disconnected(
        self,
        room: Room,
        player_id: str,
        connection_id: Optional[str] = None,
    ) -> bool:
        """
        Mark a player offline and start their grace timer.

        A close from a connection that no longer owns the seat (the player
        already reconnected elsewhere) is ignored.

        Returns:
            True if the player was marked offline.
        """
        room_player = room.get_player(player_id)
        if room_player is None:
            return False
        if connection_id is not None and room_player.connection_id != connection_id:
            return False

        room.mark_disconnected(player_id)
        self._cancel_removal(room.code, player_id)
        key = (room.code, player_id)
        self._pending_removals[key] = self.scheduler(
            self.grace_seconds,
            lambda: self._fire_removal(*key),
        )
        logger.info(
            f"{room_player.name} disconnected from {room.code}, "
            f"holding seat for {self.grace_seconds}s"
        )
        return True

    def leave_room(self, room: Room, player_id: str) -> Optional[RoomPlayer]:
        """Remove a player immediately (explicit leave)."""
        self._cancel_removal(room.code, player_id)
        return self._remove_player(room, player_id)

    def has_pending_removal(self, code: str, player_id: str) -> bool:
        return (code, player_id) in self._pending_removals

    def _cancel_removal(self, code: str, player_id: str) -> None:
        handle = self._pending_removals.pop((code, player_id), None)
        if handle is not None:
            handle.cancel()

    def _fire_removal(self, code: str, player_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self.expire_player(code, player_id))
        self._expiry_tasks.add(task)
        task.add_done_callback(self._expiry_tasks.discard)

    async def expire_player(self, code: str, player_id: str) -> Optional[RoomPlayer]:
        """
        Remove a player whose grace period ran out.

        Does nothing if the removal was cancelled by a reconnect or the
        player is back online by the time the room lock is acquired.

        Returns:
            The removed RoomPlayer, or None if nothing was removed.
        """
        if self._pending_removals.pop((code, player_id), None) is None:
            return None
        room = self.rooms.get(code)
        if room is None:
            return None

        async with room.game_lock:
            game_player = room.game.get_player(player_id)
            if game_player is None or game_player.connected:
                return None
            removed = self._remove_player(room, player_id)
            if removed and self.on_player_removed and not room.is_empty():
                await self.on_player_removed(room, removed)
        return removed

    def _remove_player(self, room: Room, player_id: str) -> Optional[RoomPlayer]:
        removed = room.remove_player(player_id)
        if removed:
            logger.info(f"{removed.name} removed from {room.code}")
        if room.is_empty():
            self.remove_room(room.code)
        return removed
