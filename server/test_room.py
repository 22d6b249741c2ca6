"""
Test suite for Room and RoomManager.

Covers:
- Room creation, unique codes and name validation
- Joining: ordering, capacity, round-in-progress, case-insensitive codes
- Host-only round start
- Leaving with host reassignment and room teardown
- Disconnect grace period, reconnection and expiry
- Message broadcast and send_to

Run with: pytest test_room.py -v
"""

import asyncio

import pytest

from errors import (
    InsufficientPlayers,
    InvalidName,
    NotHost,
    NotInRoom,
    RoomFull,
    RoomNotFound,
    RoundInProgress,
    SeatTaken,
)
from game import RoundPhase
from room import Room, RoomManager, clean_name


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)


class BrokenWebSocket:
    async def send_json(self, data: dict):
        raise RuntimeError("connection reset")


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records scheduled callbacks instead of running them."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer


def make_manager(grace_seconds=60, on_player_removed=None):
    scheduler = FakeScheduler()
    rm = RoomManager(
        grace_seconds=grace_seconds,
        scheduler=scheduler,
        on_player_removed=on_player_removed,
    )
    return rm, scheduler


def make_room(rm, num_players=3):
    """Create a room with players p0..pN-1 seated in order; p0 is host."""
    room = rm.create_room("Player 0", "p0", MockWebSocket(), "conn-p0")
    for i in range(1, num_players):
        rm.join_room(room.code, f"Player {i}", f"p{i}", MockWebSocket(), f"conn-p{i}")
    return room


# =============================================================================
# Names
# =============================================================================

class TestCleanName:

    def test_trims_whitespace(self):
        assert clean_name("  Ada  ") == "Ada"

    def test_truncates_to_15(self):
        assert clean_name("A" * 40) == "A" * 15

    def test_blank_rejected(self):
        with pytest.raises(InvalidName):
            clean_name("   ")
        with pytest.raises(InvalidName):
            clean_name(None)


# =============================================================================
# Create / Join
# =============================================================================

class TestRoomManagerCreate:

    def test_create_room(self):
        rm, _ = make_manager()
        room = rm.create_room("Ada", "p0")
        assert len(room.code) == 4
        assert room.code in rm.rooms
        assert room.host_id == "p0"
        assert list(room.players) == ["p0"]
        assert room.game.phase == RoundPhase.LOBBY

    def test_codes_unique(self):
        rm, _ = make_manager()
        codes = {rm.create_room("Ada", f"p{i}").code for i in range(30)}
        assert len(codes) == 30

    def test_code_alphabet_avoids_ambiguous_characters(self):
        rm, _ = make_manager()
        for i in range(30):
            code = rm.create_room("Ada", f"p{i}").code
            assert not set(code) & set("IO01")

    def test_invalid_name_creates_nothing(self):
        rm, _ = make_manager()
        with pytest.raises(InvalidName):
            rm.create_room("   ", "p0")
        assert rm.rooms == {}


class TestRoomManagerJoin:

    def test_join_appends_in_order(self):
        rm, _ = make_manager()
        room = make_room(rm, 3)
        assert [p.id for p in room.game.players] == ["p0", "p1", "p2"]
        assert room.host_id == "p0"

    def test_join_case_insensitive(self):
        rm, _ = make_manager()
        room = rm.create_room("Ada", "p0")
        joined, reconnected = rm.join_room(f" {room.code.lower()} ", "Bob", "p1")
        assert joined is room
        assert reconnected is False

    def test_join_unknown_room(self):
        rm, _ = make_manager()
        with pytest.raises(RoomNotFound):
            rm.join_room("ZZZZ", "Bob", "p1")

    def test_join_invalid_name(self):
        rm, _ = make_manager()
        room = rm.create_room("Ada", "p0")
        with pytest.raises(InvalidName):
            rm.join_room(room.code, "", "p1")
        assert list(room.players) == ["p0"]

    def test_room_full(self):
        rm, _ = make_manager()
        room = make_room(rm, 7)
        with pytest.raises(RoomFull):
            rm.join_room(room.code, "Late", "p7")
        assert len(room.players) == 7

    def test_cannot_join_mid_round(self):
        rm, _ = make_manager()
        room = make_room(rm, 2)
        rm.start_round(room, "p0")
        with pytest.raises(RoundInProgress):
            rm.join_room(room.code, "Late", "p9")
        assert "p9" not in room.players


class TestStartRound:

    def test_host_starts(self):
        rm, _ = make_manager()
        room = make_room(rm, 2)
        rm.start_round(room, "p0")
        assert room.game.phase == RoundPhase.IN_ROUND

    def test_non_host_rejected(self):
        rm, _ = make_manager()
        room = make_room(rm, 2)
        with pytest.raises(NotHost):
            rm.start_round(room, "p1")
        assert room.game.phase == RoundPhase.LOBBY

    def test_stranger_rejected(self):
        rm, _ = make_manager()
        room = make_room(rm, 2)
        with pytest.raises(NotInRoom):
            rm.start_round(room, "nobody")

    def test_needs_two_players(self):
        rm, _ = make_manager()
        room = make_room(rm, 1)
        with pytest.raises(InsufficientPlayers):
            rm.start_round(room, "p0")


# =============================================================================
# Leave / host reassignment
# =============================================================================

class TestLeave:

    def test_host_passes_to_next_in_roster(self):
        rm, _ = make_manager()
        room = make_room(rm, 3)
        rm.leave_room(room, "p0")
        assert room.host_id == "p1"

    def test_host_wraps_to_front(self):
        rm, _ = make_manager()
        room = make_room(rm, 3)
        rm.leave_room(room, "p0")
        rm.leave_room(room, "p1")
        rm.join_room(room.code, "Player 3", "p3")
        room.host_id = "p3"
        rm.leave_room(room, "p3")
        assert room.host_id == "p2"

    def test_non_host_leaving_keeps_host(self):
        rm, _ = make_manager()
        room = make_room(rm, 3)
        rm.leave_room(room, "p1")
        assert room.host_id == "p0"
        assert [p.id for p in room.game.players] == ["p0", "p2"]

    def test_last_player_destroys_room(self):
        rm, _ = make_manager()
        room = rm.create_room("Ada", "p0")
        rm.leave_room(room, "p0")
        assert rm.get_room(room.code) is None

    def test_leave_mid_round_abandons_two_player_round(self):
        rm, _ = make_manager()
        room = make_room(rm, 2)
        rm.start_round(room, "p0")
        rm.leave_room(room, "p1")
        assert room.game.phase == RoundPhase.LOBBY
        assert room.host_id == "p0"

    def test_leave_mid_round_keeps_cards(self):
        rm, _ = make_manager()
        room = make_room(rm, 3)
        rm.start_round(room, "p0")
        rm.leave_room(room, "p0")
        assert room.game.phase == RoundPhase.IN_ROUND
        assert room.game.turn_player_id == "p1"
        assert room.game.card_count() == 54

    def test_find_player_room(self):
        rm, _ = make_manager()
        room = make_room(rm, 2)
        assert rm.find_player_room("p1") is room
        assert rm.find_player_room("ghost") is None


# =============================================================================
# Disconnect / reconnect
# =============================================================================

class TestGracePeriod:

    def test_disconnect_holds_seat(self):
        rm, scheduler = make_manager(grace_seconds=60)
        room = make_room(rm, 2)

        assert rm.player_disconnected(room, "p1", "conn-p1")

        assert "p1" in room.players
        assert room.players["p1"].websocket is None
        assert room.game.get_player("p1").connected is False
        assert rm.has_pending_removal(room.code, "p1")
        assert scheduler.timers[-1].delay == 60

    def test_stale_connection_ignored(self):
        rm, scheduler = make_manager()
        room = make_room(rm, 2)
        assert not rm.player_disconnected(room, "p1", "old-conn")
        assert room.game.get_player("p1").connected
        assert scheduler.timers == []

    def test_reconnect_cancels_removal(self):
        rm, scheduler = make_manager()
        room = make_room(rm, 2)
        rm.player_disconnected(room, "p1", "conn-p1")
        timer = scheduler.timers[-1]

        ws = MockWebSocket()
        token = room.players["p1"].token
        joined, reconnected = rm.join_room(room.code, "", "p1", ws, "conn-new", token=token)

        assert joined is room
        assert reconnected
        assert timer.cancelled
        assert not rm.has_pending_removal(room.code, "p1")
        assert room.players["p1"].websocket is ws
        assert room.game.get_player("p1").connected

    def test_reclaiming_seat_needs_token(self):
        rm, scheduler = make_manager()
        room = make_room(rm, 2)
        rm.start_round(room, "p0")
        rm.player_disconnected(room, "p1", "conn-p1")
        intruder = MockWebSocket()

        with pytest.raises(SeatTaken):
            rm.join_room(room.code, "", "p1", intruder, "conn-x")
        with pytest.raises(SeatTaken):
            rm.join_room(room.code, "", "p1", intruder, "conn-x", token="guess")

        assert room.players["p1"].websocket is None
        assert not room.game.get_player("p1").connected
        assert rm.has_pending_removal(room.code, "p1")
        assert not scheduler.timers[-1].cancelled

    def test_tokens_differ_per_seat(self):
        rm, _ = make_manager()
        room = make_room(rm, 3)
        tokens = {p.token for p in room.players.values()}
        assert len(tokens) == 3

    def test_reconnect_mid_round_keeps_hand(self):
        rm, _ = make_manager()
        room = make_room(rm, 2)
        rm.start_round(room, "p0")
        hand = list(room.game.get_player("p1").hand)

        rm.player_disconnected(room, "p1", "conn-p1")
        token = room.players["p1"].token
        _, reconnected = rm.join_room(room.code, "whatever", "p1", MockWebSocket(), "c2", token=token)

        assert reconnected
        assert room.game.get_player("p1").hand == hand
        assert room.players["p1"].name == "Player 1"

    @pytest.mark.asyncio
    async def test_expiry_removes_player(self):
        removed_calls = []

        async def on_removed(room, removed):
            removed_calls.append((removed.id, room.game_lock.locked()))

        rm, _ = make_manager(on_player_removed=on_removed)
        room = make_room(rm, 3)
        rm.player_disconnected(room, "p0", "conn-p0")

        removed = await rm.expire_player(room.code, "p0")

        assert removed.id == "p0"
        assert "p0" not in room.players
        assert room.host_id == "p1"
        assert removed_calls == [("p0", True)]
        assert not room.game_lock.locked()
        assert not rm.has_pending_removal(room.code, "p0")

    @pytest.mark.asyncio
    async def test_expiry_after_reconnect_is_noop(self):
        rm, _ = make_manager()
        room = make_room(rm, 2)
        rm.player_disconnected(room, "p1", "conn-p1")
        rm.join_room(room.code, "", "p1", MockWebSocket(), "conn-new", token=room.players["p1"].token)

        assert await rm.expire_player(room.code, "p1") is None
        assert "p1" in room.players

    @pytest.mark.asyncio
    async def test_expiry_of_last_player_destroys_room(self):
        rm, _ = make_manager()
        room = rm.create_room("Ada", "p0", MockWebSocket(), "conn-p0")
        rm.player_disconnected(room, "p0", "conn-p0")

        await rm.expire_player(room.code, "p0")
        assert rm.get_room(room.code) is None

    @pytest.mark.asyncio
    async def test_expiry_mid_round_passes_turn(self):
        rm, _ = make_manager()
        room = make_room(rm, 3)
        rm.start_round(room, "p0")
        rm.player_disconnected(room, "p0", "conn-p0")

        await rm.expire_player(room.code, "p0")

        assert room.game.turn_player_id == "p1"
        assert room.game.card_count() == 54

    @pytest.mark.asyncio
    async def test_real_timer_fires(self):
        rm = RoomManager(grace_seconds=0.01)
        room = make_room(rm, 2)
        rm.player_disconnected(room, "p1", "conn-p1")

        await asyncio.sleep(0.1)

        assert "p1" not in room.players

    def test_removing_room_cancels_timers(self):
        rm, scheduler = make_manager()
        room = make_room(rm, 2)
        rm.player_disconnected(room, "p1", "conn-p1")
        rm.remove_room(room.code)
        assert scheduler.timers[-1].cancelled
        assert not rm.has_pending_removal(room.code, "p1")


# =============================================================================
# Room messaging and snapshots
# =============================================================================

class TestRoomMessaging:

    @pytest.mark.asyncio
    async def test_broadcast_reaches_connected_players(self):
        room = Room(code="TEST")
        ws0, ws1 = MockWebSocket(), MockWebSocket()
        room.add_player("p0", "Ada", ws0)
        room.add_player("p1", "Bob", ws1)
        room.add_player("p2", "Cy", None)

        await room.broadcast({"type": "ping"})

        assert ws0.messages == [{"type": "ping"}]
        assert ws1.messages == [{"type": "ping"}]

    @pytest.mark.asyncio
    async def test_send_failure_does_not_raise(self):
        room = Room(code="TEST")
        room.add_player("p0", "Ada", BrokenWebSocket())
        await room.send_to("p0", {"type": "ping"})

    def test_snapshot_has_room_fields(self):
        room = Room(code="TEST")
        room.add_player("p0", "Ada")
        room.add_player("p1", "Bob")

        state = room.snapshot_for("p1")

        assert state["roomId"] == "TEST"
        assert state["hostId"] == "p0"
        assert state["youId"] == "p1"
        assert [p["isHost"] for p in state["players"]] == [True, False]

    def test_log_records_joins(self):
        room = Room(code="TEST")
        room.add_player("p0", "Ada")
        assert "Ada joined the room" in room.game.log
