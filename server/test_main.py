"""
Tests for the /ws endpoint loop: bad frames and connection teardown.

Run with: pytest test_main.py -v
"""

import pytest
from fastapi.testclient import TestClient

import main


def create_room(ws, player_id):
    ws.send_json({"type": "create_room", "name": "Ada", "playerId": player_id})
    created = ws.receive_json()
    ws.receive_json()  # game_state
    return created["roomId"]


def test_malformed_frames_are_reported_not_fatal():
    client = TestClient(main.app)
    with client.websocket_connect("/ws") as ws:
        code = create_room(ws, "frame-tester")

        ws.send_text("not json")
        assert ws.receive_json()["code"] == "InvalidPayload"

        ws.send_text("[1, 2, 3]")
        assert ws.receive_json()["code"] == "InvalidPayload"

        # Still serving the connection
        ws.send_json({"type": "join_room", "roomId": "ZZZZ", "name": "Ada"})
        assert ws.receive_json()["code"] == "RoomNotFound"

    room = main.room_manager.get_room(code)
    assert room.game.get_player("frame-tester").connected is False
    assert main.room_manager.has_pending_removal(code, "frame-tester")
    main.room_manager.remove_room(code)


def test_unexpected_error_still_starts_grace_period(monkeypatch):
    async def broken_dispatch(data, ctx, **deps):
        raise RuntimeError("handler blew up")

    client = TestClient(main.app)
    with pytest.raises(RuntimeError):
        with client.websocket_connect("/ws") as ws:
            code = create_room(ws, "crash-tester")
            monkeypatch.setattr(main, "dispatch", broken_dispatch)
            ws.send_json({"type": "action_draw", "roomId": code})
            ws.receive_json()

    room = main.room_manager.get_room(code)
    assert room.game.get_player("crash-tester").connected is False
    assert main.room_manager.has_pending_removal(code, "crash-tester")
    main.room_manager.remove_room(code)
