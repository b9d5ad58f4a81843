"""Tests for the FastAPI room and game interface."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from othelloroom import api
from othelloroom.api import app


api.scheduler.delay = 0.0


def _client() -> TestClient:
    return TestClient(app)


def _two_player_room(**options):
    host, guest = _client(), _client()
    created = host.post("/api/room", json=options).json()
    room_id = created["roomId"]
    assert host.post(f"/api/room/{room_id}/join").status_code == 200
    joined = guest.post(f"/api/room/{room_id}/join", params={"code": created["inviteCode"]})
    assert joined.status_code == 200
    return room_id, created, host, guest


def _by_colour(room_id, host, guest):
    me = host.get(f"/api/game/{room_id}").json()["me"]
    return (host, guest) if me == "black" else (guest, host)


def test_create_invite_room():
    response = _client().post("/api/room", json={"allowSpectators": True})
    assert response.status_code == 200
    payload = response.json()
    assert len(payload["roomId"]) == 32
    assert len(payload["inviteCode"]) == 6
    assert len(payload["spectatorCode"]) == 6


def test_join_sets_token_cookie_and_reports_room():
    host = _client()
    created = host.post("/api/room", json={}).json()
    joined = host.post(f"/api/room/{created['roomId']}/join")
    assert joined.status_code == 200
    assert api.TOKEN_COOKIE in joined.cookies
    info = joined.json()
    assert info["role"] == "player"
    assert info["inviteCode"] == created["inviteCode"]
    assert info["playersCount"] == 1
    assert info["remainingSeconds"] is None

    again = host.get(f"/api/room/{created['roomId']}")
    assert again.status_code == 200
    assert again.json()["playersCount"] == 1


def test_second_player_needs_the_code():
    host, guest = _client(), _client()
    created = host.post("/api/room", json={}).json()
    room_id = created["roomId"]
    host.post(f"/api/room/{room_id}/join")

    missing = guest.post(f"/api/room/{room_id}/join")
    assert missing.status_code == 403
    assert missing.json()["error"] == "invite-code-required"

    wrong = guest.post(f"/api/room/{room_id}/join", params={"code": "ZZZZZ9"})
    assert wrong.status_code == 403
    assert wrong.json()["error"] == "code-invalid"


def test_full_game_flow():
    room_id, created, host, guest = _two_player_room()
    black, white = _by_colour(room_id, host, guest)

    snapshot = white.get(f"/api/game/{room_id}").json()
    assert snapshot["me"] == "white"
    assert snapshot["state"]["status"] == "playing"
    assert snapshot["state"]["turn"] == 1

    out_of_turn = white.post(f"/api/game/{room_id}/move", json={"x": 4, "y": 2})
    assert out_of_turn.status_code == 409
    assert out_of_turn.json()["error"] == "not-your-turn"

    illegal = black.post(f"/api/game/{room_id}/move", json={"x": 0, "y": 0})
    assert illegal.status_code == 400
    assert illegal.json()["error"] == "illegal-move"

    no_pass = black.post(f"/api/game/{room_id}/pass")
    assert no_pass.status_code == 409
    assert no_pass.json()["error"] == "pass-not-allowed"

    moved = black.post(f"/api/game/{room_id}/move", json={"x": 3, "y": 2})
    assert moved.status_code == 200

    state = white.get(f"/api/game/{room_id}").json()["state"]
    assert state["turn"] == 2
    assert (state["blackCount"], state["whiteCount"]) == (4, 1)
    assert state["lastMove"] == {"x": 3, "y": 2, "player": 1}


def test_move_payload_is_validated():
    room_id, _, host, _ = _two_player_room()
    response = host.post(f"/api/game/{room_id}/move", json={"x": 8, "y": 0})
    assert response.status_code == 422


def test_ttl_endpoint():
    host = _client()
    created = host.post("/api/room", json={"ttlSeconds": 120}).json()
    room_id = created["roomId"]
    host.post(f"/api/room/{room_id}/join")
    assert host.get(f"/api/room/{room_id}/ttl").json() == {"ttl": None}

    guest = _client()
    guest.post(f"/api/room/{room_id}/join", params={"code": created["inviteCode"]})
    ttl = host.get(f"/api/room/{room_id}/ttl").json()["ttl"]
    assert 0 < ttl <= 120


def test_resolve_code():
    room_id, created, _, _ = _two_player_room()
    stranger = _client()

    invalid = stranger.get("/api/room/resolve", params={"code": "nope"})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "invalid-format"

    full = stranger.get("/api/room/resolve", params={"code": created["inviteCode"].lower()})
    assert full.status_code == 409
    assert full.json()["error"] == "room-full"

    fresh = stranger.post("/api/room", json={}).json()
    resolved = stranger.get("/api/room/resolve", params={"code": fresh["inviteCode"]})
    assert resolved.json() == {"roomId": fresh["roomId"]}


def test_spectators_watch_but_cannot_act():
    host, watcher = _client(), _client()
    created = host.post("/api/room", json={"allowSpectators": True}).json()
    room_id = created["roomId"]
    host.post(f"/api/room/{room_id}/join")

    joined = watcher.post(f"/api/room/{room_id}/join", params={"code": created["spectatorCode"]})
    info = joined.json()
    assert info["role"] == "spectator"
    assert info["inviteCode"] is None

    assert watcher.get(f"/api/game/{room_id}").json()["me"] is None
    move = watcher.post(f"/api/game/{room_id}/move", json={"x": 3, "y": 2})
    assert move.status_code == 403
    assert move.json()["error"] == "not-a-player"
    destroy = watcher.delete(f"/api/room/{room_id}")
    assert destroy.status_code == 403
    assert destroy.json()["error"] == "forbidden"


def test_strangers_are_unauthorized():
    room_id, _, _, _ = _two_player_room()
    response = _client().get(f"/api/game/{room_id}")
    assert response.status_code == 401


def test_destroy_room():
    room_id, _, host, guest = _two_player_room()
    assert host.delete(f"/api/room/{room_id}").json() == {"ok": True}

    gone = guest.get(f"/api/game/{room_id}")
    assert gone.status_code == 404
    assert gone.json()["error"] == "room-not-found"
    assert host.delete(f"/api/room/{room_id}").status_code == 404


def test_match_pairs_two_players():
    first, second = _client(), _client()
    room_a = first.post("/api/room/match").json()["roomId"]
    first.post(f"/api/room/{room_a}/join")
    room_b = second.post("/api/room/match").json()["roomId"]
    assert room_b == room_a
    second.post(f"/api/room/{room_b}/join")

    state = first.get(f"/api/game/{room_a}").json()["state"]
    assert state["status"] == "playing"


def test_ai_replies_after_snapshot():
    human = _client()
    room_id = human.post(
        "/api/room/ai", json={"aiLevel": "easy", "humanPlays": "white"}
    ).json()["roomId"]
    assert human.post(f"/api/room/{room_id}/join").json()["aiLevel"] == "easy"

    deadline = time.time() + 5
    snapshot = human.get(f"/api/game/{room_id}").json()
    assert snapshot["me"] == "white"
    while snapshot["state"]["turn"] != 2 and time.time() < deadline:
        time.sleep(0.02)
        snapshot = human.get(f"/api/game/{room_id}").json()

    state = snapshot["state"]
    assert state["turn"] == 2
    assert state["lastMove"]["player"] == 1
    assert (state["blackCount"], state["whiteCount"]) == (4, 1)


def test_rejects_unknown_ai_level():
    response = _client().post("/api/room/ai", json={"aiLevel": "grandmaster"})
    assert response.status_code == 422


def test_websocket_rejects_strangers():
    room_id, _, _, _ = _two_player_room()
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with _client().websocket_connect(f"/ws/room/{room_id}") as ws:
            ws.receive_json()
    assert excinfo.value.code == 4401


def test_websocket_announces_destroy():
    room_id, _, host, guest = _two_player_room()
    with guest.websocket_connect(f"/ws/room/{room_id}") as ws:
        host.delete(f"/api/room/{room_id}")
        frame = ws.receive_json()
    assert frame == {"event": "room.destroyed", "payload": {"isDestroyed": True}}


def test_inspect_missing_room_returns_404():
    missing = _client().get("/api/room/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["error"] == "room-not-found"
