import pytest
from starlette.websockets import WebSocketDisconnect


def _auth(token):
    return {"X-Auth-Token": token}


@pytest.fixture
def api_room(client):
    response = client.post("/rooms/", json={"max_users": 2})
    assert response.status_code == 201
    return response.json()["room_id"]


def test_create_room_without_body_uses_defaults(client):
    response = client.post("/rooms/")
    assert response.status_code == 201
    room_id = response.json()["room_id"]
    info = client.get(f"/rooms/{room_id}").json()
    assert info == {"room_id": room_id, "connected_count": 0, "max_users": 5}


def test_room_info_needs_no_token(client, api_room):
    client.get(f"/rooms/{api_room}/messages", headers=_auth("t1"))
    response = client.get(f"/rooms/{api_room}")
    assert response.status_code == 200
    assert response.json()["connected_count"] == 1


def test_unknown_room_is_404(client):
    response = client.get("/rooms/missing/messages", headers=_auth("t1"))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ROOM_NOT_FOUND"
    assert client.get("/rooms/missing").status_code == 404


def test_missing_token_is_401(client, api_room):
    response = client.get(f"/rooms/{api_room}/messages")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_full_room_is_403_for_newcomers_only(client, api_room):
    assert client.get(f"/rooms/{api_room}/ttl", headers=_auth("t1")).status_code == 200
    assert client.get(f"/rooms/{api_room}/ttl", headers=_auth("t2")).status_code == 200

    response = client.get(f"/rooms/{api_room}/ttl", headers=_auth("t3"))
    assert response.status_code == 403
    assert response.json()["error"] == {"code": "ROOM_FULL", "message": "Room is at maximum capacity"}

    assert client.get(f"/rooms/{api_room}/ttl", headers=_auth("t1")).status_code == 200
    assert client.get(f"/rooms/{api_room}").json()["connected_count"] == 2


def test_token_cookie_is_accepted(client, api_room):
    client.cookies.set("x-auth-token", "cookie-token")
    response = client.post(f"/rooms/{api_room}/messages", json={"sender": "alice", "text": "hi"})
    assert response.status_code == 201
    assert response.json()["owner_token"] == "cookie-token"


def test_ttl_endpoint(client, api_room):
    response = client.get(f"/rooms/{api_room}/ttl", headers=_auth("t1"))
    assert 0 < response.json()["ttl"] <= 1200


def test_message_flow(client, api_room):
    sent = client.post(
        f"/rooms/{api_room}/messages", json={"sender": "alice", "text": "hi"}, headers=_auth("t1")
    )
    assert sent.status_code == 201
    message = sent.json()
    assert message["owner_token"] == "t1"
    assert message["reactions"] == [] and message["read_by"] == []

    react = {"message_id": message["id"], "emoji": "👍", "username": "bob"}
    assert client.post(f"/rooms/{api_room}/messages/react", json=react, headers=_auth("t2")).json() == {"success": True}
    read = {"message_id": message["id"], "username": "bob"}
    assert client.post(f"/rooms/{api_room}/messages/read", json=read, headers=_auth("t2")).json() == {"success": True}

    as_bob = client.get(f"/rooms/{api_room}/messages", headers=_auth("t2")).json()
    assert len(as_bob) == 1
    assert "owner_token" not in as_bob[0]
    assert as_bob[0]["reactions"] == [{"emoji": "👍", "users": ["bob"]}]
    assert as_bob[0]["read_by"] == ["bob"]

    as_alice = client.get(f"/rooms/{api_room}/messages", headers=_auth("t1")).json()
    assert as_alice[0]["owner_token"] == "t1"


def test_reaction_on_unknown_message_is_404(client, api_room):
    body = {"message_id": "nope", "emoji": "👍", "username": "bob"}
    response = client.post(f"/rooms/{api_room}/messages/react", json=body, headers=_auth("t1"))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "MESSAGE_NOT_FOUND"


@pytest.mark.parametrize(
    "body",
    [
        {"sender": "alice", "text": "x" * 1001},
        {"sender": "a" * 101, "text": "hi"},
        {"sender": "alice"},
        {"sender": "alice", "text": ""},
    ],
)
def test_oversized_or_malformed_messages_are_400(client, api_room, body):
    response = client.post(f"/rooms/{api_room}/messages", json=body, headers=_auth("t1"))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert client.get(f"/rooms/{api_room}/messages", headers=_auth("t1")).json() == []


def test_typing_status(client, api_room):
    body = {"username": "alice", "is_typing": True}
    response = client.post(f"/rooms/{api_room}/typing", json=body, headers=_auth("t1"))
    assert response.json() == {"success": True}


def test_destroy_room(client, api_room):
    client.post(f"/rooms/{api_room}/messages", json={"sender": "alice", "text": "hi"}, headers=_auth("t1"))
    response = client.delete(f"/rooms/{api_room}", headers=_auth("t1"))
    assert response.status_code == 204

    assert client.get(f"/rooms/{api_room}").status_code == 404
    assert client.get(f"/rooms/{api_room}/messages", headers=_auth("t1")).status_code == 404


def test_destroy_requires_admission(client, api_room):
    client.get(f"/rooms/{api_room}/ttl", headers=_auth("t1"))
    client.get(f"/rooms/{api_room}/ttl", headers=_auth("t2"))
    assert client.delete(f"/rooms/{api_room}", headers=_auth("t3")).status_code == 403
    assert client.delete(f"/rooms/{api_room}").status_code == 401
    assert client.get(f"/rooms/{api_room}").status_code == 200


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "redis": True}


def test_websocket_relays_room_events(client, api_room):
    with client.websocket_connect(f"/rooms/{api_room}/ws?token=t1") as ws:
        assert ws.receive_json() == {"event": "system.connected", "data": {"room_id": api_room}}

        client.post(f"/rooms/{api_room}/messages", json={"sender": "alice", "text": "hi"}, headers=_auth("t1"))
        created = ws.receive_json()
        assert created["event"] == "message.created"
        assert created["data"]["text"] == "hi"
        assert created["data"].get("owner_token") is None

        client.delete(f"/rooms/{api_room}", headers=_auth("t1"))
        assert ws.receive_json() == {"event": "room.destroyed", "data": {"is_destroyed": True}}

        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


def test_websocket_rejects_newcomer_to_full_room(client, api_room):
    client.get(f"/rooms/{api_room}/ttl", headers=_auth("t1"))
    client.get(f"/rooms/{api_room}/ttl", headers=_auth("t2"))
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/rooms/{api_room}/ws?token=t3"):
            pass
    assert exc_info.value.code == 1008
