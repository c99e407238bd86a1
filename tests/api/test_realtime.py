# tests/api/test_realtime.py
# WebSocket room flows through the running app.

import pytest
from fastapi.testclient import TestClient

from clipshare.main_fastapi import create_app


def _create(client, content="hello", client_id="u1"):
    response = client.post("/api/clipboard", json={"content": content, "clientId": client_id})
    assert response.status_code == 201
    return response.json()["code"]


def _join(ws, code):
    ws.send_json({"event": "join-room", "data": code})
    assert ws.receive_json() == {"event": "room-joined", "data": {"code": code}}


def test_join_accepts_object_form(client):
    code = _create(client)

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "join-room", "data": {"code": code}})

        assert ws.receive_json() == {"event": "room-joined", "data": {"code": code}}


def test_fetch_notifies_room(client):
    code = _create(client)

    with client.websocket_connect("/ws") as ws:
        _join(ws, code)
        client.get(f"/api/clipboard/{code}")

        assert ws.receive_json() == {"event": "content-retrieved", "data": {"count": 1}}


def test_update_notifies_room(client):
    code = _create(client)

    with client.websocket_connect("/ws") as ws:
        _join(ws, code)
        client.put(f"/api/clipboard/{code}", json={"content": "world", "clientId": "u1"})

        message = ws.receive_json()
        assert message["event"] == "content-updated"
        assert message["data"]["updatedBy"] == "u1"
        assert isinstance(message["data"]["timestamp"], int)


def test_identify_broadcasts_viewer_count(client):
    code = _create(client)

    with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
        _join(first, code)
        _join(second, code)

        first.send_json({"event": "identify", "data": {"clientId": "u1", "code": code}})
        assert first.receive_json() == {"event": "viewers-updated", "data": {"count": 1}}
        assert second.receive_json() == {"event": "viewers-updated", "data": {"count": 1}}

        second.send_json({"event": "identify", "data": {"userId": "u2", "code": code}})
        assert first.receive_json()["data"] == {"count": 2}
        assert second.receive_json()["data"] == {"count": 2}


def test_leave_stops_notifications(client):
    code = _create(client)

    with client.websocket_connect("/ws") as ws:
        _join(ws, code)
        ws.send_json({"event": "leave-room", "data": code})
        assert ws.receive_json() == {"event": "room-left", "data": {"code": code}}

        client.get(f"/api/clipboard/{code}")
        # Next frame is the join ack, not a stale notification
        ws.send_json({"event": "join-room", "data": "other1"})
        assert ws.receive_json()["event"] == "room-joined"


def test_other_rooms_are_isolated(client):
    watched = _create(client)
    other = _create(client, content="other")

    with client.websocket_connect("/ws") as ws:
        _join(ws, watched)
        client.get(f"/api/clipboard/{other}")
        client.get(f"/api/clipboard/{watched}")

        assert ws.receive_json() == {"event": "content-retrieved", "data": {"count": 1}}


def test_disconnect_cleans_up_rooms(client):
    code = _create(client)
    hub = client.app.state.context.hub

    with client.websocket_connect("/ws") as ws:
        _join(ws, code)
        assert hub.room_size(code) == 1

    # Closing is processed asynchronously by the server task
    response = client.get(f"/api/clipboard/{code}")
    assert response.status_code == 200
    assert hub.room_size(code) == 0


@pytest.mark.parametrize("frame, expected_code", [
    ({"event": "dance", "data": {}}, "VALIDATION_ERROR"),
    ({"event": "join-room", "data": {}}, "VALIDATION_ERROR"),
    (["not", "an", "object"], "VALIDATION_ERROR"),
])
def test_bad_frames_get_error_event(client, frame, expected_code):
    with client.websocket_connect("/ws") as ws:
        ws.send_json(frame)

        message = ws.receive_json()
        assert message["event"] == "error"
        assert message["data"]["code"] == expected_code


def test_invalid_json_gets_error_event(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{nope")

        message = ws.receive_json()
        assert message["event"] == "error"

        # Connection survives the bad frame
        _join(ws, "abc123")


def test_binary_frame_gets_error_event(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")

        message = ws.receive_json()
        assert message == {
            "event": "error",
            "data": {"code": "VALIDATION_ERROR", "message": "Frames must be JSON text"},
        }

        _join(ws, "abc123")


def test_store_events_relayed(settings):
    settings = settings.model_copy(update={"STORE_EVENTS_ENABLED": True})
    app = create_app(settings)

    with TestClient(app) as client:
        code = _create(client)
        with client.websocket_connect("/ws") as ws:
            _join(ws, code)
            client.put(f"/api/clipboard/{code}", json={"content": "world", "clientId": "u1"})

            received = [ws.receive_json(), ws.receive_json()]

    assert {m["event"] for m in received} == {"content-updated"}
    assert sum(1 for m in received if m["data"].get("fromStoreEvent")) == 1
    assert sum(1 for m in received if m["data"].get("updatedBy") == "u1") == 1
