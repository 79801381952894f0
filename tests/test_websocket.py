"""End-to-end tests over the /ws endpoint."""
import pytest
from starlette.websockets import WebSocketDisconnect


def status(user_id, state="online"):
    return {"event": "user_status", "data": {"userId": user_id, "status": state}}


def test_connection_without_identity_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/ws"):
            pass
    assert excinfo.value.code == 1008


def test_non_numeric_identity_is_refused(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?user_id=alice"):
            pass


def test_identity_from_header(client, users):
    bob = users[1]
    with client.websocket_connect("/ws", headers={"X-User-ID": str(bob.id)}) as ws:
        assert ws.receive_json() == status(bob.id)
        assert client.get("/users/online").json()["user_ids"] == [bob.id]


def test_live_message_round_trip(client, users):
    alice, bob, _ = users
    with client.websocket_connect(f"/ws?user_id={alice.id}") as ws_a:
        assert ws_a.receive_json() == status(alice.id)
        with client.websocket_connect(f"/ws?user_id={bob.id}") as ws_b:
            assert ws_b.receive_json() == status(bob.id)
            assert ws_a.receive_json() == status(bob.id)

            ws_a.send_json({"event": "join_conversation", "data": {"other_user_id": bob.id}})
            ws_a.send_json({"event": "send_message", "data": {"receiver_id": bob.id, "content": "Hello"}})

            sent = ws_a.receive_json()
            assert sent["event"] == "new_message"
            assert sent["data"]["content"] == "Hello"

            assert ws_b.receive_json() == sent
            notification = ws_b.receive_json()
            assert notification["event"] == "message_notification"
            assert notification["data"]["sender"] == {"id": alice.id, "name": "alice"}

            ws_b.send_json({"event": "join_conversation", "data": {"other_user_id": alice.id}})
            ws_b.send_json({"event": "mark_read", "data": {"sender_id": alice.id}})
            receipt = {"event": "messages_read", "data": {"sender_id": alice.id, "receiver_id": bob.id, "count": 1}}
            assert ws_a.receive_json() == receipt
            assert ws_b.receive_json() == receipt

        assert ws_a.receive_json() == status(bob.id, "offline")

    history = client.get("/messages", params={"sender_id": bob.id, "receiver_id": alice.id}).json()
    assert [m["content"] for m in history["messages"]] == ["Hello"]
    assert history["messages"][0]["is_read"] is True


def test_bad_frame_gets_error_event(client, users):
    alice = users[0]
    with client.websocket_connect(f"/ws?user_id={alice.id}") as ws:
        ws.receive_json()
        ws.send_text("definitely not json")
        assert ws.receive_json() == {"event": "error", "data": {"message": "Malformed frame"}}


def test_out_of_range_identity_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect(f"/ws?user_id={2**70}"):
            pass
    assert excinfo.value.code == 1008


def test_binary_frame_gets_error_and_socket_stays_open(client, users):
    alice, bob, _ = users
    with client.websocket_connect(f"/ws?user_id={alice.id}") as ws:
        ws.receive_json()
        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"event": "error", "data": {"message": "Only text frames are accepted"}}

        ws.send_json({"event": "send_message", "data": {"receiver_id": bob.id, "content": "still here"}})
        assert ws.receive_json()["data"]["content"] == "still here"


def test_out_of_range_receiver_gets_error_and_socket_stays_open(client, users):
    alice, bob, _ = users
    with client.websocket_connect(f"/ws?user_id={alice.id}") as ws:
        ws.receive_json()
        ws.send_json({"event": "send_message", "data": {"receiver_id": 2**70, "content": "hi"}})
        assert ws.receive_json()["event"] == "error"

        ws.send_json({"event": "send_message", "data": {"receiver_id": bob.id, "content": "next"}})
        assert ws.receive_json()["data"]["content"] == "next"
