"""Tests for the REST message and user routes."""


def send(client, sender_id, receiver_id, content):
    return client.post("/messages/send", json={"sender_id": sender_id, "receiver_id": receiver_id, "content": content})


def test_root(client):
    assert client.get("/").json() == {"status": "ok"}


class TestSend:
    def test_send_returns_created_message(self, client, users):
        alice, bob, _ = users
        resp = send(client, alice.id, bob.id, "Hello")

        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Message sent successfully"
        assert body["data"]["content"] == "Hello"
        assert body["data"]["sender_name"] == "alice"
        assert body["data"]["is_read"] is False

    def test_missing_field_is_400(self, client, users):
        resp = client.post("/messages/send", json={"sender_id": users[0].id, "content": "hi"})
        assert resp.status_code == 400
        assert "receiver_id" in resp.json()["error"]

    def test_blank_content_is_400(self, client, users):
        resp = send(client, users[0].id, users[1].id, "   ")
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message content cannot be empty"}

    def test_unknown_receiver_is_404(self, client, users):
        assert send(client, users[0].id, 404, "hi").status_code == 404


class TestHistory:
    def test_history_and_read_side_effect(self, client, users):
        alice, bob, _ = users
        send(client, bob.id, alice.id, "one")
        send(client, alice.id, bob.id, "two")

        assert client.get("/messages/unread", params={"user_id": alice.id}).json() == {
            "unreadCounts": {str(bob.id): 1}
        }

        resp = client.get("/messages", params={"sender_id": alice.id, "receiver_id": bob.id})
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 2
        assert [m["content"] for m in body["messages"]] == ["one", "two"]

        # Loading the thread as alice cleared what bob sent her, not the reverse.
        assert client.get("/messages/unread", params={"user_id": alice.id}).json() == {"unreadCounts": {}}
        assert client.get("/messages/unread", params={"user_id": bob.id}).json() == {
            "unreadCounts": {str(alice.id): 1}
        }

    def test_pagination_params(self, client, users):
        alice, bob, _ = users
        for i in range(4):
            send(client, alice.id, bob.id, f"m{i}")

        resp = client.get("/messages", params={"sender_id": alice.id, "receiver_id": bob.id, "limit": 2, "offset": 1})
        assert [m["content"] for m in resp.json()["messages"]] == ["m1", "m2"]

    def test_missing_query_param_is_400(self, client, users):
        assert client.get("/messages", params={"sender_id": users[0].id}).status_code == 400

    def test_get_single_message(self, client, users):
        sent = send(client, users[0].id, users[1].id, "hi").json()["data"]
        assert client.get(f"/messages/{sent['id']}").json()["content"] == "hi"
        assert client.get("/messages/9999").status_code == 404


class TestConversationRoutes:
    def test_conversations(self, client, users):
        alice, bob, carol = users
        send(client, alice.id, bob.id, "to bob")
        send(client, carol.id, alice.id, "from carol")

        body = client.get("/messages/conversations", params={"user_id": alice.id}).json()
        assert body["count"] == 2
        by_user = {c["other_user_id"]: c for c in body["conversations"]}
        assert by_user[carol.id]["unread_count"] == 1
        assert by_user[carol.id]["other_user_name"] == "carol"
        assert by_user[bob.id]["last_message"]["content"] == "to bob"

    def test_mark_read(self, client, users):
        alice, bob, _ = users
        send(client, alice.id, bob.id, "a")
        send(client, alice.id, bob.id, "b")

        resp = client.put("/messages/read", json={"receiver_id": bob.id, "sender_id": alice.id})
        assert resp.json() == {"message": "Marked 2 messages as read", "count": 2}
        resp = client.put("/messages/read", json={"receiver_id": bob.id, "sender_id": alice.id})
        assert resp.json()["count"] == 0

    def test_delete_conversation(self, client, users):
        alice, bob, _ = users
        send(client, alice.id, bob.id, "a")
        send(client, bob.id, alice.id, "b")

        resp = client.delete("/messages/conversation", params={"user1_id": bob.id, "user2_id": alice.id})
        assert resp.json() == {"message": "Deleted 2 messages", "count": 2}
        history = client.get("/messages", params={"sender_id": alice.id, "receiver_id": bob.id}).json()
        assert history["count"] == 0


class TestUsers:
    def test_create_and_list(self, client, users):
        resp = client.post("/users", json={"username": "dave", "role": "host"})
        assert resp.status_code == 201
        assert resp.json()["role"] == "host"
        assert [u["username"] for u in client.get("/users").json()] == ["alice", "bob", "carol", "dave"]

    def test_duplicate_username(self, client, users):
        assert client.post("/users", json={"username": "alice"}).status_code == 400

    def test_invalid_role(self, client, users):
        assert client.post("/users", json={"username": "eve", "role": "owner"}).status_code == 400

    def test_get_user(self, client, users):
        assert client.get(f"/users/{users[1].id}").json()["username"] == "bob"
        assert client.get("/users/77").status_code == 404

    def test_online_users_empty_without_sockets(self, client, users):
        assert client.get("/users/online").json() == {"count": 0, "user_ids": []}


class TestIdBounds:
    def test_oversized_ids_in_body_are_400(self, client, users):
        assert send(client, users[0].id, 2**70, "hi").status_code == 400
        resp = client.put("/messages/read", json={"receiver_id": 0, "sender_id": users[0].id})
        assert resp.status_code == 400

    def test_oversized_ids_in_query_are_400(self, client, users):
        alice = users[0]
        big = 2**70
        assert client.get("/messages", params={"sender_id": alice.id, "receiver_id": big}).status_code == 400
        params = {"sender_id": alice.id, "receiver_id": users[1].id, "offset": big}
        assert client.get("/messages", params=params).status_code == 400
        assert client.get("/messages/conversations", params={"user_id": big}).status_code == 400
        assert client.get("/messages/unread", params={"user_id": -1}).status_code == 400
        assert client.delete("/messages/conversation", params={"user1_id": alice.id, "user2_id": big}).status_code == 400

    def test_oversized_ids_in_path_are_400(self, client, users):
        resp = client.get(f"/messages/{2**70}")
        assert resp.status_code == 400
        assert "message_id" in resp.json()["error"]
        assert client.get(f"/users/{2**70}").status_code == 400
