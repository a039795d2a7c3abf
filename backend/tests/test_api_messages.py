"""API tests for messaging, read receipts and the real-time socket."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect


class TestSending:
    def test_client_message_goes_to_nutritionist(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        resp = client.post("/messages", headers=headers, json={"message": "Can I swap lunch?"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["sender_id"] == user_id
        assert body["sender_name"] == "Priya Sharma"
        assert body["read"] is False

        inbox = client.get("/messages", headers=admin_headers).json()
        assert [m["message"] for m in inbox] == ["Can I swap lunch?"]

    def test_admin_must_choose_recipient(self, client: TestClient, admin_headers) -> None:  # type: ignore[no-untyped-def]
        resp = client.post("/messages", headers=admin_headers, json={"message": "Hello"})
        assert resp.status_code == 422

    def test_admin_reply_reaches_client(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        client.post(
            "/messages",
            headers=admin_headers,
            json={"message": "Yes, try the dal.", "recipient_id": user_id, "subject": "Lunch"},
        )
        thread = client.get("/messages", headers=headers).json()
        assert thread[0]["subject"] == "Lunch"
        assert thread[0]["recipient_id"] == user_id

    def test_blank_message_rejected(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        assert client.post("/messages", headers=headers, json={"message": "   "}).status_code == 422

    def test_overlong_message_rejected(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        resp = client.post("/messages", headers=headers, json={"message": "x" * 2001})
        assert resp.status_code == 422

    def test_clients_see_only_their_conversation(self, client: TestClient, client_user, other_client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        _, other_headers = other_client_user
        client.post("/messages", headers=headers, json={"message": "Mine"})
        client.post("/messages", headers=other_headers, json={"message": "Theirs"})
        assert [m["message"] for m in client.get("/messages", headers=headers).json()] == ["Mine"]


class TestReadState:
    def test_unread_count_and_mark_read(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        user_id, headers = client_user
        client.post("/messages", headers=headers, json={"message": "One"})
        client.post("/messages", headers=headers, json={"message": "Two"})
        assert client.get("/messages/unread-count", headers=admin_headers).json() == {"count": 2}
        assert client.get("/messages/unread-count", headers=headers).json() == {"count": 0}

        resp = client.post("/messages/read", headers=admin_headers, json={"sender_id": user_id})
        assert resp.json() == {"updated": 2}
        assert client.get("/messages/unread-count", headers=admin_headers).json() == {"count": 0}

    def test_sender_cannot_mark_own_message_read(self, client: TestClient, client_user) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        msg = client.post("/messages", headers=headers, json={"message": "Hi"}).json()
        resp = client.post("/messages/read", headers=headers, json={"message_ids": [msg["id"]]})
        assert resp.json() == {"updated": 0}

    def test_dashboard_counts_unread(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        client.post("/messages", headers=headers, json={"message": "Hi"})
        assert client.get("/dashboard/stats", headers=admin_headers).json()["unread_messages"] == 1


class TestRealtime:
    def test_new_message_is_pushed_to_recipient(self, client: TestClient, client_user, admin_headers) -> None:  # type: ignore[no-untyped-def]
        _, headers = client_user
        admin_token = admin_headers["Authorization"].split()[1]
        with client.websocket_connect(f"/realtime/messages?token={admin_token}") as ws:
            client.post("/messages", headers=headers, json={"message": "Live!"})
            event = ws.receive_json()
        assert event["type"] == "message"
        assert event["message"]["message"] == "Live!"

    def test_invalid_token_is_refused(self, client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/realtime/messages?token=bogus") as ws:
                ws.receive_json()
