"""Tests for chat endpoints and realtime sockets."""

import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from storefront.api.chats import (
    WS_FORBIDDEN,
    WS_NOT_FOUND,
    WS_UNAUTHORIZED,
    _send_local,
    _stop,
)
from storefront.application import presence
from storefront.application.presence import PresenceRegistry
from storefront.domain import REPORT_REASONS


def bearer(headers: dict[str, str]) -> str:
    """Token of an Authorization header."""
    return headers["Authorization"].split(" ", 1)[1]


# ============================================================================
# Chat List
# ============================================================================


class TestChatList:
    """Tests for GET /chats."""

    def test_lists_chats_with_unread(self, client: TestClient, owner_headers, renter, chat_setup) -> None:
        """The owner sees the renter's opening message as unread."""
        response = client.get("/chats", headers=owner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total_unread"] == 1
        item = data["items"][0]
        assert item["id"] == chat_setup.chat.id
        assert item["other_user"]["id"] == renter.id
        assert item["last_message"]["message"] == "Is this available?"
        assert item["inquiry"]["chat_id"] == chat_setup.chat.id

    def test_unread_badge(self, client: TestClient, owner_headers, renter_headers, chat_setup) -> None:
        """The badge counts messages from others only."""
        assert client.get("/chats/unread", headers=owner_headers).json() == {"total_unread": 1}
        assert client.get("/chats/unread", headers=renter_headers).json() == {"total_unread": 0}

    def test_report_reasons(self, client: TestClient, renter_headers) -> None:
        """Reasons are listed for the report dialog."""
        response = client.get("/chats/report-reasons", headers=renter_headers)
        assert response.json()["reasons"] == list(REPORT_REASONS)

    def test_stranger_forbidden(self, client: TestClient, auth_headers, make_user, chat_setup) -> None:
        """Members outside the chat get 403."""
        headers = auth_headers(make_user("Stranger"))
        response = client.get(f"/chats/{chat_setup.chat.id}", headers=headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    def test_missing_chat(self, client: TestClient, renter_headers) -> None:
        """Unknown chats give 404."""
        response = client.get("/chats/missing", headers=renter_headers)
        assert response.status_code == 404
        assert response.json()["error_code"] == "CHAT_NOT_FOUND"


# ============================================================================
# Messages
# ============================================================================


class TestMessages:
    """Tests for history, sending and receipts."""

    def test_send_and_read_history(self, client: TestClient, owner_headers, chat_setup) -> None:
        """Sent messages appear at the end of page 1."""
        url = f"/chats/{chat_setup.chat.id}/messages"
        response = client.post(
            url,
            json={"message": "Yes, it is", "reply_to_message_id": chat_setup.first_message.id},
            headers=owner_headers,
        )
        assert response.status_code == 201
        sent = response.json()
        assert sent["sender"]["name"] == "Meera"
        assert sent["reply_to"]["id"] == chat_setup.first_message.id

        history = client.get(url, headers=owner_headers).json()
        assert [m["message"] for m in history["items"]] == ["Is this available?", "Yes, it is"]
        assert history["page"] == 1
        assert history["has_more"] is False

    def test_duplicate_client_id_returns_200(self, client: TestClient, renter_headers, chat_setup) -> None:
        """A resend with the same client id returns the stored message."""
        url = f"/chats/{chat_setup.chat.id}/messages"
        body = {"message": "Hello", "client_id": "local-1"}
        first = client.post(url, json=body, headers=renter_headers)
        second = client.post(url, json=body, headers=renter_headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]

    def test_empty_message_rejected(self, client: TestClient, renter_headers, chat_setup) -> None:
        """Messages need text or media."""
        response = client.post(
            f"/chats/{chat_setup.chat.id}/messages", json={"message": "  "}, headers=renter_headers
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "EMPTY_MESSAGE"

    def test_admin_cannot_post(self, client: TestClient, admin_headers, chat_setup) -> None:
        """Admins read chats but cannot write in them."""
        url = f"/chats/{chat_setup.chat.id}/messages"
        assert client.get(url, headers=admin_headers).status_code == 200
        response = client.post(url, json={"message": "Hi"}, headers=admin_headers)
        assert response.status_code == 403

    def test_invalid_page(self, client: TestClient, renter_headers, chat_setup) -> None:
        """Pages start at 1."""
        response = client.get(
            f"/chats/{chat_setup.chat.id}/messages", params={"page": 0}, headers=renter_headers
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_mark_read(self, client: TestClient, owner_headers, chat_setup) -> None:
        """Marking read reports how many messages changed."""
        url = f"/chats/{chat_setup.chat.id}/read"
        assert client.post(url, headers=owner_headers).json() == {"updated": 1}
        assert client.post(url, headers=owner_headers).json() == {"updated": 0}
        assert client.get("/chats/unread", headers=owner_headers).json()["total_unread"] == 0

    def test_mark_delivered(self, client: TestClient, owner_headers, chat_setup) -> None:
        """Delivery receipts are counted separately from reads."""
        url = f"/chats/{chat_setup.chat.id}/delivered"
        assert client.post(url, headers=owner_headers).json() == {"updated": 1}
        history = client.get(f"/chats/{chat_setup.chat.id}/messages", headers=owner_headers).json()
        assert history["items"][0]["is_delivered"] is True
        assert history["items"][0]["is_read"] is False


class TestReports:
    """Tests for POST /chats/{id}/report."""

    def test_report_chat(self, client: TestClient, owner_headers, renter, chat_setup) -> None:
        """Reports name the other participant."""
        response = client.post(
            f"/chats/{chat_setup.chat.id}/report",
            json={"reason": "Spam or misleading", "details": "Sends links"},
            headers=owner_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["reported_user_id"] == renter.id
        assert data["status"] == "new"

    def test_unknown_reason(self, client: TestClient, owner_headers, chat_setup) -> None:
        """Reasons outside the list are rejected."""
        response = client.post(
            f"/chats/{chat_setup.chat.id}/report", json={"reason": "Boring"}, headers=owner_headers
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_REPORT_REASON"


# ============================================================================
# WebSockets
# ============================================================================


class TestChatSocket:
    """Tests for /chats/{id}/ws."""

    def test_requires_session(self, client: TestClient, chat_setup) -> None:
        """Anonymous sockets are closed."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/chats/{chat_setup.chat.id}/ws"):
                pass
        assert exc_info.value.code == WS_UNAUTHORIZED

    def test_stranger_rejected(self, client: TestClient, auth_headers, make_user, chat_setup) -> None:
        """Non-participants are closed with a forbidden code."""
        token = bearer(auth_headers(make_user("Stranger")))
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/chats/{chat_setup.chat.id}/ws?token={token}"):
                pass
        assert exc_info.value.code == WS_FORBIDDEN

    def test_missing_chat(self, client: TestClient, renter_headers) -> None:
        """Unknown chats are closed with a not-found code."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/chats/missing/ws", headers=renter_headers):
                pass
        assert exc_info.value.code == WS_NOT_FOUND

    def test_join_syncs_presence_and_delivers(self, client: TestClient, owner, owner_headers, chat_setup) -> None:
        """Joining announces presence and delivers pending messages."""
        token = bearer(owner_headers)
        with client.websocket_connect(f"/chats/{chat_setup.chat.id}/ws?token={token}") as ws:
            presence = ws.receive_json()
            assert presence["type"] == "presence.sync"
            assert presence["participants"][0]["user_id"] == owner.id
            assert presence["participants"][0]["online"] is True

            update = ws.receive_json()
            assert update["type"] == "message.updated"
            assert update["message"]["id"] == chat_setup.first_message.id
            assert update["message"]["is_delivered"] is True

    def test_receives_new_messages(self, client: TestClient, owner_headers, renter_headers, chat_setup) -> None:
        """Messages sent over HTTP are pushed to open sockets."""
        with client.websocket_connect(f"/chats/{chat_setup.chat.id}/ws", headers=owner_headers) as ws:
            ws.receive_json()
            ws.receive_json()

            sent = client.post(
                f"/chats/{chat_setup.chat.id}/messages",
                json={"message": "Pick up at 10?", "client_id": "local-7"},
                headers=renter_headers,
            ).json()

            event = ws.receive_json()
            assert event["type"] == "message.created"
            assert event["chat_id"] == chat_setup.chat.id
            assert event["message"]["id"] == sent["id"]
            assert event["message"]["client_id"] == "local-7"

    def test_frames(self, client: TestClient, renter, renter_headers, chat_setup) -> None:
        """Typing, ping and malformed frames are answered."""
        with client.websocket_connect(f"/chats/{chat_setup.chat.id}/ws", headers=renter_headers) as ws:
            ws.receive_json()

            ws.send_json({"type": "typing", "typing": True})
            participant = ws.receive_json()["participants"][0]
            assert participant["user_id"] == renter.id
            assert participant["typing"] is True

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            ws.send_text("not json")
            assert ws.receive_json()["error_code"] == "INVALID_FRAME"

            ws.send_json({"type": "dance"})
            assert ws.receive_json()["error_code"] == "UNSUPPORTED_FRAME"

    def test_lapsed_typing_is_resynced(
        self, client: TestClient, monkeypatch, renter, renter_headers, chat_setup
    ) -> None:
        """A typing flag that is not refreshed clears with a new presence.sync."""
        monkeypatch.setattr(presence, "_registry", PresenceRegistry(ttl_seconds=0.2))
        with client.websocket_connect(f"/chats/{chat_setup.chat.id}/ws", headers=renter_headers) as ws:
            ws.receive_json()

            ws.send_json({"type": "typing", "typing": True})
            assert ws.receive_json()["participants"][0]["typing"] is True

            lapsed = ws.receive_json()
            assert lapsed["type"] == "presence.sync"
            assert lapsed["participants"][0]["user_id"] == renter.id
            assert lapsed["participants"][0]["typing"] is False

    def test_read_frame_marks_messages(self, client: TestClient, owner_headers, chat_setup) -> None:
        """A read frame marks incoming messages read."""
        with client.websocket_connect(f"/chats/{chat_setup.chat.id}/ws", headers=owner_headers) as ws:
            ws.receive_json()
            ws.receive_json()
            ws.send_json({"type": "read"})
            update = ws.receive_json()
            assert update["type"] == "message.updated"
            assert update["message"]["is_read"] is True


class TestUserFeed:
    """Tests for /chats/feed."""

    def test_requires_session(self, client: TestClient) -> None:
        """Anonymous feeds are closed."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/chats/feed"):
                pass
        assert exc_info.value.code == WS_UNAUTHORIZED

    def test_activity_pushed_to_recipient(self, client: TestClient, owner_headers, renter_headers, chat_setup) -> None:
        """A new message refreshes the recipient's badge."""
        with client.websocket_connect(f"/chats/feed?token={bearer(owner_headers)}") as feed:
            client.post(
                f"/chats/{chat_setup.chat.id}/messages",
                json={"message": "Any discount?"},
                headers=renter_headers,
            )
            event = feed.receive_json()
            assert event["type"] == "chat.activity"
            assert event["chat_id"] == chat_setup.chat.id
            assert event["unread_count"] == 2
            assert event["last_message"]["message"] == "Any discount?"

            feed.send_json({"type": "ping"})
            assert feed.receive_json() == {"type": "pong"}


class TestSocketPlumbing:
    """Tests for the per-socket queue and task helpers."""

    def test_full_queue_drops_local_frames(self) -> None:
        """A lagging socket loses the frame instead of failing the handler."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        _send_local(queue, {"type": "pong"}, chat_id="chat-1")
        _send_local(queue, {"type": "pong"}, chat_id="chat-1")
        assert queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_stop_waits_for_cancellation(self) -> None:
        """Stopped tasks have finished by the time ``_stop`` returns."""
        task = asyncio.create_task(asyncio.sleep(60))
        await _stop(task, chat_id="chat-1")
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_stop_absorbs_task_failures(self) -> None:
        """A task that already crashed is reaped without re-raising."""

        async def crash() -> None:
            raise RuntimeError("socket gone")

        task = asyncio.create_task(crash())
        await asyncio.sleep(0)
        await _stop(task, chat_id="chat-1")
        assert isinstance(task.exception(), RuntimeError)
