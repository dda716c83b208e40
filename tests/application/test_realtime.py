"""Tests for realtime fan-out and chat presence."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from storefront.application.presence import PresenceRegistry
from storefront.application.realtime import ChatEventHub, event_message
from storefront.domain import utcnow
from storefront.domain.events import MessageCreated


# ============================================================================
# Event Hub Tests
# ============================================================================


class TestEventMessage:
    """Tests for the realtime wire format."""

    def test_payload_is_flattened(self) -> None:
        """Event metadata and payload share one level."""
        event = MessageCreated(chat_id="chat-1", message={"id": "m-1"})
        data = event_message(event)
        assert data["type"] == "message.created"
        assert data["event_id"] == str(event.event_id)
        assert data["chat_id"] == "chat-1"
        assert data["message"] == {"id": "m-1"}
        assert "payload" not in data


class TestChatEventHub:
    """Tests for chat and user subscriptions."""

    @pytest.mark.asyncio
    async def test_chat_events_reach_every_subscriber(self) -> None:
        """Each open screen receives its own copy."""
        hub = ChatEventHub()
        first = hub.subscribe_chat("chat-1")
        second = hub.subscribe_chat("chat-1")
        other = hub.subscribe_chat("chat-2")

        assert hub.publish_chat("chat-1", {"type": "message.created"}) == 2
        assert (await first.get())["type"] == "message.created"
        assert (await second.get())["type"] == "message.created"
        assert other.empty()

    def test_unsubscribe_cleans_up(self) -> None:
        """Closing the last subscription forgets the chat."""
        hub = ChatEventHub()
        queue = hub.subscribe_chat("chat-1")
        assert hub.chat_subscriber_count("chat-1") == 1
        hub.unsubscribe_chat("chat-1", queue)
        assert hub.chat_subscriber_count("chat-1") == 0
        assert hub.publish_chat("chat-1", {"type": "message.created"}) == 0

    def test_user_feed_is_separate(self) -> None:
        """User feeds only receive user events."""
        hub = ChatEventHub()
        feed = hub.subscribe_user("user-1")
        hub.publish_chat("chat-1", {"type": "message.created"})
        assert feed.empty()
        assert hub.publish_user("user-1", {"type": "chat.activity"}) == 1
        hub.unsubscribe_user("user-1", feed)
        assert hub.publish_user("user-1", {"type": "chat.activity"}) == 0

    def test_slow_subscriber_is_skipped(self) -> None:
        """A full queue drops the event instead of blocking."""
        hub = ChatEventHub(queue_size=1)
        slow = hub.subscribe_chat("chat-1")
        hub.publish_chat("chat-1", {"type": "first"})
        assert hub.publish_chat("chat-1", {"type": "second"}) == 0
        assert slow.qsize() == 1


# ============================================================================
# Presence Tests
# ============================================================================


class TestPresenceRegistry:
    """Tests for online and typing state."""

    def test_online_until_last_connection_closes(self) -> None:
        """Two tabs keep a participant online until both close."""
        registry = PresenceRegistry(ttl_seconds=30)
        registry.join("chat-1", "user-1")
        registry.join("chat-1", "user-1")
        registry.leave("chat-1", "user-1")
        assert registry.is_online("chat-1", "user-1")
        registry.leave("chat-1", "user-1")
        assert not registry.is_online("chat-1", "user-1")
        assert registry.snapshot("chat-1") == []

    def test_snapshot_sorted_by_user(self) -> None:
        """Snapshots list participants in a stable order."""
        registry = PresenceRegistry(ttl_seconds=30)
        registry.join("chat-1", "user-b")
        registry.join("chat-1", "user-a")
        snapshot = registry.snapshot("chat-1")
        assert [p["user_id"] for p in snapshot] == ["user-a", "user-b"]
        assert all(p["online"] for p in snapshot)

    def test_typing_flag(self) -> None:
        """Typing is reported until cleared."""
        registry = PresenceRegistry(ttl_seconds=30)
        registry.join("chat-1", "user-1")
        registry.set_typing("chat-1", "user-1", True)
        assert registry.snapshot("chat-1")[0]["typing"] is True
        registry.set_typing("chat-1", "user-1", False)
        assert registry.snapshot("chat-1")[0]["typing"] is False

    def test_typing_expires(self) -> None:
        """A typing flag not refreshed within the TTL lapses."""
        registry = PresenceRegistry(ttl_seconds=5)
        registry.join("chat-1", "user-1")
        registry.set_typing("chat-1", "user-1", True)
        later = utcnow() + timedelta(seconds=6)
        with patch("storefront.application.presence.utcnow", return_value=later):
            assert registry.snapshot("chat-1")[0]["typing"] is False

    def test_expire_typing_reports_lapsed_flags_once(self) -> None:
        """A lapsed flag is cleared once so a single resync goes out."""
        registry = PresenceRegistry(ttl_seconds=5)
        registry.join("chat-1", "user-1")
        registry.set_typing("chat-1", "user-1", True)
        assert registry.expire_typing("chat-1") is False

        later = utcnow() + timedelta(seconds=6)
        with patch("storefront.application.presence.utcnow", return_value=later):
            assert registry.expire_typing("chat-1") is True
            assert registry.expire_typing("chat-1") is False
        assert registry.snapshot("chat-1")[0]["typing"] is False

    def test_typing_ignored_for_absent_user(self) -> None:
        """Typing from someone without the chat open is ignored."""
        registry = PresenceRegistry(ttl_seconds=30)
        registry.set_typing("chat-1", "ghost", True)
        assert registry.snapshot("chat-1") == []
