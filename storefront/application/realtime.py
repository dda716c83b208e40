"""In-process realtime fan-out.

Chat screens subscribe to one chat's events (``message.created``,
``message.updated``, ``presence.sync``); every signed-in client subscribes to
its own user feed (``chat.activity``) to refresh chat lists and unread
badges. Each subscriber owns an ``asyncio.Queue``; publishing never blocks.
"""

import asyncio
from collections import defaultdict
from typing import Any

import structlog

from storefront.domain import DomainEvent

logger = structlog.get_logger()

SUBSCRIBER_QUEUE_SIZE = 256


def event_message(event: DomainEvent) -> dict[str, Any]:
    """Flatten a domain event into the realtime wire format.

    Returns:
        ``{"type": <event_type>, "event_id", "occurred_at", **payload}``.
    """
    data = event.to_dict()
    return {
        "type": data["event_type"],
        "event_id": data["event_id"],
        "occurred_at": data["occurred_at"],
        **data["payload"],
    }


class ChatEventHub:
    """Subscriber registry for chat and user feeds."""

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._chat_subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._user_subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe_chat(self, chat_id: str) -> asyncio.Queue:
        """Start receiving a chat's events."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._chat_subscribers[chat_id].add(queue)
        return queue

    def unsubscribe_chat(self, chat_id: str, queue: asyncio.Queue) -> None:
        """Stop receiving a chat's events."""
        subscribers = self._chat_subscribers.get(chat_id)
        if subscribers is not None:
            subscribers.discard(queue)
            if not subscribers:
                del self._chat_subscribers[chat_id]

    def subscribe_user(self, user_id: str) -> asyncio.Queue:
        """Start receiving a user's activity feed."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._user_subscribers[user_id].add(queue)
        return queue

    def unsubscribe_user(self, user_id: str, queue: asyncio.Queue) -> None:
        """Stop receiving a user's activity feed."""
        subscribers = self._user_subscribers.get(user_id)
        if subscribers is not None:
            subscribers.discard(queue)
            if not subscribers:
                del self._user_subscribers[user_id]

    def chat_subscriber_count(self, chat_id: str) -> int:
        """Number of open subscriptions to a chat."""
        return len(self._chat_subscribers.get(chat_id, ()))

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish_chat(self, chat_id: str, message: dict[str, Any]) -> int:
        """Send an event to every subscriber of a chat.

        Returns:
            Number of subscribers reached.
        """
        return self._deliver(self._chat_subscribers.get(chat_id, set()), message, chat_id=chat_id)

    def publish_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send an event to a user's feed.

        Returns:
            Number of subscribers reached.
        """
        return self._deliver(self._user_subscribers.get(user_id, set()), message, user_id=user_id)

    def _deliver(
        self,
        subscribers: set[asyncio.Queue],
        message: dict[str, Any],
        **context: str,
    ) -> int:
        delivered = 0
        for queue in list(subscribers):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Dropping realtime event for slow subscriber",
                    event_type=message.get("type"),
                    **context,
                )
        return delivered


_hub: ChatEventHub | None = None


def get_event_hub() -> ChatEventHub:
    """Get or create the event hub singleton."""
    global _hub
    if _hub is None:
        _hub = ChatEventHub()
    return _hub


def reset_event_hub() -> None:
    """Reset the event hub (for testing)."""
    global _hub
    _hub = None
