"""Chat presence and typing indicators.

Tracks who has a chat open. A participant may hold several connections
(tabs); they stay online until the last one closes. Typing flags expire
when not refreshed within the presence TTL.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from storefront.domain import utcnow
from storefront.infrastructure.config import settings


@dataclass
class PresenceState:
    """One participant's presence in a chat."""

    user_id: str
    last_seen: datetime = field(default_factory=utcnow)
    typing: bool = False
    typing_at: datetime | None = None
    connections: int = 0

    def is_typing(self, now: datetime, ttl: timedelta) -> bool:
        """Typing flag, honouring expiry."""
        return self.typing and self.typing_at is not None and now - self.typing_at < ttl

    def to_dict(self, now: datetime, ttl: timedelta) -> dict[str, Any]:
        """Wire format used in ``presence.sync`` events."""
        return {
            "user_id": self.user_id,
            "online": self.connections > 0,
            "typing": self.is_typing(now, ttl),
            "last_seen": self.last_seen.isoformat(),
        }


class PresenceRegistry:
    """Presence of every open chat."""

    def __init__(self, ttl_seconds: float | None = None) -> None:
        self._chats: dict[str, dict[str, PresenceState]] = {}
        self.ttl = timedelta(seconds=ttl_seconds or settings.presence_ttl_seconds)

    def join(self, chat_id: str, user_id: str) -> PresenceState:
        """Register a connection."""
        states = self._chats.setdefault(chat_id, {})
        state = states.get(user_id)
        if state is None:
            state = states[user_id] = PresenceState(user_id=user_id)
        state.connections += 1
        state.last_seen = utcnow()
        return state

    def leave(self, chat_id: str, user_id: str) -> None:
        """Drop a connection; the entry goes away with the last one."""
        states = self._chats.get(chat_id, {})
        state = states.get(user_id)
        if state is None:
            return
        state.connections -= 1
        if state.connections <= 0:
            del states[user_id]
        if not states:
            self._chats.pop(chat_id, None)

    def set_typing(self, chat_id: str, user_id: str, typing: bool) -> None:
        """Update a participant's typing flag."""
        state = self._chats.get(chat_id, {}).get(user_id)
        if state is None:
            return
        now = utcnow()
        state.typing = typing
        state.typing_at = now if typing else None
        state.last_seen = now

    def expire_typing(self, chat_id: str) -> bool:
        """Clear typing flags that were not refreshed within the TTL.

        Returns:
            True if any flag was cleared and the chat needs a fresh sync.
        """
        now = utcnow()
        expired = False
        for state in self._chats.get(chat_id, {}).values():
            if state.typing and not state.is_typing(now, self.ttl):
                state.typing = False
                state.typing_at = None
                expired = True
        return expired

    def touch(self, chat_id: str, user_id: str) -> None:
        """Refresh ``last_seen`` on a heartbeat."""
        state = self._chats.get(chat_id, {}).get(user_id)
        if state is not None:
            state.last_seen = utcnow()

    def snapshot(self, chat_id: str) -> list[dict[str, Any]]:
        """Presence of every participant currently in the chat."""
        now = utcnow()
        states = self._chats.get(chat_id, {})
        return [states[user_id].to_dict(now, self.ttl) for user_id in sorted(states)]

    def is_online(self, chat_id: str, user_id: str) -> bool:
        """Whether a participant has the chat open."""
        return user_id in self._chats.get(chat_id, {})


_registry: PresenceRegistry | None = None


def get_presence_registry() -> PresenceRegistry:
    """Get or create the presence registry singleton."""
    global _registry
    if _registry is None:
        _registry = PresenceRegistry()
    return _registry


def reset_presence_registry() -> None:
    """Reset the presence registry (for testing)."""
    global _registry
    _registry = None
