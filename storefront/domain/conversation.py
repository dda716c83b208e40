"""Conversation timeline reconciliation.

A chat screen learns about messages from several sources at once: pages of
history fetched newest-first, realtime inserts and receipt updates pushed by
the server, and optimistic sends created locally before the server has
answered. ``ConversationTimeline`` merges all of them into one ordered,
de-duplicated view of a single conversation.

Messages are exchanged in their wire format (see ``Message.to_dict``).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from storefront.domain.base import utcnow


class DeliveryState(str, Enum):
    """What the sender's client shows next to a message."""

    PENDING = "pending"
    FAILED = "failed"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


def _parse_time(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class TimelineMessage:
    """One entry of a conversation timeline.

    Entries created by ``add_pending`` have no ``id`` until the server
    confirms them; they are identified by ``client_id`` meanwhile.
    """

    sender_user_id: str
    created_at: datetime
    id: str | None = None
    client_id: str | None = None
    message: str = ""
    media_url: str | None = None
    media_type: str | None = None
    reply_to_message_id: str | None = None
    is_delivered: bool = False
    delivered_at: datetime | None = None
    is_read: bool = False
    read_at: datetime | None = None
    pending: bool = False
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TimelineMessage":
        """Build an entry from a server message payload."""
        known = {
            "id", "client_id", "sender_user_id", "message", "media_url",
            "media_type", "reply_to_message_id", "is_delivered", "delivered_at",
            "is_read", "read_at", "created_at", "chat_id",
        }
        is_read = bool(payload.get("is_read"))
        return cls(
            id=payload["id"],
            client_id=payload.get("client_id"),
            sender_user_id=payload["sender_user_id"],
            message=payload.get("message") or "",
            media_url=payload.get("media_url"),
            media_type=payload.get("media_type"),
            reply_to_message_id=payload.get("reply_to_message_id"),
            is_delivered=bool(payload.get("is_delivered")) or is_read,
            delivered_at=_parse_time(payload.get("delivered_at")),
            is_read=is_read,
            read_at=_parse_time(payload.get("read_at")),
            created_at=_parse_time(payload.get("created_at")) or utcnow(),
            extra={k: v for k, v in payload.items() if k not in known},
        )

    @property
    def key(self) -> str:
        """Identity inside the timeline."""
        return self.id if self.id is not None else f"local:{self.client_id}"

    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Chronological ordering key."""
        return (self.created_at, self.id or self.client_id or "")

    def merged_with(self, newer: "TimelineMessage") -> "TimelineMessage":
        """Combine this entry with a newer copy of the same message.

        Receipt flags only move forward and first-seen timestamps are kept.
        """
        is_read = self.is_read or newer.is_read
        return replace(
            newer,
            client_id=newer.client_id or self.client_id,
            is_read=is_read,
            read_at=self.read_at or newer.read_at,
            is_delivered=self.is_delivered or newer.is_delivered or is_read,
            delivered_at=self.delivered_at or newer.delivered_at,
            extra={**self.extra, **newer.extra},
        )


@dataclass
class PresenceView:
    """The other participant's presence as seen by the viewer."""

    online: bool = False
    typing: bool = False
    last_seen: datetime | None = None


class ConversationTimeline:
    """Ordered, de-duplicated view of one conversation.

    Attributes:
        has_more: Whether older history may still be fetched.
        presence: The other participant's presence.
    """

    def __init__(self) -> None:
        self._entries: dict[str, TimelineMessage] = {}
        self._pending_by_client_id: dict[str, str] = {}
        self.has_more = True
        self.presence = PresenceView()

    def __len__(self) -> int:
        return len(self._entries)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def load_page(self, messages: list[dict[str, Any]], page_size: int) -> int:
        """Merge a page of older history.

        Args:
            messages: Server messages in any order.
            page_size: Size the page was requested with.

        Returns:
            Number of messages that were not known before.
        """
        added = 0
        for payload in messages:
            if self.apply_insert(payload):
                added += 1
        if len(messages) < page_size:
            self.has_more = False
        return added

    # -------------------------------------------------------------------------
    # Optimistic sends
    # -------------------------------------------------------------------------

    def add_pending(
        self,
        sender_user_id: str,
        text: str,
        reply_to_message_id: str | None = None,
        media_url: str | None = None,
        media_type: str | None = None,
    ) -> TimelineMessage:
        """Show a local send immediately, before the server confirms it."""
        entry = TimelineMessage(
            sender_user_id=sender_user_id,
            created_at=utcnow(),
            client_id=str(uuid4()),
            message=text,
            media_url=media_url,
            media_type=media_type,
            reply_to_message_id=reply_to_message_id,
            pending=True,
        )
        self._entries[entry.key] = entry
        self._pending_by_client_id[entry.client_id] = entry.key
        return entry

    def confirm(self, client_id: str, message: dict[str, Any]) -> TimelineMessage:
        """Replace a pending send with the stored server message."""
        confirmed = TimelineMessage.from_payload(message)
        confirmed.client_id = confirmed.client_id or client_id
        local_key = self._pending_by_client_id.pop(client_id, None)
        if local_key is not None:
            self._entries.pop(local_key, None)
        existing = self._entries.get(confirmed.key)
        if existing is not None:
            confirmed = existing.merged_with(confirmed)
        self._entries[confirmed.key] = confirmed
        return confirmed

    def fail(self, client_id: str, error: str) -> TimelineMessage | None:
        """Mark a pending send as failed; unknown client ids are ignored."""
        key = self._pending_by_client_id.get(client_id)
        if key is None:
            return None
        entry = self._entries[key]
        entry.error = error
        return entry

    def retry(self, client_id: str) -> TimelineMessage | None:
        """Clear the failure of a pending send before resending it."""
        key = self._pending_by_client_id.get(client_id)
        if key is None:
            return None
        entry = self._entries[key]
        entry.error = None
        return entry

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    def apply_insert(self, message: dict[str, Any]) -> bool:
        """Apply a server message (realtime insert or history row).

        Returns:
            True if the message was new to the timeline.
        """
        client_id = message.get("client_id")
        if client_id and client_id in self._pending_by_client_id:
            self.confirm(client_id, message)
            return False
        incoming = TimelineMessage.from_payload(message)
        existing = self._entries.get(incoming.key)
        if existing is not None:
            self._entries[incoming.key] = existing.merged_with(incoming)
            return False
        self._entries[incoming.key] = incoming
        return True

    def apply_update(self, message: dict[str, Any]) -> TimelineMessage | None:
        """Apply a receipt update; updates for unknown messages are ignored."""
        existing = self._entries.get(message.get("id", ""))
        if existing is None:
            return None
        merged = existing.merged_with(TimelineMessage.from_payload(message))
        self._entries[merged.key] = merged
        return merged

    def apply_presence(
        self, states: list[dict[str, Any]], viewer_id: str
    ) -> PresenceView:
        """Derive the other participant's online and typing flags.

        Args:
            states: Presence entries ``{user_id, online, typing, last_seen}``.
            viewer_id: The local user, whose own entries are skipped.
        """
        others = [s for s in states if s.get("user_id") != viewer_id]
        seen = [_parse_time(s.get("last_seen")) for s in others]
        seen = [value for value in seen if value is not None]
        self.presence = PresenceView(
            online=any(s.get("online") for s in others),
            typing=any(s.get("online") and s.get("typing") for s in others),
            last_seen=max(seen) if seen else self.presence.last_seen,
        )
        return self.presence

    def mark_read_by(self, viewer_id: str, at: datetime | None = None) -> int:
        """Locally mark every incoming message as read.

        Returns:
            Number of entries changed.
        """
        moment = at or utcnow()
        changed = 0
        for entry in self._entries.values():
            if entry.pending or entry.sender_user_id == viewer_id or entry.is_read:
                continue
            entry.is_read = True
            entry.read_at = entry.read_at or moment
            entry.is_delivered = True
            entry.delivered_at = entry.delivered_at or moment
            changed += 1
        return changed

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def items(self) -> list[TimelineMessage]:
        """Entries in chronological order."""
        return sorted(self._entries.values(), key=lambda e: e.sort_key)

    def get(self, message_id: str) -> TimelineMessage | None:
        """Look up a confirmed message by server id."""
        return self._entries.get(message_id)

    @property
    def last_message(self) -> TimelineMessage | None:
        """Most recent entry, pending sends included."""
        entries = self.items()
        return entries[-1] if entries else None

    @property
    def oldest_id(self) -> str | None:
        """Server id of the oldest confirmed message."""
        for entry in self.items():
            if entry.id is not None:
                return entry.id
        return None

    @staticmethod
    def status_of(entry: TimelineMessage) -> DeliveryState:
        """Receipt indicator for an entry."""
        if entry.pending:
            return DeliveryState.FAILED if entry.error else DeliveryState.PENDING
        if entry.is_read:
            return DeliveryState.READ
        if entry.is_delivered:
            return DeliveryState.DELIVERED
        return DeliveryState.SENT

    def unread_for(self, viewer_id: str) -> int:
        """Count confirmed messages from others the viewer has not read."""
        return sum(
            1
            for entry in self._entries.values()
            if not entry.pending
            and entry.sender_user_id != viewer_id
            and not entry.is_read
        )
