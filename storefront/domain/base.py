"""Shared building blocks of the storefront domain.

Members, listings, inquiries and chats are identity-bearing entities;
listings and inquiries are aggregates that record what happened to them
as events, which the application layer drains into the audit log.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import UUID, uuid4


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a new string UUID identifier."""
    return str(uuid4())


# ============================================================================
# Entities
# ============================================================================


@dataclass
class Entity(ABC):
    """Something with a stable id: a member, a product, a chat message.

    Two instances are the same entity when their class and id match,
    whatever their other fields say.
    """

    id: str

    def __eq__(self, other: object) -> bool:
        return isinstance(other, self.__class__) and self.id == other.id

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.id))


@dataclass(kw_only=True, eq=False)
class AggregateRoot(Entity):
    """Entity that owns its consistency rules and records events.

    Attributes:
        created_at: When the aggregate was created.
        updated_at: When it last changed.
    """

    created_at: datetime = field(default_factory=utcnow, compare=False)
    updated_at: datetime = field(default_factory=utcnow, compare=False)
    _events: list["DomainEvent"] = field(
        default_factory=list,
        init=False,
        repr=False,
        compare=False,
    )

    def _record_event(self, event: "DomainEvent") -> None:
        self._events.append(event)

    def collect_events(self) -> list["DomainEvent"]:
        """Return the recorded events and forget them."""
        events, self._events = self._events, []
        return events

    def _touch(self) -> None:
        self.updated_at = utcnow()


# ============================================================================
# Events
# ============================================================================


@dataclass(frozen=True)
class DomainEvent(ABC):
    """Immutable record of a change, e.g. a listing approved or a message sent.

    Subclasses set ``event_type`` (``"product.status_changed"``,
    ``"message.created"``...) and describe themselves in ``_payload``.

    Attributes:
        event_id: Unique id of this occurrence.
        occurred_at: When it happened.
        aggregate_id: Id of the entity it happened to.
        aggregate_type: Class name of that entity.
    """

    event_type: ClassVar[str]

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=utcnow)
    aggregate_id: str = ""
    aggregate_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise with the event-specific fields under ``payload``."""
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "occurred_at": self.occurred_at.isoformat(),
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "payload": self._payload(),
        }

    @abstractmethod
    def _payload(self) -> dict[str, Any]: ...
