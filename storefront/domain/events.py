"""Domain events for the storefront.

Domain events represent significant occurrences in the domain.
They are used for:
- Realtime fan-out to chat subscribers
- Audit logging of moderation decisions
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from storefront.domain.base import DomainEvent


# ============================================================================
# Product Events
# ============================================================================


@dataclass(frozen=True)
class ProductCreated(DomainEvent):
    """Event raised when a listing is created."""

    event_type: ClassVar[str] = "product.created"

    product_id: str = ""
    owner_user_id: str = ""
    status: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "product_id": self.product_id,
            "owner_user_id": self.owner_user_id,
            "status": self.status,
        }


@dataclass(frozen=True)
class ProductStatusChanged(DomainEvent):
    """Event raised when a listing moves between lifecycle states."""

    event_type: ClassVar[str] = "product.status_changed"

    product_id: str = ""
    from_status: str = ""
    to_status: str = ""
    actor: str = ""
    note: str | None = None

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "product_id": self.product_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor": self.actor,
            "note": self.note,
        }


# ============================================================================
# Inquiry Events
# ============================================================================


@dataclass(frozen=True)
class InquiryCreated(DomainEvent):
    """Event raised when a renter asks about a product."""

    event_type: ClassVar[str] = "inquiry.created"

    inquiry_id: str = ""
    product_id: str = ""
    renter_user_id: str = ""
    owner_user_id: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "inquiry_id": self.inquiry_id,
            "product_id": self.product_id,
            "renter_user_id": self.renter_user_id,
            "owner_user_id": self.owner_user_id,
        }


@dataclass(frozen=True)
class BookingConfirmed(DomainEvent):
    """Event raised when an owner confirms rental dates."""

    event_type: ClassVar[str] = "inquiry.booking_confirmed"

    inquiry_id: str = ""
    product_id: str = ""
    start_date: str = ""
    end_date: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "inquiry_id": self.inquiry_id,
            "product_id": self.product_id,
            "start_date": self.start_date,
            "end_date": self.end_date,
        }


@dataclass(frozen=True)
class InquiryCancelled(DomainEvent):
    """Event raised when either participant cancels an inquiry."""

    event_type: ClassVar[str] = "inquiry.cancelled"

    inquiry_id: str = ""
    cancelled_by: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {"inquiry_id": self.inquiry_id, "cancelled_by": self.cancelled_by}


# ============================================================================
# Message Events
# ============================================================================


@dataclass(frozen=True)
class MessageCreated(DomainEvent):
    """Event raised when a message is stored in a chat."""

    event_type: ClassVar[str] = "message.created"

    chat_id: str = ""
    message: dict[str, Any] = field(default_factory=dict)

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {"chat_id": self.chat_id, "message": self.message}


@dataclass(frozen=True)
class MessageUpdated(DomainEvent):
    """Event raised when a message's receipts change."""

    event_type: ClassVar[str] = "message.updated"

    chat_id: str = ""
    message: dict[str, Any] = field(default_factory=dict)

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {"chat_id": self.chat_id, "message": self.message}
