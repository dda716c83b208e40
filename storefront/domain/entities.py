"""Domain entities for the storefront.

Entities are domain objects with identity that persists across state changes.
This module contains the marketplace aggregates: users, product listings,
rental inquiries with their chats and messages, and moderation reports.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from storefront.domain.base import AggregateRoot, Entity, new_id, utcnow
from storefront.domain.events import (
    BookingConfirmed,
    InquiryCancelled,
    InquiryCreated,
    ProductCreated,
    ProductStatusChanged,
)
from storefront.domain.state_machines import (
    InquiryStatus,
    ProductStatus,
    ReportStatus,
    validate_inquiry_transition,
    validate_product_transition,
    validate_report_transition,
)
from storefront.domain.value_objects import (
    DateRange,
    FacetKind,
    ListingKind,
    ListingStatus,
)


# ============================================================================
# Identity
# ============================================================================


@dataclass(kw_only=True, eq=False)
class User(AggregateRoot):
    """A storefront member (renter, owner, or both).

    Attributes:
        id: Unique user identifier.
        name: Display name.
        phone: Normalised phone number, if registered by phone.
        email: Normalised email, if registered by email.
        avatar_url: Profile picture URL.
        city_ids: Cities the user rents in.
        is_admin: Whether the user may use the admin console.
    """

    name: str
    phone: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    city_ids: list[str] = field(default_factory=list)
    is_admin: bool = False

    def public_profile(self) -> dict[str, Any]:
        """Subset of fields other members may see."""
        return {"id": self.id, "name": self.name, "avatar_url": self.avatar_url}


@dataclass(kw_only=True, eq=False)
class OtpChallenge(Entity):
    """A one-time password waiting to be verified.

    Only the SHA-256 hash of the code is kept.

    Attributes:
        id: The identifier (phone or email) the code was sent to.
        code_hash: Hex digest of the code.
        expires_at: When the code stops being accepted.
        attempts: Number of wrong codes submitted so far.
    """

    code_hash: str
    expires_at: datetime
    attempts: int = 0

    @staticmethod
    def hash_code(code: str) -> str:
        """Hash an OTP code for storage and comparison."""
        return hashlib.sha256(code.encode("utf-8")).hexdigest()

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the challenge has expired."""
        return (now or utcnow()) >= self.expires_at

    def matches(self, code: str) -> bool:
        """Check a submitted code against the stored hash."""
        return self.hash_code(code.strip()) == self.code_hash


@dataclass(kw_only=True, eq=False)
class Session(Entity):
    """An authenticated session; the id is the bearer token."""

    user_id: str
    expires_at: datetime
    created_at: datetime = field(default_factory=utcnow)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the session has expired."""
        return (now or utcnow()) >= self.expires_at


# ============================================================================
# Facets
# ============================================================================


@dataclass(kw_only=True, eq=False)
class FacetTerm(Entity):
    """A filterable attribute value (a city, a color, an occasion...).

    Attributes:
        kind: Facet kind this term belongs to.
        name: Display name, unique within its kind.
        display_order: Sort key for filter sidebars.
        hex: Swatch color, only for color terms.
    """

    kind: FacetKind
    name: str
    display_order: int = 0
    hex: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "display_order": self.display_order,
        }
        if self.kind is FacetKind.COLORS:
            data["hex"] = self.hex
        return data


# ============================================================================
# Product Aggregate Root
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Product(AggregateRoot):
    """A rentable product listing.

    Attributes:
        id: Unique product identifier (UUID string).
        product_code: Human-facing code used in URLs (e.g., "PR-00012").
        owner_user_id: Member who lists the product.
        title: Product title.
        description: Free-text description.
        price: Rental price per day in whole currency units.
        original_price: Retail price shown struck through.
        images: Public image URLs.
        primary_image_index: Index of the cover image in ``images``.
        status: Moderation lifecycle state.
        is_active: Whether the listing is live (mirrors APPROVED).
        listing_status: Listing fee arrangement.
        admin_note: Moderator note, e.g. a rejection reason.
        facets: Facet term ids per facet kind.
    """

    product_code: str
    owner_user_id: str
    title: str
    price: int
    description: str = ""
    original_price: int | None = None
    images: list[str] = field(default_factory=list)
    primary_image_index: int = 0
    status: ProductStatus = ProductStatus.DRAFT
    is_active: bool = False
    listing_status: ListingStatus = field(
        default_factory=lambda: ListingStatus(kind=ListingKind.PAID)
    )
    admin_note: str | None = None
    facets: dict[FacetKind, list[str]] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        product_code: str,
        owner_user_id: str,
        title: str,
        price: int,
        status: ProductStatus = ProductStatus.DRAFT,
        **attributes: Any,
    ) -> "Product":
        """Create a new listing and record the creation event.

        Args:
            product_code: Human-facing product code.
            owner_user_id: Listing owner.
            title: Product title.
            price: Price per day.
            status: Initial lifecycle state.
            **attributes: Remaining optional product fields.

        Returns:
            New Product instance.
        """
        product = cls(
            id=new_id(),
            product_code=product_code,
            owner_user_id=owner_user_id,
            title=title,
            price=price,
            status=status,
            is_active=status.is_live(),
            **attributes,
        )
        product._record_event(
            ProductCreated(
                aggregate_id=product.id,
                aggregate_type="Product",
                product_id=product.id,
                owner_user_id=owner_user_id,
                status=status.value,
            )
        )
        return product

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def primary_image(self) -> str:
        """Cover image URL.

        Returns:
            ``images[primary_image_index]`` when the index is valid, else the
            first image, else an empty string.
        """
        if not self.images:
            return ""
        if 0 <= self.primary_image_index < len(self.images):
            return self.images[self.primary_image_index]
        return self.images[0]

    @property
    def is_live(self) -> bool:
        """Check if visitors can see the listing."""
        return self.status.is_live() and self.is_active

    def facet_ids(self, kind: FacetKind) -> list[str]:
        """Term ids of one facet kind."""
        return list(self.facets.get(kind, []))

    def all_facet_ids(self) -> set[str]:
        """Every term id attached to the product, across kinds."""
        return {term_id for ids in self.facets.values() for term_id in ids}

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def transition_to(
        self,
        target: ProductStatus,
        actor: str,
        note: str | None = None,
    ) -> None:
        """Move the listing to a new lifecycle state.

        Args:
            target: Target status.
            actor: User id of whoever made the change.
            note: Optional moderator note stored on the product.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed.
        """
        validate_product_transition(self.id, self.status, target)
        previous = self.status
        self.status = target
        self.is_active = target.is_live()
        if note is not None:
            self.admin_note = note
        self._touch()
        self._record_event(
            ProductStatusChanged(
                aggregate_id=self.id,
                aggregate_type="Product",
                product_id=self.id,
                from_status=previous.value,
                to_status=target.value,
                actor=actor,
                note=note,
            )
        )

    def update_details(self, **changes: Any) -> None:
        """Apply edits to descriptive fields; status is unchanged."""
        for name, value in changes.items():
            setattr(self, name, value)
        self._touch()

    def remove_facet_term(self, term_id: str) -> bool:
        """Detach a facet term from the product.

        Returns:
            True if the term was attached.
        """
        removed = False
        for kind, ids in self.facets.items():
            if term_id in ids:
                self.facets[kind] = [i for i in ids if i != term_id]
                removed = True
        return removed

    def summary(self) -> dict[str, Any]:
        """Compact representation used in chats and wishlists."""
        return {
            "id": self.id,
            "product_code": self.product_code,
            "title": self.title,
            "price": self.price,
            "image": self.primary_image,
        }


@dataclass(kw_only=True, eq=False)
class ProductView(Entity):
    """A recorded product page view; the product may no longer exist."""

    product_ref: str
    viewed_at: datetime = field(default_factory=utcnow)


@dataclass(kw_only=True, eq=False)
class ProductImpression(Entity):
    """A product card shown to a viewer (user id or anonymous UUID)."""

    product_id: str
    viewer_id: str
    is_anonymous: bool
    seen_at: datetime = field(default_factory=utcnow)


@dataclass(kw_only=True, eq=False)
class WishlistEntry(Entity):
    """A product saved by a user."""

    user_id: str
    product_id: str
    created_at: datetime = field(default_factory=utcnow)


# ============================================================================
# Inquiry Aggregate Root
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Inquiry(AggregateRoot):
    """A renter's request to rent a product for a period.

    Attributes:
        product_id: Product being rented.
        owner_user_id: Product owner at the time of the inquiry.
        renter_user_id: Member asking to rent.
        start_date: First rental day.
        end_date: Last rental day.
        status: Lifecycle state.
    """

    product_id: str
    owner_user_id: str
    renter_user_id: str
    start_date: date
    end_date: date
    status: InquiryStatus = InquiryStatus.PENDING

    @classmethod
    def create(
        cls,
        product_id: str,
        owner_user_id: str,
        renter_user_id: str,
        period: DateRange,
    ) -> "Inquiry":
        """Create an inquiry and record the creation event."""
        inquiry = cls(
            id=new_id(),
            product_id=product_id,
            owner_user_id=owner_user_id,
            renter_user_id=renter_user_id,
            start_date=period.start,
            end_date=period.end,
        )
        inquiry._record_event(
            InquiryCreated(
                aggregate_id=inquiry.id,
                aggregate_type="Inquiry",
                inquiry_id=inquiry.id,
                product_id=product_id,
                renter_user_id=renter_user_id,
                owner_user_id=owner_user_id,
            )
        )
        return inquiry

    @property
    def period(self) -> DateRange:
        """Rental period as a value object."""
        return DateRange(self.start_date, self.end_date)

    def participants(self) -> set[str]:
        """User ids taking part in the inquiry's chat."""
        return {self.owner_user_id, self.renter_user_id}

    def other_participant(self, user_id: str) -> str:
        """The counterpart of ``user_id``; the owner for outsiders."""
        if user_id == self.owner_user_id:
            return self.renter_user_id
        return self.owner_user_id

    def confirm(self, period: DateRange) -> None:
        """Confirm the booking for the given dates.

        Raises:
            InvalidStateTransitionError: If the inquiry was cancelled.
        """
        validate_inquiry_transition(self.id, self.status, InquiryStatus.CONFIRMED)
        self.status = InquiryStatus.CONFIRMED
        self.start_date = period.start
        self.end_date = period.end
        self._touch()
        self._record_event(
            BookingConfirmed(
                aggregate_id=self.id,
                aggregate_type="Inquiry",
                inquiry_id=self.id,
                product_id=self.product_id,
                start_date=period.start.isoformat(),
                end_date=period.end.isoformat(),
            )
        )

    def cancel(self, actor: str) -> None:
        """Cancel the inquiry.

        Raises:
            InvalidStateTransitionError: If already cancelled.
        """
        validate_inquiry_transition(self.id, self.status, InquiryStatus.CANCELLED)
        self.status = InquiryStatus.CANCELLED
        self._touch()
        self._record_event(
            InquiryCancelled(
                aggregate_id=self.id,
                aggregate_type="Inquiry",
                inquiry_id=self.id,
                cancelled_by=actor,
            )
        )


# ============================================================================
# Chat and Messages
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Chat(Entity):
    """Conversation attached to an inquiry."""

    inquiry_id: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass(kw_only=True, eq=False)
class Message(Entity):
    """A chat message with delivery and read receipts.

    Receipts are monotonic: once delivered or read, a message never
    reverts, and reading a message also marks it delivered.

    Attributes:
        chat_id: Chat the message belongs to.
        sender_user_id: Author.
        message: Text body (may be empty for media messages).
        media_url: Attached media URL.
        media_type: Attached media kind (e.g., "image").
        reply_to_message_id: Message being replied to, in the same chat.
        client_id: Sender-generated id used to deduplicate optimistic sends.
        is_delivered: Whether the recipient's client received it.
        delivered_at: When it was first delivered.
        is_read: Whether the recipient has read it.
        read_at: When it was first read.
        created_at: When it was stored.
    """

    chat_id: str
    sender_user_id: str
    message: str = ""
    media_url: str | None = None
    media_type: str | None = None
    reply_to_message_id: str | None = None
    client_id: str | None = None
    is_delivered: bool = False
    delivered_at: datetime | None = None
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)

    def mark_delivered(self, now: datetime | None = None) -> bool:
        """Record delivery.

        Returns:
            True if the receipt changed.
        """
        if self.is_delivered:
            return False
        self.is_delivered = True
        self.delivered_at = now or utcnow()
        return True

    def mark_read(self, now: datetime | None = None) -> bool:
        """Record a read receipt (also delivering the message).

        Returns:
            True if the receipt changed.
        """
        if self.is_read:
            return False
        moment = now or utcnow()
        self.mark_delivered(moment)
        self.is_read = True
        self.read_at = moment
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (wire format for realtime events)."""
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "sender_user_id": self.sender_user_id,
            "message": self.message,
            "media_url": self.media_url,
            "media_type": self.media_type,
            "reply_to_message_id": self.reply_to_message_id,
            "client_id": self.client_id,
            "is_delivered": self.is_delivered,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat(),
        }


REPORT_REASONS: tuple[str, ...] = (
    "Spam or misleading",
    "Harassment or bullying",
    "Inappropriate content",
    "Nudity or sexual activity",
    "Hate speech",
    "Something else",
)


@dataclass(kw_only=True, eq=False)
class Report(AggregateRoot):
    """A member's report about the other participant of a chat."""

    chat_id: str
    reporter_user_id: str
    reported_user_id: str
    reason: str
    details: str = ""
    status: ReportStatus = ReportStatus.NEW
    resolution_note: str | None = None

    def resolve(self, target: ReportStatus, note: str | None = None) -> None:
        """Close the report as reviewed or dismissed.

        Raises:
            InvalidStateTransitionError: If already resolved.
        """
        validate_report_transition(self.id, self.status, target)
        self.status = target
        self.resolution_note = note
        self._touch()


# ============================================================================
# Site Content
# ============================================================================


@dataclass(kw_only=True, eq=False)
class HeroSlide(Entity):
    """A landing page carousel slide."""

    title: str
    image_url: str
    subtitle: str | None = None
    link_url: str | None = None
    display_order: int = 0
    is_active: bool = True
