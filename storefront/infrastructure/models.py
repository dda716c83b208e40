"""SQLAlchemy models for database tables.

Provides ORM models for users, sessions, the product catalog, rental
inquiries, chats, moderation, site content and idempotency responses.
Rows convert to and from their domain entities with ``from_entity`` and
``to_entity``; the repositories only ever hand entities to callers.
"""

from datetime import date, datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from storefront.domain.entities import (
    Chat,
    FacetTerm,
    HeroSlide,
    Inquiry,
    Message,
    OtpChallenge,
    Product,
    ProductImpression,
    ProductView,
    Report,
    Session,
    User,
    WishlistEntry,
)
from storefront.domain.state_machines import InquiryStatus, ProductStatus, ReportStatus
from storefront.domain.value_objects import FacetKind, ListingStatus
from storefront.infrastructure.database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always comes back in UTC.

    Backends without a timezone type (SQLite) return naive values; those
    are read as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# Identity Models
# ============================================================================


class UserModel(Base):
    """Registered member, identified by phone or email."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=True, unique=True)
    email = Column(String(255), nullable=True, unique=True)
    avatar_url = Column(String(1000), nullable=True)
    city_ids = Column(JSONType, nullable=False, default=list)
    created_at = Column(UTCDateTime, nullable=False, default=_now)
    updated_at = Column(UTCDateTime, nullable=False, default=_now, onupdate=_now)

    admin = relationship(
        "AdminModel",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @classmethod
    def from_entity(cls, user: User) -> "UserModel":
        """Build a row from a domain user."""
        return cls(
            id=user.id,
            name=user.name,
            phone=user.phone,
            email=user.email,
            avatar_url=user.avatar_url,
            city_ids=list(user.city_ids),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def to_entity(self) -> User:
        """Convert to a domain user; admin membership sets ``is_admin``."""
        return User(
            id=self.id,
            name=self.name,
            phone=self.phone,
            email=self.email,
            avatar_url=self.avatar_url,
            city_ids=list(self.city_ids or []),
            is_admin=self.admin is not None,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class AdminModel(Base):
    """Membership in the admin group."""

    __tablename__ = "admins"

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at = Column(UTCDateTime, nullable=False, default=_now)

    user = relationship("UserModel", back_populates="admin")


class SessionModel(Base):
    """Bearer session issued after OTP verification."""

    __tablename__ = "sessions"

    token = Column(String(64), primary_key=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(UTCDateTime, nullable=False, default=_now)
    expires_at = Column(UTCDateTime, nullable=False)

    @classmethod
    def from_entity(cls, session: Session) -> "SessionModel":
        """Build a row from a domain session."""
        return cls(
            token=session.id,
            user_id=session.user_id,
            created_at=session.created_at,
            expires_at=session.expires_at,
        )

    def to_entity(self) -> Session:
        """Convert to a domain session."""
        return Session(
            id=self.token,
            user_id=self.user_id,
            created_at=self.created_at,
            expires_at=self.expires_at,
        )


class OtpChallengeModel(Base):
    """Outstanding one-time password, keyed by phone or email."""

    __tablename__ = "otp_challenges"

    identifier = Column(String(255), primary_key=True)
    code_hash = Column(String(64), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    expires_at = Column(UTCDateTime, nullable=False)

    @classmethod
    def from_entity(cls, challenge: OtpChallenge) -> "OtpChallengeModel":
        """Build a row from a domain challenge."""
        return cls(
            identifier=challenge.id,
            code_hash=challenge.code_hash,
            attempts=challenge.attempts,
            expires_at=challenge.expires_at,
        )

    def to_entity(self) -> OtpChallenge:
        """Convert to a domain challenge."""
        return OtpChallenge(
            id=self.identifier,
            code_hash=self.code_hash,
            attempts=self.attempts,
            expires_at=self.expires_at,
        )


# ============================================================================
# Catalog Models
# ============================================================================


class FacetTermModel(Base):
    """Filterable attribute value (city, color, occasion...)."""

    __tablename__ = "facet_terms"
    __table_args__ = (UniqueConstraint("kind", "name", name="uq_facet_terms_kind_name"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    kind = Column(String(30), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    hex = Column(String(7), nullable=True)

    @classmethod
    def from_entity(cls, term: FacetTerm) -> "FacetTermModel":
        """Build a row from a domain facet term."""
        return cls(
            id=term.id,
            kind=term.kind.value,
            name=term.name,
            display_order=term.display_order,
            hex=term.hex,
        )

    def to_entity(self) -> FacetTerm:
        """Convert to a domain facet term."""
        return FacetTerm(
            id=self.id,
            kind=FacetKind(self.kind),
            name=self.name,
            display_order=self.display_order,
            hex=self.hex,
        )


class ProductModel(Base):
    """Rental listing.

    ``listing_status`` holds the display string (``"Paid: ₹99"``,
    ``"Free"``, ``"Offer: ₹500"``).
    """

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    product_code = Column(String(20), nullable=False, unique=True)
    owner_user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Integer, nullable=False)
    original_price = Column(Integer, nullable=True)
    images = Column(JSONType, nullable=False, default=list)
    primary_image_index = Column(Integer, nullable=False, default=0)
    status = Column(String(30), nullable=False, default="draft", index=True)
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    listing_status = Column(String(50), nullable=False, default="Paid")
    admin_note = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_now)
    updated_at = Column(UTCDateTime, nullable=False, default=_now, onupdate=_now)

    facets = relationship(
        "ProductFacetModel",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductFacetModel.position",
        lazy="selectin",
    )

    @classmethod
    def from_entity(cls, product: Product, currency_symbol: str = "₹") -> "ProductModel":
        """Build a row, with its facet links, from a domain product."""
        model = cls(
            id=product.id,
            product_code=product.product_code,
            owner_user_id=product.owner_user_id,
            title=product.title,
            description=product.description,
            price=product.price,
            original_price=product.original_price,
            images=list(product.images),
            primary_image_index=product.primary_image_index,
            status=product.status.value,
            is_active=product.is_active,
            listing_status=product.listing_status.format(currency_symbol),
            admin_note=product.admin_note,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )
        model.facets = [
            ProductFacetModel(
                product_id=product.id,
                term_id=term_id,
                kind=kind.value,
                position=position,
            )
            for kind, term_ids in product.facets.items()
            for position, term_id in enumerate(term_ids)
        ]
        return model

    def to_entity(self) -> Product:
        """Convert to a domain product with facet ids grouped by kind."""
        facets: dict[FacetKind, list[str]] = {}
        for link in self.facets:
            facets.setdefault(FacetKind(link.kind), []).append(link.term_id)
        return Product(
            id=self.id,
            product_code=self.product_code,
            owner_user_id=self.owner_user_id,
            title=self.title,
            description=self.description,
            price=self.price,
            original_price=self.original_price,
            images=list(self.images or []),
            primary_image_index=self.primary_image_index,
            status=ProductStatus(self.status),
            is_active=self.is_active,
            listing_status=ListingStatus.parse(self.listing_status),
            admin_note=self.admin_note,
            facets=facets,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "product_code": self.product_code,
            "owner_user_id": self.owner_user_id,
            "title": self.title,
            "price": self.price,
            "status": self.status,
            "is_active": self.is_active,
            "listing_status": self.listing_status,
            "facets": [link.term_id for link in self.facets],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ProductFacetModel(Base):
    """Link between a product and one facet term."""

    __tablename__ = "product_facets"

    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    )
    term_id = Column(
        String(36),
        ForeignKey("facet_terms.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    kind = Column(String(30), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    product = relationship("ProductModel", back_populates="facets")


class CodeSequenceModel(Base):
    """Named counter used to allocate product codes."""

    __tablename__ = "code_sequences"

    name = Column(String(20), primary_key=True)
    value = Column(Integer, nullable=False, default=0)


class ProductViewModel(Base):
    """A product page view, keyed by product code or id as requested."""

    __tablename__ = "product_views"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    product_ref = Column(String(36), nullable=False, index=True)
    viewed_at = Column(UTCDateTime, nullable=False, default=_now)

    @classmethod
    def from_entity(cls, view: ProductView) -> "ProductViewModel":
        """Build a row from a domain view."""
        return cls(id=view.id, product_ref=view.product_ref, viewed_at=view.viewed_at)


class ProductImpressionModel(Base):
    """A product seen in a listing, deduplicated per viewer and window."""

    __tablename__ = "product_impressions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    viewer_id = Column(String(100), nullable=False, index=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    seen_at = Column(UTCDateTime, nullable=False, default=_now)

    @classmethod
    def from_entity(cls, impression: ProductImpression) -> "ProductImpressionModel":
        """Build a row from a domain impression."""
        return cls(
            id=impression.id,
            product_id=impression.product_id,
            viewer_id=impression.viewer_id,
            is_anonymous=impression.is_anonymous,
            seen_at=impression.seen_at,
        )


class WishlistModel(Base):
    """A product saved by a member."""

    __tablename__ = "wishlist"
    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_wishlist_user_product"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(UTCDateTime, nullable=False, default=_now)

    @classmethod
    def from_entity(cls, entry: WishlistEntry) -> "WishlistModel":
        """Build a row from a domain wishlist entry."""
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            product_id=entry.product_id,
            created_at=entry.created_at,
        )

    def to_entity(self) -> WishlistEntry:
        """Convert to a domain wishlist entry."""
        return WishlistEntry(
            id=self.id,
            user_id=self.user_id,
            product_id=self.product_id,
            created_at=self.created_at,
        )


# ============================================================================
# Rental and Chat Models
# ============================================================================


class InquiryModel(Base):
    """Rental request for a date range."""

    __tablename__ = "inquiries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    renter_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(UTCDateTime, nullable=False, default=_now)
    updated_at = Column(UTCDateTime, nullable=False, default=_now, onupdate=_now)

    chat = relationship("ChatModel", back_populates="inquiry", uselist=False)

    @classmethod
    def from_entity(cls, inquiry: Inquiry) -> "InquiryModel":
        """Build a row from a domain inquiry."""
        return cls(
            id=inquiry.id,
            product_id=inquiry.product_id,
            owner_user_id=inquiry.owner_user_id,
            renter_user_id=inquiry.renter_user_id,
            start_date=inquiry.start_date,
            end_date=inquiry.end_date,
            status=inquiry.status.value,
            created_at=inquiry.created_at,
            updated_at=inquiry.updated_at,
        )

    def to_entity(self) -> Inquiry:
        """Convert to a domain inquiry."""
        return Inquiry(
            id=self.id,
            product_id=self.product_id,
            owner_user_id=self.owner_user_id,
            renter_user_id=self.renter_user_id,
            start_date=_as_date(self.start_date),
            end_date=_as_date(self.end_date),
            status=InquiryStatus(self.status),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ChatModel(Base):
    """Conversation attached to one inquiry."""

    __tablename__ = "chats"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    inquiry_id = Column(
        String(36),
        ForeignKey("inquiries.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    created_at = Column(UTCDateTime, nullable=False, default=_now)

    inquiry = relationship("InquiryModel", back_populates="chat")

    @classmethod
    def from_entity(cls, chat: Chat) -> "ChatModel":
        """Build a row from a domain chat."""
        return cls(id=chat.id, inquiry_id=chat.inquiry_id, created_at=chat.created_at)

    def to_entity(self) -> Chat:
        """Convert to a domain chat."""
        return Chat(id=self.id, inquiry_id=self.inquiry_id, created_at=self.created_at)


class MessageModel(Base):
    """Chat message with delivery and read receipts."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("chat_id", "sender_user_id", "client_id", name="uq_messages_client_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    chat_id = Column(
        String(36),
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=False, default="")
    media_url = Column(String(1000), nullable=True)
    media_type = Column(String(20), nullable=True)
    reply_to_message_id = Column(
        String(36),
        ForeignKey("messages.id", ondelete="SET NULL"),
        nullable=True,
    )
    client_id = Column(String(64), nullable=True)
    is_delivered = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(UTCDateTime, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_now, index=True)

    @classmethod
    def from_entity(cls, message: Message) -> "MessageModel":
        """Build a row from a domain message."""
        return cls(
            id=message.id,
            chat_id=message.chat_id,
            sender_user_id=message.sender_user_id,
            message=message.message,
            media_url=message.media_url,
            media_type=message.media_type,
            reply_to_message_id=message.reply_to_message_id,
            client_id=message.client_id,
            is_delivered=message.is_delivered,
            delivered_at=message.delivered_at,
            is_read=message.is_read,
            read_at=message.read_at,
            created_at=message.created_at,
        )

    def to_entity(self) -> Message:
        """Convert to a domain message."""
        return Message(
            id=self.id,
            chat_id=self.chat_id,
            sender_user_id=self.sender_user_id,
            message=self.message,
            media_url=self.media_url,
            media_type=self.media_type,
            reply_to_message_id=self.reply_to_message_id,
            client_id=self.client_id,
            is_delivered=self.is_delivered,
            delivered_at=self.delivered_at,
            is_read=self.is_read,
            read_at=self.read_at,
            created_at=self.created_at,
        )


class ReportModel(Base):
    """Abuse report filed from a chat."""

    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    chat_id = Column(
        String(36),
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reporter_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    reported_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    reason = Column(String(50), nullable=False)
    details = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="new", index=True)
    resolution_note = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_now)
    updated_at = Column(UTCDateTime, nullable=False, default=_now, onupdate=_now)

    @classmethod
    def from_entity(cls, report: Report) -> "ReportModel":
        """Build a row from a domain report."""
        return cls(
            id=report.id,
            chat_id=report.chat_id,
            reporter_user_id=report.reporter_user_id,
            reported_user_id=report.reported_user_id,
            reason=report.reason,
            details=report.details,
            status=report.status.value,
            resolution_note=report.resolution_note,
            created_at=report.created_at,
            updated_at=report.updated_at,
        )

    def to_entity(self) -> Report:
        """Convert to a domain report."""
        return Report(
            id=self.id,
            chat_id=self.chat_id,
            reporter_user_id=self.reporter_user_id,
            reported_user_id=self.reported_user_id,
            reason=self.reason,
            details=self.details,
            status=ReportStatus(self.status),
            resolution_note=self.resolution_note,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


# ============================================================================
# Site Content Models
# ============================================================================


class HeroSlideModel(Base):
    """Landing page carousel slide."""

    __tablename__ = "hero_slides"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    title = Column(String(200), nullable=False)
    subtitle = Column(String(500), nullable=True)
    image_url = Column(String(1000), nullable=False)
    link_url = Column(String(1000), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    @classmethod
    def from_entity(cls, slide: HeroSlide) -> "HeroSlideModel":
        """Build a row from a domain slide."""
        return cls(
            id=slide.id,
            title=slide.title,
            subtitle=slide.subtitle,
            image_url=slide.image_url,
            link_url=slide.link_url,
            display_order=slide.display_order,
            is_active=slide.is_active,
        )

    def to_entity(self) -> HeroSlide:
        """Convert to a domain slide."""
        return HeroSlide(
            id=self.id,
            title=self.title,
            subtitle=self.subtitle,
            image_url=self.image_url,
            link_url=self.link_url,
            display_order=self.display_order,
            is_active=self.is_active,
        )


class WebsiteSettingModel(Base):
    """Key/value site setting such as ``website_enabled``."""

    __tablename__ = "website_settings"

    key = Column(String(100), primary_key=True)
    value = Column(String(500), nullable=False)
    updated_at = Column(UTCDateTime, nullable=False, default=_now, onupdate=_now)


# ============================================================================
# Idempotency Models
# ============================================================================


class IdempotencyResponse(Base):
    """Idempotency response cache model.

    Stores responses for idempotent requests to return
    consistent results on retries. The scope is the caller's user id
    (or ``anonymous``).
    """

    __tablename__ = "idempotency_responses"

    idempotency_key = Column(String(100), primary_key=True)
    scope = Column(String(36), primary_key=True)
    endpoint = Column(String(200), primary_key=True)
    method = Column(String(10), primary_key=True)
    response_status = Column(Integer, nullable=False)
    response_body = Column(JSONType, nullable=False)
    response_headers = Column(JSONType, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_now)
    expires_at = Column(UTCDateTime, nullable=False)
    request_hash = Column(String(64), nullable=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "idempotency_key": self.idempotency_key,
            "scope": self.scope,
            "endpoint": self.endpoint,
            "method": self.method,
            "response_status": self.response_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
