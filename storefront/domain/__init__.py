"""Domain layer - Entities, value objects, state machines, domain events.

This module exports the core domain building blocks following DDD patterns:

- **Entities**: Objects with identity (User, Product, Inquiry, Message)
- **Value Objects**: Immutable objects compared by value (ListingStatus, DateRange)
- **State Machines**: Deterministic state transitions (ProductStatus, InquiryStatus)
- **Domain Events**: Represent significant domain occurrences
- **Conversation**: Client-side reconciliation of one chat's timeline
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from storefront.domain import Product, ProductStatus

    product = Product.create(
        product_code="PR-00001",
        owner_user_id=user.id,
        title="Silk saree",
        price=800,
    )
    product.transition_to(ProductStatus.PENDING, actor=user.id)
"""

# Base classes
from storefront.domain.base import AggregateRoot, DomainEvent, Entity, new_id, utcnow

# Conversation
from storefront.domain.conversation import (
    ConversationTimeline,
    DeliveryState,
    PresenceView,
    TimelineMessage,
)

# Entities
from storefront.domain.entities import (
    REPORT_REASONS,
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

# Events
from storefront.domain.events import (
    BookingConfirmed,
    InquiryCancelled,
    InquiryCreated,
    MessageCreated,
    MessageUpdated,
    ProductCreated,
    ProductStatusChanged,
)

# Exceptions
from storefront.domain.exceptions import (
    AuthenticationError,
    BookingConflictError,
    ConflictError,
    DomainError,
    DuplicateFacetError,
    EmptyMessageError,
    InvalidDateRangeError,
    InvalidListingStatusError,
    InvalidStateTransitionError,
    MaintenanceModeError,
    MessageTooLongError,
    NotFoundError,
    PendingListingExistsError,
    PermissionDeniedError,
    RateLimitedError,
    ValidationError,
)

# State Machines
from storefront.domain.state_machines import (
    InquiryStatus,
    ProductStatus,
    ReportStatus,
    validate_inquiry_transition,
    validate_product_transition,
    validate_report_transition,
)

# Value Objects
from storefront.domain.value_objects import (
    DateRange,
    FacetKind,
    ListingKind,
    ListingStatus,
    normalize_email,
    normalize_hex_color,
    normalize_phone,
)

__all__ = [
    # Base
    "AggregateRoot",
    "DomainEvent",
    "Entity",
    "new_id",
    "utcnow",
    # Conversation
    "ConversationTimeline",
    "DeliveryState",
    "PresenceView",
    "TimelineMessage",
    # Entities
    "REPORT_REASONS",
    "Chat",
    "FacetTerm",
    "HeroSlide",
    "Inquiry",
    "Message",
    "OtpChallenge",
    "Product",
    "ProductImpression",
    "ProductView",
    "Report",
    "Session",
    "User",
    "WishlistEntry",
    # Domain Events
    "BookingConfirmed",
    "InquiryCancelled",
    "InquiryCreated",
    "MessageCreated",
    "MessageUpdated",
    "ProductCreated",
    "ProductStatusChanged",
    # Exceptions
    "AuthenticationError",
    "BookingConflictError",
    "ConflictError",
    "DomainError",
    "DuplicateFacetError",
    "EmptyMessageError",
    "InvalidDateRangeError",
    "InvalidListingStatusError",
    "InvalidStateTransitionError",
    "MaintenanceModeError",
    "MessageTooLongError",
    "NotFoundError",
    "PendingListingExistsError",
    "PermissionDeniedError",
    "RateLimitedError",
    "ValidationError",
    # State Machines
    "InquiryStatus",
    "ProductStatus",
    "ReportStatus",
    "validate_inquiry_transition",
    "validate_product_transition",
    "validate_report_transition",
    # Value Objects
    "DateRange",
    "FacetKind",
    "ListingKind",
    "ListingStatus",
    "normalize_email",
    "normalize_hex_color",
    "normalize_phone",
]
