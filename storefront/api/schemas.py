"""API schemas for the Storefront API.

Pydantic models for request/response validation and serialization.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from storefront.domain import (
    FacetKind,
    InquiryStatus,
    ProductStatus,
    ReportStatus,
)


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Number of pages")
    has_more: bool = Field(..., description="Whether there are more pages")


class CountResponse(BaseModel):
    """Number of records an operation changed."""

    updated: int = Field(..., description="Number of records changed")


class UserPublicSchema(BaseModel):
    """Profile fields visible to other members."""

    id: str
    name: str
    avatar_url: str | None = None


# ============================================================================
# Auth & Profile Schemas
# ============================================================================


class OtpRequest(BaseModel):
    """Request a one-time password by phone or email."""

    phone: str | None = Field(default=None, description="Phone number")
    email: str | None = Field(default=None, description="Email address")


class OtpRequestResponse(BaseModel):
    """A one-time password was issued."""

    expires_at: datetime = Field(..., description="When the code stops working")
    debug_code: str | None = Field(
        default=None, description="The code itself (debug mode only)"
    )


class OtpVerifyRequest(BaseModel):
    """Verify a one-time password."""

    phone: str | None = Field(default=None, description="Phone number")
    email: str | None = Field(default=None, description="Email address")
    code: str = Field(..., min_length=1, max_length=12, description="The received code")
    name: str | None = Field(
        default=None, max_length=100, description="Display name (required on first login)"
    )


class ProfileResponse(BaseModel):
    """The caller's profile."""

    id: str
    name: str
    phone: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    city_ids: list[str] = Field(default_factory=list)
    is_admin: bool = False
    created_at: datetime


class SessionResponse(BaseModel):
    """A new session."""

    token: str = Field(..., description="Bearer token")
    expires_at: datetime = Field(..., description="Session expiry")
    is_new_user: bool = Field(default=False, description="Whether the account was just created")
    user: ProfileResponse


class ProfileUpdateRequest(BaseModel):
    """Edit the caller's profile."""

    name: str | None = Field(default=None, max_length=100)
    email: str | None = None
    avatar_url: str | None = None
    city_ids: list[str] | None = None


# ============================================================================
# Facet Schemas
# ============================================================================


class FacetTermSchema(BaseModel):
    """A facet term."""

    id: str
    kind: FacetKind
    name: str
    display_order: int = 0
    hex: str | None = None


class FacetCreateRequest(BaseModel):
    """Create a facet term."""

    name: str = Field(..., min_length=1, max_length=100)
    display_order: int = Field(default=0, ge=0)
    hex: str | None = Field(default=None, description="#RRGGBB (colors only)")


class FacetUpdateRequest(BaseModel):
    """Rename or reorder a facet term."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    display_order: int | None = Field(default=None, ge=0)
    hex: str | None = None


class FacetCatalogResponse(BaseModel):
    """Every facet kind with its terms."""

    facets: dict[str, list[FacetTermSchema]]


# ============================================================================
# Product Schemas
# ============================================================================


class ProductWriteRequest(BaseModel):
    """Create a listing."""

    title: str = Field(..., min_length=1, max_length=200)
    price: int = Field(..., gt=0, description="Price per day")
    description: str = Field(default="", max_length=5000)
    original_price: int | None = Field(default=None, gt=0)
    images: list[str] = Field(default_factory=list)
    primary_image_index: int = Field(default=0, ge=0)
    facets: dict[FacetKind, list[str]] = Field(default_factory=dict)


class ProductUpdateRequest(BaseModel):
    """Edit a listing; omitted fields keep their value."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    price: int | None = Field(default=None, gt=0)
    description: str | None = Field(default=None, max_length=5000)
    original_price: int | None = Field(default=None, gt=0)
    images: list[str] | None = None
    primary_image_index: int | None = Field(default=None, ge=0)
    facets: dict[FacetKind, list[str]] | None = None


class ProductSummarySchema(BaseModel):
    """Product card."""

    id: str
    product_code: str
    title: str
    price: int
    original_price: int | None = None
    image: str = Field(..., description="Primary image URL (may be empty)")


class ProductResponse(BaseModel):
    """Full product."""

    id: str
    product_code: str
    owner_user_id: str
    title: str
    description: str
    price: int
    original_price: int | None = None
    images: list[str]
    primary_image_index: int
    primary_image: str
    status: ProductStatus
    is_active: bool
    listing_status: str
    admin_note: str | None = None
    facets: dict[str, list[str]]
    created_at: datetime
    updated_at: datetime


class ProductDetailResponse(ProductResponse):
    """Product page."""

    owner: UserPublicSchema | None = None
    booked_dates: list[date] = Field(default_factory=list)
    related: list[ProductSummarySchema] = Field(default_factory=list)


class ProductListResponse(PaginatedResponse):
    """Paginated public listing."""

    items: list[ProductSummarySchema]
    query: str = Field(..., description="Canonical filter query string")


class ImpressionRequest(BaseModel):
    """Record a product card impression."""

    anonymous_id: str | None = Field(
        default=None, description="Browser UUID for signed-out visitors"
    )


class ImpressionResponse(BaseModel):
    """Whether an impression was stored."""

    recorded: bool


class OwnerProductStatsSchema(BaseModel):
    """Engagement counters of one listing."""

    product: ProductResponse
    views: int
    impressions: int
    wishlist_saves: int
    inquiries: int


class OwnerDashboardResponse(BaseModel):
    """The caller's listings with counters."""

    products: list[OwnerProductStatsSchema]
    total_inquiries: int


# ============================================================================
# Wishlist Schemas
# ============================================================================


class WishlistItemSchema(BaseModel):
    """A saved product."""

    product: ProductSummarySchema
    saved_at: datetime


class WishlistResponse(BaseModel):
    """The caller's wishlist."""

    items: list[WishlistItemSchema]


class WishlistStatusResponse(BaseModel):
    """Whether a product is saved."""

    product_id: str
    saved: bool


# ============================================================================
# Inquiry Schemas
# ============================================================================


class InquiryCreateRequest(BaseModel):
    """Ask to rent a product."""

    product_id: str = Field(..., description="Product code or id")
    start_date: date
    end_date: date
    message: str | None = Field(default=None, max_length=4000)


class InquiryResponse(BaseModel):
    """A rental inquiry."""

    id: str
    product_id: str
    owner_user_id: str
    renter_user_id: str
    start_date: date
    end_date: date
    status: InquiryStatus
    chat_id: str | None = None
    created_at: datetime


class InquiryListResponse(BaseModel):
    """The caller's inquiries."""

    items: list[InquiryResponse]


class BookingConfirmRequest(BaseModel):
    """Confirm rental dates."""

    start_date: date
    end_date: date
    reply_to_message_id: str | None = None


# ============================================================================
# Chat Schemas
# ============================================================================


class MessageSchema(BaseModel):
    """A chat message with sender and reply context."""

    id: str
    chat_id: str
    sender_user_id: str
    message: str
    media_url: str | None = None
    media_type: str | None = None
    reply_to_message_id: str | None = None
    client_id: str | None = None
    is_delivered: bool
    delivered_at: datetime | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime
    sender: UserPublicSchema | None = None
    reply_to: dict[str, Any] | None = None


class MessageCreateRequest(BaseModel):
    """Send a message."""

    message: str | None = Field(default=None, description="Text body")
    media_url: str | None = Field(default=None, description="Uploaded media URL")
    media_type: str | None = Field(default=None, description="Media kind")
    reply_to_message_id: str | None = None
    client_id: str | None = Field(
        default=None, max_length=64, description="Client-generated id for deduplication"
    )


class MessagePageResponse(BaseModel):
    """A page of chat history, oldest first."""

    items: list[MessageSchema]
    page: int
    page_size: int
    has_more: bool


class ChatSummarySchema(BaseModel):
    """One row of the chat list."""

    id: str
    inquiry: InquiryResponse
    other_user: UserPublicSchema | None = None
    product: ProductSummarySchema | None = None
    last_message: MessageSchema | None = None
    unread_count: int
    last_activity: datetime


class ChatListResponse(BaseModel):
    """The caller's chats."""

    items: list[ChatSummarySchema]
    total_unread: int


class UnreadResponse(BaseModel):
    """Unread badge."""

    total_unread: int


class ReportCreateRequest(BaseModel):
    """Report the other participant of a chat."""

    reason: str
    details: str = Field(default="", max_length=2000)


class ReportResponse(BaseModel):
    """A chat report."""

    id: str
    chat_id: str
    reporter_user_id: str
    reported_user_id: str
    reason: str
    details: str
    status: ReportStatus
    resolution_note: str | None = None
    created_at: datetime


class ReportResolveRequest(BaseModel):
    """Close a report."""

    status: ReportStatus
    note: str | None = None


class ReportReasonsResponse(BaseModel):
    """Allowed report reasons."""

    reasons: list[str]


# ============================================================================
# Media Schemas
# ============================================================================


class UploadResponse(BaseModel):
    """An optimised upload."""

    url: str
    size: int
    original_size: int
    quality: float
    width: int
    height: int
    content_type: str


# ============================================================================
# Site Schemas
# ============================================================================


class HeroSlideSchema(BaseModel):
    """A landing page slide."""

    id: str
    title: str
    subtitle: str | None = None
    image_url: str
    link_url: str | None = None
    display_order: int
    is_active: bool


class HeroSlideCreateRequest(BaseModel):
    """Create a slide."""

    title: str = Field(..., min_length=1, max_length=200)
    image_url: str
    subtitle: str | None = None
    link_url: str | None = None
    display_order: int = 0
    is_active: bool = True


class HeroSlideUpdateRequest(BaseModel):
    """Edit a slide; omitted fields keep their value."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    image_url: str | None = None
    subtitle: str | None = None
    link_url: str | None = None
    display_order: int | None = None
    is_active: bool | None = None


class SiteStatusResponse(BaseModel):
    """Website on/off switch."""

    website_enabled: bool


class HeroSlideListResponse(BaseModel):
    """Landing page slides."""

    items: list[HeroSlideSchema]


# ============================================================================
# Admin Schemas
# ============================================================================


class AdminProductSchema(BaseModel):
    """A product row in the admin console."""

    product: ProductResponse
    owner: ProfileResponse | None = None


class AdminProductListResponse(PaginatedResponse):
    """Paginated admin product table."""

    items: list[AdminProductSchema]


class AdminRejectRequest(BaseModel):
    """Reject a listing."""

    admin_note: str = Field(..., min_length=1, max_length=1000)


class ListingStatusRequest(BaseModel):
    """Set a listing fee arrangement."""

    listing_status: str = Field(..., description='"Paid", "Paid: ₹99", "Free" or "Offer: ₹500"')


class AdminProductCreateRequest(ProductWriteRequest):
    """List a product on behalf of a member."""

    owner_user_id: str


class AdminDeleteResponse(BaseModel):
    """What a cascading delete removed."""

    product_id: str
    reports: int
    chats: int
    messages: int
    inquiries: int
    wishlist_entries: int


class AdminUserListResponse(BaseModel):
    """Admin user directory."""

    items: list[ProfileResponse]


class AdminUserDetailResponse(BaseModel):
    """A user with their listings."""

    user: ProfileResponse
    products: list[ProductResponse]
