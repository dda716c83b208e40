"""Entity to response schema converters shared by several routers."""

from typing import Any

from storefront.api.schemas import (
    InquiryResponse,
    MessageSchema,
    ProductResponse,
    ProductSummarySchema,
    ProfileResponse,
    ReportResponse,
    UserPublicSchema,
)
from storefront.domain import Inquiry, Product, Report, User
from storefront.infrastructure.config import settings


def user_to_public(user: User | None) -> UserPublicSchema | None:
    """Convert a User to its public profile."""
    if user is None:
        return None
    return UserPublicSchema(**user.public_profile())


def user_to_profile(user: User) -> ProfileResponse:
    """Convert a User to the full profile (self or admin)."""
    return ProfileResponse(
        id=user.id,
        name=user.name,
        phone=user.phone,
        email=user.email,
        avatar_url=user.avatar_url,
        city_ids=list(user.city_ids),
        is_admin=user.is_admin,
        created_at=user.created_at,
    )


def product_to_summary(product: Product) -> ProductSummarySchema:
    """Convert a Product to a listing card."""
    return ProductSummarySchema(
        id=product.id,
        product_code=product.product_code,
        title=product.title,
        price=product.price,
        original_price=product.original_price,
        image=product.primary_image,
    )


def product_fields(product: Product) -> dict[str, Any]:
    """Fields shared by every full product response."""
    return {
        "id": product.id,
        "product_code": product.product_code,
        "owner_user_id": product.owner_user_id,
        "title": product.title,
        "description": product.description,
        "price": product.price,
        "original_price": product.original_price,
        "images": list(product.images),
        "primary_image_index": product.primary_image_index,
        "primary_image": product.primary_image,
        "status": product.status,
        "is_active": product.is_active,
        "listing_status": product.listing_status.format(settings.currency_symbol),
        "admin_note": product.admin_note,
        "facets": {kind.value: list(ids) for kind, ids in product.facets.items()},
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def product_to_response(product: Product) -> ProductResponse:
    """Convert a Product to the full response."""
    return ProductResponse(**product_fields(product))


def inquiry_to_response(inquiry: Inquiry, chat_id: str | None = None) -> InquiryResponse:
    """Convert an Inquiry to its response, with the chat id."""
    return InquiryResponse(
        id=inquiry.id,
        product_id=inquiry.product_id,
        owner_user_id=inquiry.owner_user_id,
        renter_user_id=inquiry.renter_user_id,
        start_date=inquiry.start_date,
        end_date=inquiry.end_date,
        status=inquiry.status,
        chat_id=chat_id,
        created_at=inquiry.created_at,
    )


def message_to_schema(data: dict[str, Any]) -> MessageSchema:
    """Convert an enriched message dict to its schema."""
    return MessageSchema(**data)


def report_to_response(report: Report) -> ReportResponse:
    """Convert a Report to its response."""
    return ReportResponse(
        id=report.id,
        chat_id=report.chat_id,
        reporter_user_id=report.reporter_user_id,
        reported_user_id=report.reported_user_id,
        reason=report.reason,
        details=report.details,
        status=report.status,
        resolution_note=report.resolution_note,
        created_at=report.created_at,
    )
