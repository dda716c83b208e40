"""Admin console endpoints.

Everything under ``/admin`` requires an admin session (enforced by the
session middleware and again by the ``AdminUser`` dependency).
"""

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from storefront.api.converters import (
    product_to_response,
    report_to_response,
    user_to_profile,
)
from storefront.api.dependencies import AdminUser, DbSession
from storefront.api.facets import term_to_schema
from storefront.api.schemas import (
    AdminDeleteResponse,
    AdminProductCreateRequest,
    AdminProductListResponse,
    AdminProductSchema,
    AdminRejectRequest,
    AdminUserDetailResponse,
    AdminUserListResponse,
    CountResponse,
    ErrorResponse,
    FacetCreateRequest,
    FacetTermSchema,
    FacetUpdateRequest,
    HeroSlideCreateRequest,
    HeroSlideListResponse,
    HeroSlideSchema,
    HeroSlideUpdateRequest,
    ListingStatusRequest,
    ProductResponse,
    ProductUpdateRequest,
    ReportResolveRequest,
    ReportResponse,
    SiteStatusResponse,
)
from storefront.api.site import slide_to_schema
from storefront.application.chat_service import ChatService, get_chat_service
from storefront.application.identity_service import IdentityService, get_identity_service
from storefront.application.moderation_service import (
    ModerationService,
    get_moderation_service,
)
from storefront.application.site_service import SiteService, get_site_service
from storefront.catalog.facets import FacetService, get_facet_service
from storefront.catalog.service import ProductInput
from storefront.domain import FacetKind, ProductStatus, ReportStatus

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================================
# Dependencies
# ============================================================================


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def get_moderation(request: Request, session: DbSession) -> ModerationService:
    """Get moderation service with request ID."""
    return get_moderation_service(session, request_id=_request_id(request))


def get_identity(request: Request, session: DbSession) -> IdentityService:
    """Get identity service with request ID."""
    return get_identity_service(session, request_id=_request_id(request))


def get_facets(request: Request, session: DbSession) -> FacetService:
    """Get facet service with request ID."""
    return get_facet_service(session, request_id=_request_id(request))


def get_chats(request: Request, session: DbSession) -> ChatService:
    """Get chat service with request ID."""
    return get_chat_service(session, request_id=_request_id(request))


def get_site(request: Request, session: DbSession) -> SiteService:
    """Get site service with request ID."""
    return get_site_service(session, request_id=_request_id(request))


Moderation = Annotated[ModerationService, Depends(get_moderation)]


# ============================================================================
# Products
# ============================================================================


@router.get("/products", response_model=AdminProductListResponse, summary="All products")
async def list_products(
    admin: AdminUser,
    service: Moderation,
    product_status: Annotated[ProductStatus | None, Query(alias="status")] = None,
    q: Annotated[str | None, Query(description="Title or code fragment")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> AdminProductListResponse:
    """Every product in any status, newest first, with its owner."""
    result = await service.list_products(product_status, q, page, page_size)
    return AdminProductListResponse(
        items=[
            AdminProductSchema(
                product=product_to_response(row.product),
                owner=user_to_profile(row.owner) if row.owner else None,
            )
            for row in result.items
        ],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_more=result.has_more,
    )


@router.post(
    "/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="List a product for a member",
)
async def create_product(
    body: AdminProductCreateRequest,
    admin: AdminUser,
    service: Moderation,
) -> ProductResponse:
    """Create an approved listing owned by another member."""
    data = ProductInput(**body.model_dump(exclude={"owner_user_id"}))
    product = await service.create_for_user(admin, body.owner_user_id, data)
    return product_to_response(product)


@router.patch(
    "/products/{product_id}",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Edit any product",
)
async def update_product(
    product_id: str,
    body: ProductUpdateRequest,
    admin: AdminUser,
    service: Moderation,
) -> ProductResponse:
    """Edit listing fields of any product; the status is kept."""
    changes = body.model_dump(exclude_unset=True)
    product = await service.catalog.update_product(product_id, admin, changes)
    return product_to_response(product)


@router.post(
    "/products/{product_id}/approve",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Approve a listing",
)
async def approve_product(
    product_id: str, admin: AdminUser, service: Moderation
) -> ProductResponse:
    """Publish a pending listing."""
    return product_to_response(await service.approve(product_id, admin))


@router.post(
    "/products/{product_id}/reject",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Reject a listing",
)
async def reject_product(
    product_id: str,
    body: AdminRejectRequest,
    admin: AdminUser,
    service: Moderation,
) -> ProductResponse:
    """Reject a pending listing with a note for the owner."""
    return product_to_response(await service.reject(product_id, admin, body.admin_note))


@router.post(
    "/products/{product_id}/toggle-publish",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Publish or unpublish",
)
async def toggle_publish(product_id: str, admin: AdminUser, service: Moderation) -> ProductResponse:
    """Flip a listing between approved and draft."""
    return product_to_response(await service.toggle_publish(product_id, admin))


@router.post(
    "/products/{product_id}/deactivation/approve",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Approve a deactivation request",
)
async def approve_deactivation(
    product_id: str, admin: AdminUser, service: Moderation
) -> ProductResponse:
    """Take a listing down as its owner asked."""
    return product_to_response(await service.approve_deactivation(product_id, admin))


@router.post(
    "/products/{product_id}/deactivation/reject",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Reject a deactivation request",
)
async def reject_deactivation(
    product_id: str, admin: AdminUser, service: Moderation
) -> ProductResponse:
    """Keep the listing live."""
    return product_to_response(await service.reject_deactivation(product_id, admin))


@router.put(
    "/products/{product_id}/listing-status",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Set the listing fee",
)
async def set_listing_status(
    product_id: str,
    body: ListingStatusRequest,
    admin: AdminUser,
    service: Moderation,
) -> ProductResponse:
    """Set "Paid", "Paid: ₹N", "Free" or "Offer: ₹N"."""
    product = await service.set_listing_status(product_id, admin, body.listing_status)
    return product_to_response(product)


@router.delete(
    "/products/{product_id}",
    response_model=AdminDeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a product",
)
async def delete_product(
    product_id: str, admin: AdminUser, service: Moderation
) -> AdminDeleteResponse:
    """Delete a product with its reports, chats, inquiries and wishlist saves."""
    result = await service.delete_product(product_id, admin)
    return AdminDeleteResponse(**asdict(result))


# ============================================================================
# Users
# ============================================================================


@router.get("/users", response_model=AdminUserListResponse, summary="Users")
async def list_users(
    admin: AdminUser,
    service: Annotated[IdentityService, Depends(get_identity)],
    q: Annotated[str | None, Query(description="Name, phone or email fragment")] = None,
) -> AdminUserListResponse:
    """Member directory."""
    users = await service.list_users(q)
    return AdminUserListResponse(items=[user_to_profile(u) for u in users])


@router.get(
    "/users/{user_id}",
    response_model=AdminUserDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="User detail",
)
async def get_user(
    user_id: str,
    admin: AdminUser,
    service: Annotated[IdentityService, Depends(get_identity)],
) -> AdminUserDetailResponse:
    """A member with all of their listings."""
    detail = await service.get_user_detail(user_id)
    return AdminUserDetailResponse(
        user=user_to_profile(detail.user),
        products=[product_to_response(p) for p in detail.products],
    )


# ============================================================================
# Facets
# ============================================================================


@router.post(
    "/facets/{kind}",
    response_model=FacetTermSchema,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Create a facet term",
)
async def create_facet_term(
    kind: FacetKind,
    body: FacetCreateRequest,
    admin: AdminUser,
    service: Annotated[FacetService, Depends(get_facets)],
) -> FacetTermSchema:
    """Add a city, color, occasion, material, type or category."""
    term = await service.create_term(kind, body.name, body.display_order, body.hex)
    return term_to_schema(term)


@router.patch(
    "/facets/terms/{term_id}",
    response_model=FacetTermSchema,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Edit a facet term",
)
async def update_facet_term(
    term_id: str,
    body: FacetUpdateRequest,
    admin: AdminUser,
    service: Annotated[FacetService, Depends(get_facets)],
) -> FacetTermSchema:
    """Rename, reorder or recolor a term."""
    term = await service.update_term(term_id, body.name, body.display_order, body.hex)
    return term_to_schema(term)


@router.delete(
    "/facets/terms/{term_id}",
    response_model=CountResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a facet term",
)
async def delete_facet_term(
    term_id: str,
    admin: AdminUser,
    service: Annotated[FacetService, Depends(get_facets)],
) -> CountResponse:
    """Delete a term; ``updated`` counts the products it was removed from."""
    return CountResponse(updated=await service.delete_term(term_id))


# ============================================================================
# Reports
# ============================================================================


@router.get("/reports", response_model=list[ReportResponse], summary="Chat reports")
async def list_reports(
    admin: AdminUser,
    service: Annotated[ChatService, Depends(get_chats)],
    report_status: Annotated[ReportStatus | None, Query(alias="status")] = None,
) -> list[ReportResponse]:
    """Reports, newest first."""
    return [report_to_response(r) for r in await service.list_reports(report_status)]


@router.post(
    "/reports/{report_id}/resolve",
    response_model=ReportResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Resolve a report",
)
async def resolve_report(
    report_id: str,
    body: ReportResolveRequest,
    admin: AdminUser,
    service: Annotated[ChatService, Depends(get_chats)],
) -> ReportResponse:
    """Mark a report reviewed or dismissed."""
    report = await service.resolve_report(report_id, body.status, body.note)
    return report_to_response(report)


# ============================================================================
# Site Content
# ============================================================================


@router.get("/slides", response_model=HeroSlideListResponse, summary="All hero slides")
async def list_slides(
    admin: AdminUser,
    service: Annotated[SiteService, Depends(get_site)],
) -> HeroSlideListResponse:
    """Every slide, inactive ones included."""
    slides = await service.list_slides(include_inactive=True)
    return HeroSlideListResponse(items=[slide_to_schema(s) for s in slides])


@router.post(
    "/slides",
    response_model=HeroSlideSchema,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
    summary="Create a hero slide",
)
async def create_slide(
    body: HeroSlideCreateRequest,
    admin: AdminUser,
    service: Annotated[SiteService, Depends(get_site)],
) -> HeroSlideSchema:
    """Add a landing page slide."""
    return slide_to_schema(await service.create_slide(**body.model_dump()))


@router.patch(
    "/slides/{slide_id}",
    response_model=HeroSlideSchema,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Edit a hero slide",
)
async def update_slide(
    slide_id: str,
    body: HeroSlideUpdateRequest,
    admin: AdminUser,
    service: Annotated[SiteService, Depends(get_site)],
) -> HeroSlideSchema:
    """Edit a slide; omitted fields are kept."""
    slide = await service.update_slide(slide_id, body.model_dump(exclude_unset=True))
    return slide_to_schema(slide)


@router.delete(
    "/slides/{slide_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a hero slide",
)
async def delete_slide(
    slide_id: str,
    admin: AdminUser,
    service: Annotated[SiteService, Depends(get_site)],
) -> None:
    """Remove a slide."""
    await service.delete_slide(slide_id)


@router.put("/site/status", response_model=SiteStatusResponse, summary="Switch the website")
async def set_site_status(
    body: SiteStatusResponse,
    admin: AdminUser,
    service: Annotated[SiteService, Depends(get_site)],
) -> SiteStatusResponse:
    """Turn the public website on or off (maintenance mode)."""
    enabled = await service.set_website_enabled(body.website_enabled)
    return SiteStatusResponse(website_enabled=enabled)
