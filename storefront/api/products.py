"""Product API endpoints.

Public listing with filter URLs, product pages, view and impression
tracking, and the member-facing listing submission flow.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from storefront.api.converters import (
    product_fields,
    product_to_response,
    product_to_summary,
    user_to_public,
)
from storefront.api.dependencies import CurrentUser, DbSession, OptionalUser
from storefront.api.schemas import (
    ErrorResponse,
    ImpressionRequest,
    ImpressionResponse,
    OwnerDashboardResponse,
    OwnerProductStatsSchema,
    ProductDetailResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdateRequest,
    ProductWriteRequest,
)
from storefront.application.inquiry_service import InquiryService, get_inquiry_service
from storefront.catalog.filters import ProductFilter
from storefront.catalog.service import CatalogService, ProductInput, get_catalog_service
from storefront.domain import ValidationError

router = APIRouter(prefix="/products", tags=["Products"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request, session: DbSession) -> CatalogService:
    """Get catalog service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_catalog_service(session, request_id=request_id)


def get_inquiries(request: Request, session: DbSession) -> InquiryService:
    """Get inquiry service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_inquiry_service(session, request_id=request_id)


# ============================================================================
# Public Listing
# ============================================================================


@router.get(
    "",
    response_model=ProductListResponse,
    responses={422: {"model": ErrorResponse}},
    summary="List products",
    description=(
        "List live products. Facet filters take comma-separated term ids "
        "(?city=a,b&color=c); the response echoes the canonical query string."
    ),
)
async def list_products(
    request: Request,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductListResponse:
    """List live products matching the query parameters."""
    product_filter = ProductFilter.from_query_params(request.query_params)
    result = await service.list_products(product_filter)
    return ProductListResponse(
        items=[product_to_summary(p) for p in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_more=result.has_more,
        query=product_filter.to_query_string(),
    )


@router.get(
    "/mine",
    response_model=OwnerDashboardResponse,
    responses={401: {"model": ErrorResponse}},
    summary="My products",
)
async def my_products(
    user: CurrentUser,
    service: Annotated[CatalogService, Depends(get_service)],
) -> OwnerDashboardResponse:
    """The caller's listings with views, impressions, saves and inquiries."""
    dashboard = await service.owner_dashboard(user)
    return OwnerDashboardResponse(
        products=[
            OwnerProductStatsSchema(
                product=product_to_response(stats.product),
                views=stats.views,
                impressions=stats.impressions,
                wishlist_saves=stats.wishlist_saves,
                inquiries=stats.inquiries,
            )
            for stats in dashboard.products
        ],
        total_inquiries=dashboard.total_inquiries,
    )


@router.get(
    "/{product_ref}",
    response_model=ProductDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get product page",
)
async def get_product(
    product_ref: str,
    viewer: OptionalUser,
    service: Annotated[CatalogService, Depends(get_service)],
    inquiries: Annotated[InquiryService, Depends(get_inquiries)],
) -> ProductDetailResponse:
    """Get a product by code or id, with owner, booked dates and related items.

    Listings that are not live are only visible to their owner and admins.
    """
    product = await service.get_product(product_ref, viewer)
    related = await service.related_products(product)
    return ProductDetailResponse(
        **product_fields(product),
        owner=user_to_public(await service.get_owner(product)),
        booked_dates=await inquiries.booked_dates(product.id),
        related=[product_to_summary(p) for p in related],
    )


@router.post(
    "/{product_ref}/view",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Record a product page view",
)
async def record_view(
    product_ref: str,
    service: Annotated[CatalogService, Depends(get_service)],
) -> None:
    """Count a page view; unknown references are counted too."""
    await service.record_view(product_ref)


@router.post(
    "/{product_id}/impressions",
    response_model=ImpressionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Record a product card impression",
)
async def record_impression(
    product_id: str,
    body: ImpressionRequest,
    viewer: OptionalUser,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ImpressionResponse:
    """Record that a listing card was shown.

    Signed-in viewers are identified by their account; anonymous visitors
    send the UUID their browser generated.
    """
    if viewer is not None:
        recorded = await service.record_impression(product_id, viewer.id, anonymous=False)
    elif body.anonymous_id:
        recorded = await service.record_impression(product_id, body.anonymous_id, anonymous=True)
    else:
        raise ValidationError(
            "anonymous_id is required for signed-out viewers",
            details={"field": "anonymous_id"},
            error_code="INVALID_VIEWER_ID",
        )
    return ImpressionResponse(recorded=recorded)


# ============================================================================
# Submissions
# ============================================================================


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create a listing",
)
async def create_product(
    body: ProductWriteRequest,
    user: CurrentUser,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductResponse:
    """Create a draft listing.

    Members may only have one draft or pending listing at a time.
    """
    product = await service.create_product(user, ProductInput(**body.model_dump()))
    return product_to_response(product)


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Edit a listing",
)
async def update_product(
    product_id: str,
    body: ProductUpdateRequest,
    user: CurrentUser,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductResponse:
    """Edit listing fields; the moderation status is kept."""
    changes = body.model_dump(exclude_unset=True)
    product = await service.update_product(product_id, user, changes)
    return product_to_response(product)


@router.post(
    "/{product_id}/submit",
    response_model=ProductResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Submit a listing for review",
)
async def submit_product(
    product_id: str,
    user: CurrentUser,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductResponse:
    """Send a draft or rejected listing to the moderators."""
    return product_to_response(await service.submit_for_review(product_id, user))


@router.post(
    "/{product_id}/deactivate",
    response_model=ProductResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Request deactivation",
)
async def deactivate_product(
    product_id: str,
    user: CurrentUser,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductResponse:
    """Ask the moderators to take a live listing down."""
    return product_to_response(await service.request_deactivation(product_id, user))


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Delete a listing",
)
async def delete_product(
    product_id: str,
    user: CurrentUser,
    service: Annotated[CatalogService, Depends(get_service)],
) -> None:
    """Delete one of the caller's listings that is not live."""
    await service.delete_product(product_id, user)
