"""Wishlist API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from storefront.api.converters import product_to_summary
from storefront.api.dependencies import CurrentUser, DbSession
from storefront.api.schemas import (
    ErrorResponse,
    WishlistItemSchema,
    WishlistResponse,
    WishlistStatusResponse,
)
from storefront.application.wishlist_service import WishlistService, get_wishlist_service

router = APIRouter(prefix="/wishlist", tags=["Wishlist"])


def get_service(request: Request, session: DbSession) -> WishlistService:
    """Get wishlist service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_wishlist_service(session, request_id=request_id)


@router.get("", response_model=WishlistResponse, summary="My wishlist")
async def list_wishlist(
    user: CurrentUser,
    service: Annotated[WishlistService, Depends(get_service)],
) -> WishlistResponse:
    """Saved products, newest first."""
    return WishlistResponse(
        items=[
            WishlistItemSchema(
                product=product_to_summary(item.product),
                saved_at=item.entry.created_at,
            )
            for item in await service.list_items(user)
        ]
    )


@router.get(
    "/{product_id}",
    response_model=WishlistStatusResponse,
    summary="Is a product saved",
)
async def wishlist_status(
    product_id: str,
    user: CurrentUser,
    service: Annotated[WishlistService, Depends(get_service)],
) -> WishlistStatusResponse:
    """Whether the caller saved the product."""
    return WishlistStatusResponse(
        product_id=product_id,
        saved=await service.contains(user, product_id),
    )


@router.put(
    "/{product_id}",
    response_model=WishlistStatusResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Save a product",
)
async def add_to_wishlist(
    product_id: str,
    user: CurrentUser,
    service: Annotated[WishlistService, Depends(get_service)],
) -> WishlistStatusResponse:
    """Save a live product; saving twice is harmless."""
    await service.add(user, product_id)
    return WishlistStatusResponse(product_id=product_id, saved=True)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unsave a product",
)
async def remove_from_wishlist(
    product_id: str,
    user: CurrentUser,
    service: Annotated[WishlistService, Depends(get_service)],
) -> None:
    """Remove a product from the wishlist."""
    await service.remove(user, product_id)
