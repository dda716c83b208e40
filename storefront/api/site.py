"""Public site content endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from storefront.api.dependencies import DbSession
from storefront.api.schemas import (
    HeroSlideListResponse,
    HeroSlideSchema,
    SiteStatusResponse,
)
from storefront.application.site_service import SiteService, get_site_service
from storefront.domain import HeroSlide

router = APIRouter(prefix="/site", tags=["Site"])


def get_service(request: Request, session: DbSession) -> SiteService:
    """Get site service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_site_service(session, request_id=request_id)


def slide_to_schema(slide: HeroSlide) -> HeroSlideSchema:
    """Convert a HeroSlide to its schema."""
    return HeroSlideSchema(
        id=slide.id,
        title=slide.title,
        subtitle=slide.subtitle,
        image_url=slide.image_url,
        link_url=slide.link_url,
        display_order=slide.display_order,
        is_active=slide.is_active,
    )


@router.get("/status", response_model=SiteStatusResponse, summary="Website status")
async def site_status(
    service: Annotated[SiteService, Depends(get_service)],
) -> SiteStatusResponse:
    """Whether the website is switched on (always reachable)."""
    return SiteStatusResponse(website_enabled=await service.is_website_enabled())


@router.get("/slides", response_model=HeroSlideListResponse, summary="Hero slides")
async def list_slides(
    service: Annotated[SiteService, Depends(get_service)],
) -> HeroSlideListResponse:
    """Active landing page slides in display order."""
    slides = await service.list_slides()
    return HeroSlideListResponse(items=[slide_to_schema(s) for s in slides])
