"""Site content application service.

Manages the landing page hero carousel and the website on/off switch that
the maintenance-mode middleware consults.
"""

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain import HeroSlide, NotFoundError, ValidationError, new_id
from storefront.infrastructure.images import ensure_image_url
from storefront.infrastructure.repositories import SiteContentRepository

logger = structlog.get_logger()

WEBSITE_ENABLED_KEY = "website_enabled"

_SLIDE_FIELDS = {"title", "subtitle", "image_url", "link_url", "display_order", "is_active"}


class SiteService:
    """Service for hero slides and website settings."""

    def __init__(self, session: AsyncSession, request_id: str | None = None) -> None:
        self.request_id = request_id
        self.site_repo = SiteContentRepository(session)

    # -------------------------------------------------------------------------
    # Website settings
    # -------------------------------------------------------------------------

    async def is_website_enabled(self) -> bool:
        """Whether visitors can use the storefront."""
        value = await self.site_repo.get_setting(WEBSITE_ENABLED_KEY)
        return value is None or value.lower() == "true"

    async def set_website_enabled(self, enabled: bool) -> bool:
        """Switch the storefront on or off."""
        await self.site_repo.set_setting(WEBSITE_ENABLED_KEY, "true" if enabled else "false")
        logger.info("Website toggled", enabled=enabled, request_id=self.request_id)
        return enabled

    # -------------------------------------------------------------------------
    # Hero slides
    # -------------------------------------------------------------------------

    async def list_slides(self, include_inactive: bool = False) -> list[HeroSlide]:
        """Slides in display order (only active ones unless asked)."""
        slides = await self.site_repo.list_slides()
        if include_inactive:
            return slides
        return [s for s in slides if s.is_active]

    async def create_slide(
        self,
        title: str,
        image_url: str,
        subtitle: str | None = None,
        link_url: str | None = None,
        display_order: int = 0,
        is_active: bool = True,
    ) -> HeroSlide:
        """Create a slide."""
        if not title.strip():
            raise ValidationError("Title is required", details={"field": "title"})
        slide = HeroSlide(
            id=new_id(),
            title=title.strip(),
            image_url=ensure_image_url(image_url),
            subtitle=subtitle,
            link_url=link_url,
            display_order=display_order,
            is_active=is_active,
        )
        await self.site_repo.save_slide(slide)
        logger.info("Hero slide created", slide_id=slide.id, request_id=self.request_id)
        return slide

    async def update_slide(self, slide_id: str, changes: dict[str, Any]) -> HeroSlide:
        """Edit a slide."""
        slide = await self.site_repo.get_slide(slide_id)
        if slide is None:
            raise NotFoundError("HeroSlide", slide_id)
        unknown = set(changes) - _SLIDE_FIELDS
        if unknown:
            raise ValidationError("Fields cannot be edited", details={"fields": sorted(unknown)})
        if "image_url" in changes:
            changes["image_url"] = ensure_image_url(changes["image_url"])
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("Title is required", details={"field": "title"})
        for name, value in changes.items():
            setattr(slide, name, value)
        await self.site_repo.save_slide(slide)
        logger.info("Hero slide updated", slide_id=slide_id, request_id=self.request_id)
        return slide

    async def delete_slide(self, slide_id: str) -> None:
        """Delete a slide."""
        if not await self.site_repo.delete_slide(slide_id):
            raise NotFoundError("HeroSlide", slide_id)
        logger.info("Hero slide deleted", slide_id=slide_id, request_id=self.request_id)


def get_site_service(session: AsyncSession, request_id: str | None = None) -> SiteService:
    """Get site service instance."""
    return SiteService(session, request_id=request_id)
