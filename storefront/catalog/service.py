"""Catalog service for product operations.

High-level service that combines repository operations with business logic
for the public listing, product pages, view/impression tracking and the
member-facing listing submission flow.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog.facets import FacetService
from storefront.catalog.filters import MAX_PAGE_SIZE, PaginatedResult, ProductFilter
from storefront.catalog.repository import ProductRepository
from storefront.domain import (
    FacetKind,
    NotFoundError,
    PendingListingExistsError,
    PermissionDeniedError,
    Product,
    ProductImpression,
    ProductStatus,
    ProductView,
    User,
    ValidationError,
    new_id,
    utcnow,
)
from storefront.infrastructure.config import settings
from storefront.infrastructure.images import ensure_image_url
from storefront.infrastructure.logging import log_domain_events
from storefront.infrastructure.repositories import (
    ChatRepository,
    InquiryRepository,
    MessageRepository,
    ReportRepository,
    UserRepository,
    WishlistRepository,
)

logger = structlog.get_logger()

_EDITABLE_FIELDS = {
    "title",
    "description",
    "price",
    "original_price",
    "images",
    "primary_image_index",
    "facets",
}


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class ProductInput:
    """Member-supplied listing fields.

    Attributes:
        title: Product title.
        price: Price per day.
        description: Free-text description.
        original_price: Retail price.
        images: Image URLs.
        primary_image_index: Cover image index.
        facets: Facet term ids per kind.
    """

    title: str
    price: int
    description: str = ""
    original_price: int | None = None
    images: list[str] = field(default_factory=list)
    primary_image_index: int = 0
    facets: dict[FacetKind, list[str]] = field(default_factory=dict)


@dataclass
class OwnerProductStats:
    """Engagement counters for one of the owner's products."""

    product: Product
    views: int = 0
    impressions: int = 0
    wishlist_saves: int = 0
    inquiries: int = 0


@dataclass
class OwnerDashboard:
    """The "my products" page."""

    products: list[OwnerProductStats] = field(default_factory=list)
    total_inquiries: int = 0


@dataclass
class DeleteProductResult:
    """What a cascading delete removed."""

    product_id: str
    reports: int = 0
    chats: int = 0
    messages: int = 0
    inquiries: int = 0
    wishlist_entries: int = 0


# ============================================================================
# Catalog Service
# ============================================================================


class CatalogService:
    """Service for catalog operations.

    Example usage:
        service = get_catalog_service(session, request_id)
        page = await service.list_products(ProductFilter.from_query_params(params))
        product = await service.get_product("PR-00012", viewer=None)
    """

    def __init__(self, session: AsyncSession, request_id: str | None = None) -> None:
        """Initialize service.

        Args:
            session: Database session shared by the repositories.
            request_id: Request ID for correlation.
        """
        self.session = session
        self.request_id = request_id
        self.product_repo = ProductRepository(session)
        self.facet_service = FacetService(session, request_id)
        self.user_repo = UserRepository(session)
        self.wishlist_repo = WishlistRepository(session)
        self.inquiry_repo = InquiryRepository(session)
        self.chat_repo = ChatRepository(session)
        self.message_repo = MessageRepository(session)
        self.report_repo = ReportRepository(session)

    # -------------------------------------------------------------------------
    # Public listing
    # -------------------------------------------------------------------------

    async def list_products(
        self,
        product_filter: ProductFilter,
        page_size: int | None = None,
    ) -> PaginatedResult[Product]:
        """List live products matching a filter.

        Args:
            product_filter: Parsed listing filter.
            page_size: Items per page (defaults to the configured size).

        Returns:
            One page of matching products.
        """
        page_size = max(1, min(page_size or settings.product_page_size, MAX_PAGE_SIZE))
        items = await self.product_repo.find_all(
            product_filter,
            live_only=True,
            limit=page_size,
            offset=(product_filter.page - 1) * page_size,
        )
        total = await self.product_repo.count(product_filter, live_only=True)
        return PaginatedResult(
            items=items,
            total=total,
            page=product_filter.page,
            page_size=page_size,
        )

    async def find_product(self, ref: str) -> Product | None:
        """Look up a product by code first, then by id."""
        return await self.product_repo.get_by_code(ref) or await self.product_repo.get(ref)

    async def get_product(self, ref: str, viewer: User | None = None) -> Product:
        """Get a product page.

        Non-live products are only visible to their owner and admins.

        Raises:
            NotFoundError: If the product is missing or hidden from the viewer.
        """
        product = await self.find_product(ref)
        if product is None or not self._can_see(product, viewer):
            raise NotFoundError("Product", ref)
        return product

    async def get_owner(self, product: Product) -> User | None:
        """The member who lists a product."""
        return await self.user_repo.get(product.owner_user_id)

    async def get_owned_product(self, product_id: str, actor: User) -> Product:
        """Get a product the actor owns (admins may act on any).

        Raises:
            NotFoundError: If the product does not exist.
            PermissionDeniedError: If the actor does not own it.
        """
        product = await self.find_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        if product.owner_user_id != actor.id and not actor.is_admin:
            raise PermissionDeniedError(
                "Only the owner can change this product",
                details={"product_id": product.id},
            )
        return product

    async def related_products(self, product: Product, limit: int = 8) -> list[Product]:
        """Other live products ranked by shared facet terms, then recency."""
        terms = product.all_facet_ids()
        if not terms:
            return []
        candidates = await self.product_repo.find_sharing_terms(terms, product.id)
        scored = [
            (len(terms & candidate.all_facet_ids()), candidate.created_at, candidate)
            for candidate in candidates
        ]
        scored.sort(key=lambda row: (row[0], row[1]), reverse=True)
        return [row[2] for row in scored[:limit]]

    @staticmethod
    def _can_see(product: Product, viewer: User | None) -> bool:
        if product.is_live:
            return True
        return viewer is not None and (viewer.is_admin or viewer.id == product.owner_user_id)

    # -------------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------------

    async def record_view(self, ref: str) -> None:
        """Record a product page view (unknown products included)."""
        await self.product_repo.add_view(ProductView(id=new_id(), product_ref=ref))
        logger.debug("Product view recorded", product_ref=ref, request_id=self.request_id)

    async def record_impression(
        self,
        product_id: str,
        viewer_id: str,
        anonymous: bool,
    ) -> bool:
        """Record that a product card was shown to a viewer.

        Impressions of the same product by the same viewer are throttled to
        one per ``impression_throttle_minutes``.

        Args:
            product_id: Product shown.
            viewer_id: User id, or the anonymous UUID of the browser.
            anonymous: Whether ``viewer_id`` is an anonymous UUID.

        Returns:
            True if an impression was stored.

        Raises:
            ValidationError: If an anonymous id is not a UUID.
            NotFoundError: If the product does not exist.
        """
        if anonymous:
            try:
                UUID(viewer_id)
            except ValueError:
                raise ValidationError(
                    "Anonymous viewer id must be a UUID",
                    details={"viewer_id": viewer_id},
                    error_code="INVALID_VIEWER_ID",
                ) from None
        if await self.product_repo.get(product_id) is None:
            raise NotFoundError("Product", product_id)

        now = utcnow()
        window = timedelta(minutes=settings.impression_throttle_minutes)
        last = await self.product_repo.last_impression(product_id, viewer_id)
        if last is not None and now - last < window:
            return False

        await self.product_repo.add_impression(
            ProductImpression(
                id=new_id(),
                product_id=product_id,
                viewer_id=viewer_id,
                is_anonymous=anonymous,
                seen_at=now,
            )
        )
        return True

    async def owner_dashboard(self, owner: User) -> OwnerDashboard:
        """Per-product engagement counters for the owner's listings."""
        dashboard = OwnerDashboard()
        for product in await self.product_repo.find_all(owner_user_id=owner.id):
            inquiries = await self.inquiry_repo.count_for_product(product.id)
            dashboard.products.append(
                OwnerProductStats(
                    product=product,
                    views=await self.product_repo.count_views(product),
                    impressions=await self.product_repo.count_impressions(product.id),
                    wishlist_saves=await self.wishlist_repo.count_for_product(product.id),
                    inquiries=inquiries,
                )
            )
            dashboard.total_inquiries += inquiries
        return dashboard

    # -------------------------------------------------------------------------
    # Submissions
    # -------------------------------------------------------------------------

    async def create_product(
        self,
        owner: User,
        data: ProductInput,
        initial_status: ProductStatus = ProductStatus.DRAFT,
        enforce_open_limit: bool = True,
    ) -> Product:
        """Create a listing.

        Args:
            owner: Listing owner.
            data: Listing fields.
            initial_status: Starting state (admins publish directly).
            enforce_open_limit: Whether to apply the one-open-listing rule.

        Raises:
            PendingListingExistsError: If the owner already has a draft or
                pending listing.
            ValidationError: If any field is invalid.
        """
        if enforce_open_limit:
            open_listing = next(
                (
                    p
                    for p in await self.product_repo.find_all(owner_user_id=owner.id)
                    if p.status.is_open_submission()
                ),
                None,
            )
            if open_listing is not None:
                raise PendingListingExistsError(owner.id, open_listing.id)

        fields = await self._validated(data.__dict__)
        product = Product.create(
            product_code=await self.product_repo.next_product_code(settings.product_code_prefix),
            owner_user_id=owner.id,
            status=initial_status,
            **fields,
        )
        await self.product_repo.save(product)
        log_domain_events(product, self.request_id)

        logger.info(
            "Product created",
            product_id=product.id,
            product_code=product.product_code,
            owner_user_id=owner.id,
            status=product.status.value,
            request_id=self.request_id,
        )
        return product

    async def update_product(
        self,
        product_id: str,
        actor: User,
        changes: dict[str, Any],
    ) -> Product:
        """Edit a listing; its status is left unchanged.

        Raises:
            ValidationError: If the merged fields are invalid.
        """
        product = await self.get_owned_product(product_id, actor)
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Fields cannot be edited",
                details={"fields": sorted(unknown)},
            )
        merged = {name: getattr(product, name) for name in _EDITABLE_FIELDS}
        merged.update(changes)
        fields = await self._validated(merged)
        product.update_details(**{name: fields[name] for name in changes})

        await self.product_repo.save(product)
        logger.info(
            "Product updated",
            product_id=product.id,
            fields=sorted(changes),
            request_id=self.request_id,
        )
        return product

    async def submit_for_review(self, product_id: str, actor: User) -> Product:
        """Send a draft or rejected listing to moderation."""
        product = await self.get_owned_product(product_id, actor)
        product.transition_to(ProductStatus.PENDING, actor=actor.id)
        await self.product_repo.save(product)
        log_domain_events(product, self.request_id)
        logger.info("Product submitted", product_id=product.id, request_id=self.request_id)
        return product

    async def request_deactivation(self, product_id: str, actor: User) -> Product:
        """Ask moderators to take a live listing down."""
        product = await self.get_owned_product(product_id, actor)
        product.transition_to(ProductStatus.PENDING_DEACTIVATION, actor=actor.id)
        await self.product_repo.save(product)
        log_domain_events(product, self.request_id)
        logger.info(
            "Product deactivation requested",
            product_id=product.id,
            request_id=self.request_id,
        )
        return product

    async def delete_product(self, product_id: str, actor: User) -> DeleteProductResult:
        """Delete one of the actor's listings that is not live.

        Inquiries, chats, messages, reports and wishlist saves of the
        listing go with it.

        Raises:
            PermissionDeniedError: If the listing is approved.
        """
        product = await self.get_owned_product(product_id, actor)
        if product.status is ProductStatus.APPROVED:
            raise PermissionDeniedError(
                "Live listings must be deactivated before deletion",
                details={"product_id": product.id, "status": product.status.value},
            )
        result = await self.purge_product(product)
        logger.info(
            "Product deleted",
            product_id=product.id,
            chats=result.chats,
            inquiries=result.inquiries,
            request_id=self.request_id,
        )
        return result

    async def purge_product(self, product: Product) -> DeleteProductResult:
        """Delete a product with its reports, chats, inquiries and saves."""
        result = DeleteProductResult(product_id=product.id)

        inquiries = await self.inquiry_repo.list_for_product(product.id)
        chats = await self.chat_repo.list_for_inquiries({i.id for i in inquiries})
        chat_ids = {c.id for c in chats}

        result.reports = await self.report_repo.delete_for_chats(chat_ids)
        result.messages = await self.message_repo.delete_for_chats(chat_ids)
        result.chats = await self.chat_repo.delete_many(chat_ids)
        result.inquiries = await self.inquiry_repo.delete_for_product(product.id)
        result.wishlist_entries = await self.wishlist_repo.delete_for_product(product.id)
        await self.product_repo.delete(product.id)
        return result

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    async def _validated(self, values: dict[str, Any]) -> dict[str, Any]:
        title = (values.get("title") or "").strip()
        if not title:
            raise ValidationError("Title is required", details={"field": "title"})

        price = values.get("price")
        if not isinstance(price, int) or price <= 0:
            raise ValidationError("Price must be a positive integer", details={"price": price})

        original_price = values.get("original_price")
        if original_price is not None and original_price < price:
            raise ValidationError(
                "Original price cannot be below the rental price",
                details={"price": price, "original_price": original_price},
            )

        images = [ensure_image_url(url) for url in values.get("images") or []]
        if len(images) > settings.max_product_images:
            raise ValidationError(
                f"At most {settings.max_product_images} images are allowed",
                details={"count": len(images)},
            )

        primary = values.get("primary_image_index") or 0
        if images and not 0 <= primary < len(images):
            raise ValidationError(
                "primary_image_index is out of range",
                details={"primary_image_index": primary, "images": len(images)},
            )
        if not images:
            primary = 0

        facets: dict[FacetKind, list[str]] = {}
        for kind, ids in (values.get("facets") or {}).items():
            kind = FacetKind(kind)
            if ids:
                facets[kind] = await self.facet_service.validate_ids(kind, list(ids))

        return {
            "title": title,
            "description": (values.get("description") or "").strip(),
            "price": price,
            "original_price": original_price,
            "images": images,
            "primary_image_index": primary,
            "facets": facets,
        }


def get_catalog_service(session: AsyncSession, request_id: str | None = None) -> CatalogService:
    """Get catalog service instance.

    Args:
        session: Database session.
        request_id: Request ID for correlation.

    Returns:
        CatalogService instance.
    """
    return CatalogService(session, request_id=request_id)
