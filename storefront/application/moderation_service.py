"""Moderation application service.

Backs the admin product console:
- Listing every product with its owner
- Approving, rejecting and publishing listings
- Deactivation requests
- Listing fee arrangements
- Listing on behalf of a member
- Cascading deletes
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog.filters import MAX_PAGE_SIZE, PaginatedResult
from storefront.catalog.service import CatalogService, DeleteProductResult, ProductInput
from storefront.domain import (
    ListingKind,
    ListingStatus,
    NotFoundError,
    Product,
    ProductStatus,
    User,
    ValidationError,
)
from storefront.infrastructure.config import settings
from storefront.infrastructure.logging import log_domain_events

logger = structlog.get_logger()


@dataclass
class AdminProductRow:
    """A product with its owner for the admin table."""

    product: Product
    owner: User | None


class ModerationService:
    """Service for admin product moderation."""

    def __init__(self, session: AsyncSession, request_id: str | None = None) -> None:
        self.request_id = request_id
        self.catalog = CatalogService(session, request_id)
        self.product_repo = self.catalog.product_repo
        self.user_repo = self.catalog.user_repo

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    async def list_products(
        self,
        status: ProductStatus | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> PaginatedResult[AdminProductRow]:
        """Every product (any status), newest first."""
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        search = (search or "").strip() or None
        products = await self.product_repo.find_all(
            status=status,
            search=search,
            limit=page_size,
            offset=(page - 1) * page_size,
        )
        total = await self.product_repo.count(status=status, search=search)
        owners = await self.user_repo.get_many({p.owner_user_id for p in products})
        rows = [AdminProductRow(product=p, owner=owners.get(p.owner_user_id)) for p in products]
        return PaginatedResult(items=rows, total=total, page=page, page_size=page_size)

    async def _get(self, product_id: str) -> Product:
        product = await self.catalog.find_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    # -------------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------------

    async def _transition(
        self,
        product_id: str,
        admin: User,
        target: ProductStatus,
        note: str | None = None,
    ) -> Product:
        product = await self._get(product_id)
        previous = product.status
        product.transition_to(target, actor=admin.id, note=note)
        await self.product_repo.save(product)
        log_domain_events(product, self.request_id)
        logger.info(
            "Product status changed",
            product_id=product.id,
            from_status=previous.value,
            to_status=target.value,
            admin_id=admin.id,
            request_id=self.request_id,
        )
        return product

    async def approve(self, product_id: str, admin: User) -> Product:
        """Approve a pending (or draft) listing."""
        return await self._transition(product_id, admin, ProductStatus.APPROVED)

    async def reject(self, product_id: str, admin: User, note: str) -> Product:
        """Reject a pending listing with a note for the owner.

        Raises:
            ValidationError: If no note is given.
        """
        if not (note or "").strip():
            raise ValidationError(
                "A rejection note is required",
                details={"field": "admin_note"},
                error_code="NOTE_REQUIRED",
            )
        return await self._transition(
            product_id, admin, ProductStatus.REJECTED, note=note.strip()
        )

    async def toggle_publish(self, product_id: str, admin: User) -> Product:
        """Flip a listing between approved and draft."""
        product = await self._get(product_id)
        target = (
            ProductStatus.DRAFT
            if product.status is ProductStatus.APPROVED
            else ProductStatus.APPROVED
        )
        return await self._transition(product.id, admin, target)

    async def approve_deactivation(self, product_id: str, admin: User) -> Product:
        """Take a listing down as its owner asked."""
        return await self._transition(product_id, admin, ProductStatus.DRAFT)

    async def reject_deactivation(self, product_id: str, admin: User) -> Product:
        """Keep a listing live despite a deactivation request."""
        product = await self._get(product_id)
        if product.status is not ProductStatus.PENDING_DEACTIVATION:
            raise ValidationError(
                "Product has no pending deactivation request",
                details={"product_id": product.id, "status": product.status.value},
                error_code="NO_DEACTIVATION_REQUEST",
            )
        return await self._transition(product.id, admin, ProductStatus.APPROVED)

    async def set_listing_status(self, product_id: str, admin: User, value: str) -> Product:
        """Set the listing fee arrangement from its display string.

        A bare ``"Paid"`` takes the configured default listing fee.
        """
        listing = ListingStatus.parse(value)
        if listing.kind is ListingKind.PAID and listing.amount is None:
            listing = ListingStatus.paid(settings.listing_fee)
        product = await self._get(product_id)
        product.update_details(listing_status=listing)
        await self.product_repo.save(product)
        logger.info(
            "Listing status set",
            product_id=product.id,
            listing_status=listing.format(settings.currency_symbol),
            admin_id=admin.id,
            request_id=self.request_id,
        )
        return product

    # -------------------------------------------------------------------------
    # On behalf of members
    # -------------------------------------------------------------------------

    async def create_for_user(
        self, admin: User, owner_user_id: str, data: ProductInput
    ) -> Product:
        """List a product for a member; it goes live immediately."""
        owner = await self.user_repo.get(owner_user_id)
        if owner is None:
            raise NotFoundError("User", owner_user_id)
        product = await self.catalog.create_product(
            owner,
            data,
            initial_status=ProductStatus.APPROVED,
            enforce_open_limit=False,
        )
        logger.info(
            "Product listed by admin",
            product_id=product.id,
            owner_user_id=owner.id,
            admin_id=admin.id,
            request_id=self.request_id,
        )
        return product

    async def delete_product(self, product_id: str, admin: User) -> DeleteProductResult:
        """Delete a product with its reports, chats, inquiries and saves."""
        product = await self._get(product_id)
        result = await self.catalog.purge_product(product)

        logger.info(
            "Product deleted by admin",
            product_id=product.id,
            admin_id=admin.id,
            reports=result.reports,
            chats=result.chats,
            inquiries=result.inquiries,
            request_id=self.request_id,
        )
        return result


def get_moderation_service(
    session: AsyncSession, request_id: str | None = None
) -> ModerationService:
    """Get moderation service instance.

    Args:
        session: Database session.
        request_id: Request ID for correlation.

    Returns:
        ModerationService instance.
    """
    return ModerationService(session, request_id=request_id)
