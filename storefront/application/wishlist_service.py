"""Wishlist application service."""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog.repository import ProductRepository
from storefront.domain import NotFoundError, Product, User, WishlistEntry, new_id
from storefront.infrastructure.repositories import WishlistRepository

logger = structlog.get_logger()


@dataclass
class WishlistItem:
    """A saved product."""

    entry: WishlistEntry
    product: Product


class WishlistService:
    """Service for saving products to a member's wishlist."""

    def __init__(self, session: AsyncSession, request_id: str | None = None) -> None:
        self.request_id = request_id
        self.wishlist_repo = WishlistRepository(session)
        self.product_repo = ProductRepository(session)

    async def add(self, user: User, product_id: str) -> WishlistEntry:
        """Save a live product; saving twice is a no-op.

        Raises:
            NotFoundError: If the product is not live.
        """
        product = await self.product_repo.get(product_id)
        if product is None or not product.is_live:
            raise NotFoundError("Product", product_id)
        existing = await self.wishlist_repo.get(user.id, product.id)
        if existing is not None:
            return existing
        entry = WishlistEntry(id=new_id(), user_id=user.id, product_id=product.id)
        await self.wishlist_repo.save(entry)
        logger.info(
            "Product saved to wishlist",
            user_id=user.id,
            product_id=product.id,
            request_id=self.request_id,
        )
        return entry

    async def remove(self, user: User, product_id: str) -> bool:
        """Remove a product; returns whether it was saved."""
        return await self.wishlist_repo.delete(user.id, product_id)

    async def contains(self, user: User, product_id: str) -> bool:
        """Whether the user saved the product."""
        return await self.wishlist_repo.get(user.id, product_id) is not None

    async def list_items(self, user: User) -> list[WishlistItem]:
        """Saved products that still exist, newest first."""
        items = []
        for entry in await self.wishlist_repo.list_for_user(user.id):
            product = await self.product_repo.get(entry.product_id)
            if product is not None:
                items.append(WishlistItem(entry=entry, product=product))
        return items


def get_wishlist_service(
    session: AsyncSession, request_id: str | None = None
) -> WishlistService:
    """Get wishlist service instance."""
    return WishlistService(session, request_id=request_id)
