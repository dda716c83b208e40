"""Catalog repositories for database operations.

Provides product storage with filtering, sorting and pagination, the
view and impression tracking rows, and facet terms. Rows are converted to
domain entities on the way out, so services never touch ORM objects.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog.filters import ProductFilter, SortOrder
from storefront.domain import (
    FacetKind,
    FacetTerm,
    Product,
    ProductImpression,
    ProductStatus,
    ProductView,
)
from storefront.infrastructure.config import settings
from storefront.infrastructure.models import (
    CodeSequenceModel,
    FacetTermModel,
    ProductFacetModel,
    ProductImpressionModel,
    ProductModel,
    ProductViewModel,
)


class ProductRepository:
    """Repository for Product database operations.

    Handles all database interactions for products including
    filtering, sorting, and pagination.

    Example usage:
        async with session_scope() as session:
            repo = ProductRepository(session)
            products = await repo.find_all(
                ProductFilter(facets={FacetKind.CITIES: {city_id}}),
                live_only=True,
                limit=24,
            )
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    async def save(self, product: Product) -> Product:
        """Insert or update a product together with its facet links.

        Args:
            product: Product to save.

        Returns:
            Saved product.
        """
        await self.session.merge(ProductModel.from_entity(product, settings.currency_symbol))
        await self.session.flush()
        return product

    async def get(self, product_id: str) -> Product | None:
        """Get product by ID."""
        model = await self.session.get(ProductModel, product_id)
        return model.to_entity() if model else None

    async def get_by_code(self, product_code: str) -> Product | None:
        """Get product by its human-facing code (case-insensitive)."""
        query = select(ProductModel).where(
            func.upper(ProductModel.product_code) == product_code.upper()
        )
        result = await self.session.execute(query)
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def delete(self, product_id: str) -> None:
        """Delete a product, its facet links and its tracking rows."""
        model = await self.session.get(ProductModel, product_id)
        if model is None:
            return
        refs = [model.id.upper(), model.product_code.upper()]
        await self.session.execute(
            delete(ProductViewModel).where(func.upper(ProductViewModel.product_ref).in_(refs))
        )
        await self.session.execute(
            delete(ProductImpressionModel).where(ProductImpressionModel.product_id == product_id)
        )
        await self.session.delete(model)
        await self.session.flush()

    async def find_all(
        self,
        product_filter: ProductFilter | None = None,
        live_only: bool = False,
        owner_user_id: str | None = None,
        status: ProductStatus | None = None,
        search: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Product]:
        """Find products with filtering, sorting, and pagination.

        Args:
            product_filter: Listing filter (facets, price, search, sort).
            live_only: Only approved, active listings.
            owner_user_id: Filter by owner.
            status: Filter by lifecycle state.
            search: Search in title, description and product code.
            limit: Maximum results.
            offset: Result offset for pagination.

        Returns:
            Matching products.
        """
        query = select(ProductModel)
        conditions = self._conditions(product_filter, live_only, owner_user_id, status, search)
        if conditions:
            query = query.where(and_(*conditions))

        sort = product_filter.sort if product_filter else SortOrder.NEWEST
        query = query.order_by(*self._get_sort_columns(sort))

        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        result = await self.session.execute(query)
        return [model.to_entity() for model in result.scalars().all()]

    async def count(
        self,
        product_filter: ProductFilter | None = None,
        live_only: bool = False,
        owner_user_id: str | None = None,
        status: ProductStatus | None = None,
        search: str | None = None,
    ) -> int:
        """Count products matching filters.

        Returns:
            Count of matching products.
        """
        query = select(func.count(ProductModel.id))
        conditions = self._conditions(product_filter, live_only, owner_user_id, status, search)
        if conditions:
            query = query.where(and_(*conditions))

        result = await self.session.execute(query)
        return result.scalar_one()

    async def find_sharing_terms(
        self,
        term_ids: set[str],
        exclude_product_id: str,
    ) -> list[Product]:
        """Live products tagged with any of the given terms."""
        tagged = select(ProductFacetModel.product_id).where(
            ProductFacetModel.term_id.in_(term_ids)
        )
        query = (
            select(ProductModel)
            .where(
                and_(
                    ProductModel.id.in_(tagged),
                    ProductModel.id != exclude_product_id,
                    *self._live_conditions(),
                )
            )
            .order_by(*self._get_sort_columns(SortOrder.NEWEST))
        )
        result = await self.session.execute(query)
        return [model.to_entity() for model in result.scalars().all()]

    async def find_by_term(self, term_id: str) -> list[Product]:
        """Products tagged with a facet term."""
        tagged = select(ProductFacetModel.product_id).where(ProductFacetModel.term_id == term_id)
        result = await self.session.execute(
            select(ProductModel).where(ProductModel.id.in_(tagged))
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def next_product_code(self, prefix: str) -> str:
        """Allocate the next sequential product code (e.g., "PR-00012").

        Codes are never reused, even after the product is deleted.
        """
        sequence = await self.session.get(CodeSequenceModel, prefix, with_for_update=True)
        if sequence is None:
            sequence = CodeSequenceModel(name=prefix, value=0)
            self.session.add(sequence)
        while True:
            sequence.value += 1
            code = f"{prefix}-{sequence.value:05d}"
            taken = await self.session.execute(
                select(ProductModel.id).where(func.upper(ProductModel.product_code) == code.upper())
            )
            if taken.first() is None:
                await self.session.flush()
                return code

    # -------------------------------------------------------------------------
    # Views and impressions
    # -------------------------------------------------------------------------

    async def add_view(self, view: ProductView) -> None:
        """Record a product page view."""
        self.session.add(ProductViewModel.from_entity(view))
        await self.session.flush()

    async def count_views(self, product: Product) -> int:
        """Count views addressed by either the product id or its code."""
        refs = [product.id.upper(), product.product_code.upper()]
        result = await self.session.execute(
            select(func.count(ProductViewModel.id)).where(
                func.upper(ProductViewModel.product_ref).in_(refs)
            )
        )
        return result.scalar_one()

    async def last_impression(self, product_id: str, viewer_id: str) -> datetime | None:
        """Time of the viewer's latest impression of a product."""
        result = await self.session.execute(
            select(func.max(ProductImpressionModel.seen_at)).where(
                and_(
                    ProductImpressionModel.product_id == product_id,
                    ProductImpressionModel.viewer_id == viewer_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def add_impression(self, impression: ProductImpression) -> None:
        """Record an impression."""
        self.session.add(ProductImpressionModel.from_entity(impression))
        await self.session.flush()

    async def count_impressions(self, product_id: str) -> int:
        """Count impressions of a product."""
        result = await self.session.execute(
            select(func.count(ProductImpressionModel.id)).where(
                ProductImpressionModel.product_id == product_id
            )
        )
        return result.scalar_one()

    # -------------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _live_conditions() -> list[Any]:
        return [
            ProductModel.status == ProductStatus.APPROVED.value,
            ProductModel.is_active.is_(True),
        ]

    def _conditions(
        self,
        product_filter: ProductFilter | None,
        live_only: bool,
        owner_user_id: str | None,
        status: ProductStatus | None,
        search: str | None,
    ) -> list[Any]:
        conditions: list[Any] = []

        if live_only:
            conditions.extend(self._live_conditions())

        if owner_user_id is not None:
            conditions.append(ProductModel.owner_user_id == owner_user_id)

        if status is not None:
            conditions.append(ProductModel.status == status.value)

        if search:
            search_pattern = f"%{search}%"
            conditions.append(
                or_(
                    ProductModel.title.ilike(search_pattern),
                    ProductModel.description.ilike(search_pattern),
                    ProductModel.product_code.ilike(search_pattern),
                )
            )

        if product_filter is not None:
            # Terms of one kind are alternatives; every selected kind must match
            for term_ids in product_filter.facets.values():
                if term_ids:
                    tagged = select(ProductFacetModel.product_id).where(
                        ProductFacetModel.term_id.in_(term_ids)
                    )
                    conditions.append(ProductModel.id.in_(tagged))

            if product_filter.min_price is not None:
                conditions.append(ProductModel.price >= product_filter.min_price)

            if product_filter.max_price is not None:
                conditions.append(ProductModel.price <= product_filter.max_price)

            if product_filter.search:
                search_pattern = f"%{product_filter.search}%"
                conditions.append(
                    or_(
                        ProductModel.title.ilike(search_pattern),
                        ProductModel.description.ilike(search_pattern),
                    )
                )

        return conditions

    def _get_sort_columns(self, sort: SortOrder) -> Sequence[Any]:
        """Get SQLAlchemy columns for sorting; ties fall back to newest first."""
        newest = [ProductModel.created_at.desc(), ProductModel.id.desc()]
        columns: dict[SortOrder, list[Any]] = {
            SortOrder.NEWEST: newest,
            SortOrder.OLDEST: [ProductModel.created_at.asc(), ProductModel.id.asc()],
            SortOrder.PRICE_LOW: [ProductModel.price.asc(), *newest],
            SortOrder.PRICE_HIGH: [ProductModel.price.desc(), *newest],
        }
        return columns[sort]


# ============================================================================
# Facet Repository
# ============================================================================


class FacetRepository:
    """Repository for facet terms."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, term: FacetTerm) -> FacetTerm:
        """Insert or update a term."""
        await self.session.merge(FacetTermModel.from_entity(term))
        await self.session.flush()
        return term

    async def get(self, term_id: str) -> FacetTerm | None:
        """Get term by ID."""
        model = await self.session.get(FacetTermModel, term_id)
        return model.to_entity() if model else None

    async def get_many(self, term_ids: Sequence[str]) -> dict[str, FacetTerm]:
        """Terms keyed by id; unknown ids are left out."""
        if not term_ids:
            return {}
        result = await self.session.execute(
            select(FacetTermModel).where(FacetTermModel.id.in_(list(term_ids)))
        )
        return {model.id: model.to_entity() for model in result.scalars().all()}

    async def delete(self, term_id: str) -> None:
        """Delete a term and its product links."""
        await self.session.execute(
            delete(ProductFacetModel).where(ProductFacetModel.term_id == term_id)
        )
        await self.session.execute(delete(FacetTermModel).where(FacetTermModel.id == term_id))
        await self.session.flush()

    async def list_kind(self, kind: FacetKind) -> list[FacetTerm]:
        """Terms of one kind ordered by display order, then name."""
        result = await self.session.execute(
            select(FacetTermModel)
            .where(FacetTermModel.kind == kind.value)
            .order_by(FacetTermModel.display_order, func.lower(FacetTermModel.name))
        )
        return [model.to_entity() for model in result.scalars().all()]

    async def find_by_name(self, kind: FacetKind, name: str) -> FacetTerm | None:
        """Case-insensitive lookup within a kind."""
        result = await self.session.execute(
            select(FacetTermModel).where(
                and_(
                    FacetTermModel.kind == kind.value,
                    func.lower(FacetTermModel.name) == name.strip().lower(),
                )
            )
        )
        model = result.scalars().first()
        return model.to_entity() if model else None
