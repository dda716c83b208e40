"""Facet terms (product types, occasions, colors, materials, cities, categories).

Provides the public filter sidebar data and the admin CRUD operations.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog.repository import FacetRepository, ProductRepository
from storefront.domain import (
    DuplicateFacetError,
    FacetKind,
    FacetTerm,
    NotFoundError,
    ValidationError,
    new_id,
    normalize_hex_color,
)

logger = structlog.get_logger()


# ============================================================================
# Facet Service
# ============================================================================


class FacetService:
    """Service for facet term operations."""

    def __init__(self, session: AsyncSession, request_id: str | None = None) -> None:
        """Initialize service.

        Args:
            session: Database session.
            request_id: Request ID for correlation.
        """
        self.session = session
        self.request_id = request_id
        self.facet_repo = FacetRepository(session)
        self.product_repo = ProductRepository(session)

    async def list_terms(self, kind: FacetKind) -> list[FacetTerm]:
        """List terms of one kind."""
        return await self.facet_repo.list_kind(kind)

    async def list_all(self) -> dict[FacetKind, list[FacetTerm]]:
        """List every kind at once for the filter sidebar."""
        return {kind: await self.facet_repo.list_kind(kind) for kind in FacetKind}

    async def get_term(self, term_id: str) -> FacetTerm:
        """Get a term.

        Raises:
            NotFoundError: If the term does not exist.
        """
        term = await self.facet_repo.get(term_id)
        if term is None:
            raise NotFoundError("FacetTerm", term_id)
        return term

    async def validate_ids(self, kind: FacetKind, term_ids: list[str]) -> list[str]:
        """Check that every id is a term of ``kind``.

        Returns:
            The ids de-duplicated, in their original order.

        Raises:
            ValidationError: If any id is unknown or of another kind.
        """
        unique = list(dict.fromkeys(term_ids))
        known = await self.facet_repo.get_many(unique)
        unknown = [
            term_id
            for term_id in unique
            if term_id not in known or known[term_id].kind is not kind
        ]
        if unknown:
            raise ValidationError(
                f"Unknown {kind.value} ids",
                details={"kind": kind.value, "unknown_ids": unknown},
                error_code="UNKNOWN_FACET",
            )
        return unique

    async def create_term(
        self,
        kind: FacetKind,
        name: str,
        display_order: int = 0,
        hex: str | None = None,
    ) -> FacetTerm:
        """Create a term.

        Raises:
            ValidationError: If the name is blank or the color is malformed.
            DuplicateFacetError: If the name is taken within the kind.
        """
        clean_name = name.strip()
        if not clean_name:
            raise ValidationError("Name is required", details={"kind": kind.value})
        if await self.facet_repo.find_by_name(kind, clean_name) is not None:
            raise DuplicateFacetError(kind.value, clean_name)

        term = FacetTerm(
            id=new_id(),
            kind=kind,
            name=clean_name,
            display_order=display_order,
            hex=self._color(kind, hex),
        )
        await self.facet_repo.save(term)

        logger.info(
            "Facet term created",
            term_id=term.id,
            kind=kind.value,
            name=clean_name,
            request_id=self.request_id,
        )
        return term

    async def update_term(
        self,
        term_id: str,
        name: str | None = None,
        display_order: int | None = None,
        hex: str | None = None,
    ) -> FacetTerm:
        """Rename or reorder a term.

        Raises:
            NotFoundError: If the term does not exist.
            DuplicateFacetError: If the new name is taken.
        """
        term = await self.get_term(term_id)
        if name is not None:
            clean_name = name.strip()
            if not clean_name:
                raise ValidationError("Name is required", details={"term_id": term_id})
            clash = await self.facet_repo.find_by_name(term.kind, clean_name)
            if clash is not None and clash.id != term.id:
                raise DuplicateFacetError(term.kind.value, clean_name)
            term.name = clean_name
        if display_order is not None:
            term.display_order = display_order
        if hex is not None:
            term.hex = self._color(term.kind, hex)
        await self.facet_repo.save(term)

        logger.info("Facet term updated", term_id=term_id, request_id=self.request_id)
        return term

    async def delete_term(self, term_id: str) -> int:
        """Delete a term and detach it from every product.

        Returns:
            Number of products the term was removed from.
        """
        term = await self.get_term(term_id)
        detached = 0
        for product in await self.product_repo.find_by_term(term.id):
            if product.remove_facet_term(term.id):
                await self.product_repo.save(product)
                detached += 1
        await self.facet_repo.delete(term.id)

        logger.info(
            "Facet term deleted",
            term_id=term_id,
            kind=term.kind.value,
            products_updated=detached,
            request_id=self.request_id,
        )
        return detached

    @staticmethod
    def _color(kind: FacetKind, hex: str | None) -> str | None:
        if kind is not FacetKind.COLORS:
            return None
        if hex is None:
            raise ValidationError(
                "Colors require a hex value",
                error_code="INVALID_COLOR",
            )
        return normalize_hex_color(hex)


def get_facet_service(session: AsyncSession, request_id: str | None = None) -> FacetService:
    """Get facet service instance.

    Args:
        session: Database session.
        request_id: Request ID for correlation.

    Returns:
        FacetService instance.
    """
    return FacetService(session, request_id=request_id)
