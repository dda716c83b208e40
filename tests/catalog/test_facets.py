"""Tests for facet term management."""

import pytest

from storefront.catalog.facets import FacetService
from storefront.catalog.repository import ProductRepository
from storefront.domain import (
    DuplicateFacetError,
    FacetKind,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def service(db_session) -> FacetService:
    """Facet service over the test database."""
    return FacetService(db_session)


class TestCreateTerm:
    """Tests for creating facet terms."""

    @pytest.mark.asyncio
    async def test_terms_listed_by_display_order_then_name(self, service) -> None:
        """Sidebar order follows display_order, then name."""
        await service.create_term(FacetKind.CITIES, "Pune", display_order=2)
        await service.create_term(FacetKind.CITIES, "Mumbai", display_order=1)
        await service.create_term(FacetKind.CITIES, "Delhi", display_order=2)

        names = [t.name for t in await service.list_terms(FacetKind.CITIES)]
        assert names == ["Mumbai", "Delhi", "Pune"]

    @pytest.mark.asyncio
    async def test_names_unique_per_kind_ignoring_case(self, service) -> None:
        """The same name cannot be added twice to one kind."""
        await service.create_term(FacetKind.OCCASIONS, "Wedding")
        with pytest.raises(DuplicateFacetError) as exc_info:
            await service.create_term(FacetKind.OCCASIONS, " wedding ")
        assert exc_info.value.error_code == "FACET_EXISTS"

    @pytest.mark.asyncio
    async def test_same_name_allowed_in_other_kind(self, service) -> None:
        """Uniqueness is scoped to the kind."""
        await service.create_term(FacetKind.OCCASIONS, "Party")
        term = await service.create_term(FacetKind.MATERIALS, "Party")
        assert term.kind is FacetKind.MATERIALS

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, service) -> None:
        """Names are required."""
        with pytest.raises(ValidationError):
            await service.create_term(FacetKind.CITIES, "   ")

    @pytest.mark.asyncio
    async def test_colors_need_hex(self, service) -> None:
        """Color terms carry an upper-cased hex value."""
        with pytest.raises(ValidationError) as exc_info:
            await service.create_term(FacetKind.COLORS, "Red")
        assert exc_info.value.error_code == "INVALID_COLOR"

        term = await service.create_term(FacetKind.COLORS, "Red", hex="#c0392b")
        assert term.hex == "#C0392B"

    @pytest.mark.asyncio
    async def test_hex_dropped_for_other_kinds(self, service) -> None:
        """Only colors keep a hex value."""
        term = await service.create_term(FacetKind.CITIES, "Pune", hex="#FFFFFF")
        assert term.hex is None


class TestUpdateAndDelete:
    """Tests for renaming and removing terms."""

    @pytest.mark.asyncio
    async def test_rename_cannot_clash(self, service) -> None:
        """Renaming onto an existing name fails, renaming to itself does not."""
        pune = await service.create_term(FacetKind.CITIES, "Pune")
        await service.create_term(FacetKind.CITIES, "Delhi")

        with pytest.raises(DuplicateFacetError):
            await service.update_term(pune.id, name="Delhi")
        assert (await service.update_term(pune.id, name="PUNE")).name == "PUNE"

    @pytest.mark.asyncio
    async def test_update_missing_term(self, service) -> None:
        """Unknown ids raise a not-found error."""
        with pytest.raises(NotFoundError) as exc_info:
            await service.update_term("missing", display_order=3)
        assert exc_info.value.error_code == "FACET_TERM_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_delete_detaches_from_products(
        self, db_session, service, owner, make_product, make_term
    ) -> None:
        """Deleting a term removes it from every product using it."""
        pune = make_term(FacetKind.CITIES, "Pune")
        delhi = make_term(FacetKind.CITIES, "Delhi")
        tagged = make_product(owner, facets={FacetKind.CITIES: [pune.id, delhi.id]})
        make_product(owner, facets={FacetKind.CITIES: [delhi.id]})

        assert await service.delete_term(pune.id) == 1
        stored = await ProductRepository(db_session).get(tagged.id)
        assert stored.facet_ids(FacetKind.CITIES) == [delhi.id]
        with pytest.raises(NotFoundError):
            await service.get_term(pune.id)


class TestValidateIds:
    """Tests for facet id validation."""

    @pytest.mark.asyncio
    async def test_deduplicates_in_order(self, service) -> None:
        """Repeated ids collapse, keeping the first position."""
        a = (await service.create_term(FacetKind.CATEGORIES, "Sarees")).id
        b = (await service.create_term(FacetKind.CATEGORIES, "Gowns")).id
        assert await service.validate_ids(FacetKind.CATEGORIES, [b, a, b]) == [b, a]

    @pytest.mark.asyncio
    async def test_ids_of_another_kind_rejected(self, service) -> None:
        """A city id is not a valid category."""
        city = (await service.create_term(FacetKind.CITIES, "Pune")).id
        with pytest.raises(ValidationError) as exc_info:
            await service.validate_ids(FacetKind.CATEGORIES, [city])
        assert exc_info.value.details["unknown_ids"] == [city]
