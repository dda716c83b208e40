"""Tests for the catalog service."""

from unittest.mock import patch
from uuid import uuid4

import pytest

from storefront.application.chat_service import ChatService
from storefront.application.wishlist_service import WishlistService
from storefront.catalog.filters import ProductFilter
from storefront.catalog.service import CatalogService, ProductInput
from storefront.domain import (
    FacetKind,
    InvalidStateTransitionError,
    NotFoundError,
    PendingListingExistsError,
    PermissionDeniedError,
    ProductStatus,
    ValidationError,
)
from storefront.infrastructure.config import settings
from storefront.infrastructure.repositories import (
    ChatRepository,
    InquiryRepository,
    MessageRepository,
    ReportRepository,
    WishlistRepository,
)


@pytest.fixture
def service(db_session) -> CatalogService:
    """Catalog service over the test database."""
    return CatalogService(db_session)


class TestSubmissions:
    """Tests for creating and editing listings."""

    @pytest.mark.asyncio
    async def test_create_assigns_sequential_codes(self, service, owner) -> None:
        """New listings are drafts with sequential product codes."""
        first = await service.create_product(owner, ProductInput(title="Saree", price=900))
        await service.submit_for_review(first.id, owner)
        await service.delete_product(first.id, owner)
        second = await service.create_product(owner, ProductInput(title="Gown", price=1200))

        assert first.product_code == "PR-00001"
        assert second.product_code == "PR-00002"
        assert second.status is ProductStatus.DRAFT

    @pytest.mark.asyncio
    async def test_one_open_listing_per_owner(self, service, owner) -> None:
        """A second draft is refused while one is open."""
        await service.create_product(owner, ProductInput(title="Saree", price=900))
        with pytest.raises(PendingListingExistsError):
            await service.create_product(owner, ProductInput(title="Gown", price=1200))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [
            ProductInput(title="  ", price=900),
            ProductInput(title="Saree", price=0),
            ProductInput(title="Saree", price=900, original_price=500),
            ProductInput(title="Saree", price=900, images=["ftp://x/1.png"]),
            ProductInput(
                title="Saree",
                price=900,
                images=["https://img.test/1.webp"],
                primary_image_index=2,
            ),
        ],
    )
    async def test_invalid_fields_rejected(self, service, owner, data) -> None:
        """Blank titles, bad prices, bad URLs and bad cover indexes fail."""
        with pytest.raises(ValidationError):
            await service.create_product(owner, data)

    @pytest.mark.asyncio
    async def test_unknown_facet_ids_rejected(self, service, owner) -> None:
        """Facet ids must exist for their kind."""
        data = ProductInput(title="Saree", price=900, facets={FacetKind.CITIES: ["missing"]})
        with pytest.raises(ValidationError) as exc_info:
            await service.create_product(owner, data)
        assert exc_info.value.error_code == "UNKNOWN_FACET"

    @pytest.mark.asyncio
    async def test_update_keeps_status(self, service, owner, make_product) -> None:
        """Editing a live listing leaves it live."""
        product = make_product(owner)
        updated = await service.update_product(
            product.id, owner, {"title": "New title", "price": 2000}
        )
        assert updated.title == "New title"
        assert updated.status is ProductStatus.APPROVED

    @pytest.mark.asyncio
    async def test_update_rejects_protected_fields(self, service, owner, make_product) -> None:
        """Status cannot be edited through update."""
        product = make_product(owner)
        with pytest.raises(ValidationError):
            await service.update_product(product.id, owner, {"status": "draft"})

    @pytest.mark.asyncio
    async def test_only_owner_may_edit(self, service, owner, renter, make_product) -> None:
        """Other members cannot edit a listing."""
        product = make_product(owner)
        with pytest.raises(PermissionDeniedError):
            await service.update_product(product.id, renter, {"title": "Mine now"})

    @pytest.mark.asyncio
    async def test_live_listing_cannot_be_deleted(self, service, owner, make_product) -> None:
        """Approved listings must be deactivated first."""
        product = make_product(owner)
        with pytest.raises(PermissionDeniedError):
            await service.delete_product(product.id, owner)

    @pytest.mark.asyncio
    async def test_deactivation_request(self, service, owner, make_product) -> None:
        """Owners may ask to take a live listing down, but not a draft."""
        live = make_product(owner)
        draft = make_product(owner, status=ProductStatus.DRAFT)

        requested = await service.request_deactivation(live.id, owner)
        assert requested.status is ProductStatus.PENDING_DEACTIVATION
        with pytest.raises(InvalidStateTransitionError):
            await service.request_deactivation(draft.id, owner)

    @pytest.mark.asyncio
    async def test_owner_delete_removes_conversations(
        self, db_session, service, owner, renter, live_product, chat_setup
    ) -> None:
        """Deleting a listing takes its inquiries, chats, reports and saves with it."""
        chat_id = chat_setup.chat.id
        await WishlistService(db_session).add(renter, live_product.id)
        await ChatService(db_session).report_chat(chat_id, owner, "Spam or misleading")
        await service.request_deactivation(live_product.id, owner)

        result = await service.delete_product(live_product.id, owner)

        assert (result.inquiries, result.chats, result.reports) == (1, 1, 1)
        assert result.messages >= 1
        assert result.wishlist_entries == 1
        assert await service.find_product(live_product.id) is None
        assert await InquiryRepository(db_session).list_for_product(live_product.id) == []
        assert await ChatRepository(db_session).get(chat_id) is None
        assert await MessageRepository(db_session).latest(chat_id) is None
        assert await ReportRepository(db_session).list_reports() == []
        assert await WishlistRepository(db_session).list_for_user(renter.id) == []


class TestPublicListing:
    """Tests for the public listing and product pages."""

    @pytest.mark.asyncio
    async def test_only_live_products_listed(self, service, owner, make_product) -> None:
        """Drafts and pending listings are hidden."""
        live = make_product(owner, title="Live")
        make_product(owner, title="Draft", status=ProductStatus.DRAFT)
        make_product(owner, title="Pending", status=ProductStatus.PENDING)

        page = await service.list_products(ProductFilter())
        assert [p.id for p in page.items] == [live.id]
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_product_found_by_code_or_id(self, service, live_product) -> None:
        """Product pages resolve codes and ids."""
        assert (await service.get_product(live_product.product_code)).id == live_product.id
        assert (await service.get_product(live_product.id)).id == live_product.id

    @pytest.mark.asyncio
    async def test_hidden_product_visible_to_owner_only(
        self, service, owner, renter, admin, make_product
    ) -> None:
        """Non-live products are visible to their owner and admins."""
        draft = make_product(owner, status=ProductStatus.DRAFT)
        assert (await service.get_product(draft.id, viewer=owner)).id == draft.id
        assert (await service.get_product(draft.id, viewer=admin)).id == draft.id
        with pytest.raises(NotFoundError):
            await service.get_product(draft.id, viewer=renter)
        with pytest.raises(NotFoundError):
            await service.get_product(draft.id)

    @pytest.mark.asyncio
    async def test_related_products_share_terms(
        self, service, owner, make_product, make_term
    ) -> None:
        """Related products share at least one facet term."""
        city = make_term(FacetKind.CITIES, "Pune").id
        other_city = make_term(FacetKind.CITIES, "Delhi").id
        product = make_product(owner, facets={FacetKind.CITIES: [city]})
        match = make_product(owner, facets={FacetKind.CITIES: [city]})
        make_product(owner, facets={FacetKind.CITIES: [other_city]})

        assert [p.id for p in await service.related_products(product)] == [match.id]


class TestTracking:
    """Tests for views, impressions and the owner dashboard."""

    @pytest.mark.asyncio
    async def test_impressions_are_throttled(self, service, live_product) -> None:
        """A viewer's impressions count once per throttle window."""
        viewer = str(uuid4())
        assert await service.record_impression(live_product.id, viewer, anonymous=True) is True
        assert await service.record_impression(live_product.id, viewer, anonymous=True) is False
        assert (
            await service.record_impression(live_product.id, str(uuid4()), anonymous=True)
            is True
        )

    @pytest.mark.asyncio
    async def test_throttle_window_is_configurable(self, service, live_product) -> None:
        """A zero-minute window never throttles."""
        with patch.object(settings, "impression_throttle_minutes", 0):
            await service.record_impression(live_product.id, "user-1", anonymous=False)
            assert (
                await service.record_impression(live_product.id, "user-1", anonymous=False)
                is True
            )

    @pytest.mark.asyncio
    async def test_anonymous_viewer_must_be_uuid(self, service, live_product) -> None:
        """Anonymous viewer ids are UUIDs."""
        with pytest.raises(ValidationError) as exc_info:
            await service.record_impression(live_product.id, "not-a-uuid", anonymous=True)
        assert exc_info.value.error_code == "INVALID_VIEWER_ID"

    @pytest.mark.asyncio
    async def test_dashboard_counts(
        self, service, owner, renter, live_product, make_inquiry
    ) -> None:
        """The dashboard aggregates views, impressions and inquiries."""
        make_inquiry(renter, live_product)
        await service.record_view(live_product.product_code)
        await service.record_view(live_product.id)
        await service.record_impression(live_product.id, renter.id, anonymous=False)

        dashboard = await service.owner_dashboard(owner)
        stats = dashboard.products[0]
        assert stats.views == 2
        assert stats.impressions == 1
        assert stats.inquiries == 1
        assert dashboard.total_inquiries == 1
