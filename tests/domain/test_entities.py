"""Tests for domain entities."""

from datetime import date, datetime, timezone

import pytest

from storefront.domain import (
    DateRange,
    FacetKind,
    InquiryStatus,
    ProductStatus,
    ReportStatus,
)
from storefront.domain.entities import Inquiry, Message, OtpChallenge, Product, Report
from storefront.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Test Fixtures
# ============================================================================


def make_product(**overrides) -> Product:
    """Create a draft product."""
    fields = {
        "product_code": "PR-00001",
        "owner_user_id": "owner-1",
        "title": "Red silk saree",
        "price": 1500,
    }
    fields.update(overrides)
    return Product.create(**fields)


def make_inquiry() -> Inquiry:
    """Create a pending inquiry."""
    return Inquiry.create(
        product_id="product-1",
        owner_user_id="owner-1",
        renter_user_id="renter-1",
        period=DateRange(date(2026, 5, 1), date(2026, 5, 4)),
    )


# ============================================================================
# Product Tests
# ============================================================================


class TestProduct:
    """Tests for Product aggregate."""

    def test_create_records_event(self) -> None:
        """Creating a product records product.created."""
        product = make_product()
        events = product.collect_events()
        assert [e.event_type for e in events] == ["product.created"]
        assert product.status is ProductStatus.DRAFT
        assert not product.is_active

    def test_created_approved_is_live(self) -> None:
        """Admin-published products are live immediately."""
        product = make_product(status=ProductStatus.APPROVED)
        assert product.is_live

    def test_primary_image_falls_back_to_first(self) -> None:
        """An out-of-range cover index uses the first image."""
        product = make_product(images=["https://a.test/1.webp", "https://a.test/2.webp"])
        product.primary_image_index = 1
        assert product.primary_image == "https://a.test/2.webp"
        product.primary_image_index = 7
        assert product.primary_image == "https://a.test/1.webp"

    def test_primary_image_empty_without_images(self) -> None:
        """No images gives an empty cover."""
        assert make_product().primary_image == ""

    def test_transition_updates_activity_and_note(self) -> None:
        """Transitions keep is_active in step and store moderator notes."""
        product = make_product()
        product.transition_to(ProductStatus.PENDING, actor="owner-1")
        product.transition_to(ProductStatus.REJECTED, actor="admin-1", note="Blurry photos")
        assert product.admin_note == "Blurry photos"
        assert not product.is_active

        product.transition_to(ProductStatus.PENDING, actor="owner-1")
        product.transition_to(ProductStatus.APPROVED, actor="admin-1")
        assert product.is_live

    def test_invalid_transition_raises(self) -> None:
        """Drafts cannot be deactivated."""
        product = make_product()
        with pytest.raises(InvalidStateTransitionError):
            product.transition_to(ProductStatus.PENDING_DEACTIVATION, actor="owner-1")

    def test_update_details_keeps_status(self) -> None:
        """Editing a live product leaves it live."""
        product = make_product(status=ProductStatus.APPROVED)
        product.update_details(title="Maroon silk saree", price=1800)
        assert product.title == "Maroon silk saree"
        assert product.status is ProductStatus.APPROVED

    def test_remove_facet_term(self) -> None:
        """Removing a term detaches it from every kind."""
        product = make_product(facets={FacetKind.COLORS: ["red", "gold"], FacetKind.CITIES: ["pune"]})
        assert product.remove_facet_term("gold") is True
        assert product.facet_ids(FacetKind.COLORS) == ["red"]
        assert product.remove_facet_term("gold") is False
        assert product.all_facet_ids() == {"red", "pune"}


# ============================================================================
# Inquiry Tests
# ============================================================================


class TestInquiry:
    """Tests for Inquiry aggregate."""

    def test_participants_and_counterpart(self) -> None:
        """Owner and renter see each other as counterpart."""
        inquiry = make_inquiry()
        assert inquiry.participants() == {"owner-1", "renter-1"}
        assert inquiry.other_participant("owner-1") == "renter-1"
        assert inquiry.other_participant("renter-1") == "owner-1"
        assert inquiry.other_participant("admin-1") == "owner-1"

    def test_confirm_replaces_dates(self) -> None:
        """Confirmation stores the agreed period."""
        inquiry = make_inquiry()
        inquiry.collect_events()
        period = DateRange(date(2026, 5, 2), date(2026, 5, 6))
        inquiry.confirm(period)

        assert inquiry.status is InquiryStatus.CONFIRMED
        assert inquiry.period == period
        events = inquiry.collect_events()
        assert events[0].event_type == "inquiry.booking_confirmed"
        assert events[0].start_date == "2026-05-02"

    def test_cancelled_cannot_be_confirmed(self) -> None:
        """Cancelled inquiries are final."""
        inquiry = make_inquiry()
        inquiry.cancel("renter-1")
        with pytest.raises(InvalidStateTransitionError):
            inquiry.confirm(DateRange(date(2026, 5, 2), date(2026, 5, 3)))


# ============================================================================
# Message Tests
# ============================================================================


class TestMessageReceipts:
    """Tests for monotonic message receipts."""

    def test_read_implies_delivered(self) -> None:
        """Reading a message also delivers it."""
        message = Message(id="m-1", chat_id="c-1", sender_user_id="u-1", message="Hi")
        moment = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert message.mark_read(moment) is True
        assert message.is_delivered and message.is_read
        assert message.delivered_at == moment
        assert message.read_at == moment

    def test_receipts_never_change_twice(self) -> None:
        """Repeated receipts report no change and keep the first timestamp."""
        message = Message(id="m-1", chat_id="c-1", sender_user_id="u-1", message="Hi")
        first = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
        later = datetime(2026, 5, 1, 11, 0, tzinfo=timezone.utc)
        message.mark_delivered(first)
        assert message.mark_delivered(later) is False
        assert message.delivered_at == first

        message.mark_read(later)
        assert message.delivered_at == first
        assert message.mark_read() is False

    def test_to_dict_serialises_timestamps(self) -> None:
        """Wire format uses ISO timestamps and None for missing receipts."""
        message = Message(id="m-1", chat_id="c-1", sender_user_id="u-1", message="Hi")
        data = message.to_dict()
        assert data["read_at"] is None
        assert data["created_at"] == message.created_at.isoformat()


# ============================================================================
# Report and OTP Tests
# ============================================================================


class TestReport:
    """Tests for Report aggregate."""

    def test_resolve_once(self) -> None:
        """Reports resolve once, keeping the note."""
        report = Report(
            id="r-1",
            chat_id="c-1",
            reporter_user_id="u-1",
            reported_user_id="u-2",
            reason="Spam or misleading",
        )
        report.resolve(ReportStatus.DISMISSED, note="Not spam")
        assert report.status is ReportStatus.DISMISSED
        assert report.resolution_note == "Not spam"
        with pytest.raises(InvalidStateTransitionError):
            report.resolve(ReportStatus.REVIEWED)


class TestOtpChallenge:
    """Tests for OTP challenge hashing."""

    def test_matches_hashed_code(self) -> None:
        """Only the hash is stored; matching ignores surrounding spaces."""
        challenge = OtpChallenge(
            id="phone:+919800000001",
            code_hash=OtpChallenge.hash_code("123456"),
            expires_at=datetime(2099, 1, 1, tzinfo=timezone.utc),
        )
        assert challenge.code_hash != "123456"
        assert challenge.matches(" 123456 ")
        assert not challenge.matches("654321")
        assert not challenge.is_expired()
