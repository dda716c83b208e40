"""Tests for inquiries and booking confirmation."""

from datetime import date, timedelta

import pytest

from storefront.application.chat_service import ChatService
from storefront.application.inquiry_service import InquiryService
from storefront.domain import (
    BookingConflictError,
    InquiryStatus,
    InvalidDateRangeError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ProductStatus,
    ValidationError,
)

START = date.today() + timedelta(days=10)


@pytest.fixture
def service(db_session) -> InquiryService:
    """Inquiry service over the test database."""
    return InquiryService(db_session)


class TestCreateInquiry:
    """Tests for opening inquiries."""

    @pytest.mark.asyncio
    async def test_opens_chat_with_first_message(self, service, owner, renter, live_product) -> None:
        """An inquiry opens a chat and posts the opening message."""
        result = await service.create_inquiry(
            renter, live_product.product_code, START, START + timedelta(days=2), message="Hello!"
        )
        assert result.inquiry.status is InquiryStatus.PENDING
        assert result.inquiry.owner_user_id == owner.id
        assert result.chat.inquiry_id == result.inquiry.id
        assert result.first_message.message == "Hello!"
        assert result.first_message.sender_user_id == renter.id

    @pytest.mark.asyncio
    async def test_blank_message_is_skipped(self, service, renter, live_product) -> None:
        """No message is posted for blank text."""
        result = await service.create_inquiry(
            renter, live_product.id, START, START + timedelta(days=1), message="  "
        )
        assert result.first_message is None

    @pytest.mark.asyncio
    async def test_each_inquiry_gets_its_own_chat(self, service, renter, live_product) -> None:
        """Asking twice opens two conversations."""
        first = await service.create_inquiry(renter, live_product.id, START, START + timedelta(days=1))
        second = await service.create_inquiry(renter, live_product.id, START, START + timedelta(days=1))
        assert first.chat.id != second.chat.id
        assert len(await service.list_inquiries(renter)) == 2

    @pytest.mark.asyncio
    async def test_hidden_product_not_found(self, service, owner, renter, make_product) -> None:
        """Only live products accept inquiries."""
        pending = make_product(owner, status=ProductStatus.PENDING)
        with pytest.raises(NotFoundError):
            await service.create_inquiry(renter, pending.id, START, START + timedelta(days=1))

    @pytest.mark.asyncio
    async def test_own_product_rejected(self, service, owner, live_product) -> None:
        """Owners cannot inquire about their own listing."""
        with pytest.raises(ValidationError) as exc_info:
            await service.create_inquiry(owner, live_product.id, START, START + timedelta(days=1))
        assert exc_info.value.error_code == "OWN_PRODUCT"

    @pytest.mark.asyncio
    async def test_end_must_follow_start(self, service, renter, live_product) -> None:
        """Single-day and backwards ranges are rejected."""
        with pytest.raises(InvalidDateRangeError):
            await service.create_inquiry(renter, live_product.id, START, START)

    @pytest.mark.asyncio
    async def test_strangers_cannot_see_inquiry(self, service, make_user, admin, chat_setup) -> None:
        """Inquiries are visible to participants and admins only."""
        inquiry_id = chat_setup.inquiry.id
        assert (await service.get_inquiry(inquiry_id, admin)).id == inquiry_id
        with pytest.raises(NotFoundError):
            await service.get_inquiry(inquiry_id, make_user("Stranger"))


class TestConfirmBooking:
    """Tests for confirming rental dates."""

    @pytest.mark.asyncio
    async def test_confirm_posts_message_as_owner(
        self, service, db_session, owner, renter, chat_setup
    ) -> None:
        """The booking message is sent by the owner and replies to the inquiry."""
        start = date(2026, 12, 24)
        result = await service.confirm_booking(
            chat_setup.inquiry.id,
            owner,
            start,
            start + timedelta(days=2),
            reply_to_message_id=chat_setup.first_message.id,
        )
        assert result.inquiry.status is InquiryStatus.CONFIRMED
        assert result.message.message == "Booking Confirmed for 24/12/2026 - 26/12/2026"
        assert result.message.sender_user_id == owner.id
        assert result.message.reply_to_message_id == chat_setup.first_message.id

        summary = await ChatService(db_session).get_chat(chat_setup.chat.id, renter)
        assert summary.last_message.id == result.message.id
        assert summary.unread_count == 1

    @pytest.mark.asyncio
    async def test_admin_may_confirm(self, service, owner, admin, chat_setup) -> None:
        """Admins confirm on the owner's behalf."""
        result = await service.confirm_booking(
            chat_setup.inquiry.id, admin, START, START + timedelta(days=1)
        )
        assert result.message.sender_user_id == owner.id

    @pytest.mark.asyncio
    async def test_renter_may_not_confirm(self, service, renter, chat_setup) -> None:
        """Renters cannot confirm their own request."""
        with pytest.raises(PermissionDeniedError):
            await service.confirm_booking(chat_setup.inquiry.id, renter, START, START + timedelta(days=1))

    @pytest.mark.asyncio
    async def test_overlapping_booking_rejected(self, service, owner, make_user, live_product, chat_setup, make_inquiry) -> None:
        """A product cannot be booked twice for the same days."""
        other = make_inquiry(make_user("Kiran"), live_product)
        await service.confirm_booking(chat_setup.inquiry.id, owner, START, START + timedelta(days=3))

        with pytest.raises(BookingConflictError):
            await service.confirm_booking(
                other.inquiry.id, owner, START + timedelta(days=3), START + timedelta(days=5)
            )
        await service.confirm_booking(
            other.inquiry.id, owner, START + timedelta(days=4), START + timedelta(days=5)
        )

    @pytest.mark.asyncio
    async def test_booked_dates(self, service, owner, live_product, chat_setup) -> None:
        """Confirmed bookings block every day they cover."""
        await service.confirm_booking(chat_setup.inquiry.id, owner, START, START + timedelta(days=2))
        assert await service.booked_dates(live_product.product_code) == [
            START,
            START + timedelta(days=1),
            START + timedelta(days=2),
        ]

    @pytest.mark.asyncio
    async def test_cancelled_inquiry_cannot_be_confirmed(self, service, owner, renter, chat_setup) -> None:
        """Cancelled inquiries are closed."""
        await service.cancel_inquiry(chat_setup.inquiry.id, renter)
        with pytest.raises(InvalidStateTransitionError):
            await service.confirm_booking(chat_setup.inquiry.id, owner, START, START + timedelta(days=1))

    @pytest.mark.asyncio
    async def test_foreign_reply_target_confirms_nothing(
        self, service, owner, make_user, live_product, chat_setup, make_inquiry
    ) -> None:
        """A reply to another chat's message fails before the booking is stored."""
        other = make_inquiry(make_user("Kiran"), live_product)

        with pytest.raises(ValidationError) as exc_info:
            await service.confirm_booking(
                chat_setup.inquiry.id,
                owner,
                START,
                START + timedelta(days=1),
                reply_to_message_id=other.first_message.id,
            )

        assert exc_info.value.error_code == "INVALID_REPLY_TARGET"
        inquiry = await service.inquiry_repo.get(chat_setup.inquiry.id)
        assert inquiry.status is InquiryStatus.PENDING
        assert await service.booked_dates(live_product.id) == []
