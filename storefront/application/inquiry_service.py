"""Inquiry application service.

Orchestrates rental inquiries and bookings:
- Opening an inquiry (and its chat) on a live product
- Booked-date calendars
- Booking confirmation with overlap detection
- Cancellation
"""

from dataclasses import dataclass
from datetime import date

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.application.chat_service import ChatService
from storefront.catalog.service import CatalogService
from storefront.domain import (
    BookingConflictError,
    Chat,
    DateRange,
    Inquiry,
    InquiryStatus,
    Message,
    NotFoundError,
    PermissionDeniedError,
    User,
    ValidationError,
    new_id,
)
from storefront.infrastructure.logging import log_domain_events
from storefront.infrastructure.repositories import (
    ChatRepository,
    InquiryRepository,
)

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class CreateInquiryResult:
    """Result of opening an inquiry."""

    inquiry: Inquiry
    chat: Chat
    first_message: Message | None = None


@dataclass
class ConfirmBookingResult:
    """Result of confirming a booking."""

    inquiry: Inquiry
    message: Message


# ============================================================================
# Inquiry Service
# ============================================================================


class InquiryService:
    """Service for inquiries and bookings."""

    def __init__(self, session: AsyncSession, request_id: str | None = None) -> None:
        """Initialize service.

        Args:
            session: Database session.
            request_id: Request ID for correlation.
        """
        self.request_id = request_id
        self.inquiry_repo = InquiryRepository(session)
        self.chat_repo = ChatRepository(session)
        self.catalog = CatalogService(session, request_id)
        self.chats = ChatService(session, request_id)

    async def create_inquiry(
        self,
        renter: User,
        product_ref: str,
        start_date: date,
        end_date: date,
        message: str | None = None,
    ) -> CreateInquiryResult:
        """Ask to rent a product, opening a chat with its owner.

        Args:
            renter: Member asking.
            product_ref: Product code or id.
            start_date: First rental day.
            end_date: Last rental day (must be after the start).
            message: Optional opening message.

        Raises:
            NotFoundError: If the product is not live.
            InvalidDateRangeError: If the end is not after the start.
            ValidationError: If the renter owns the product.
        """
        product = await self.catalog.find_product(product_ref)
        if product is None or not product.is_live:
            raise NotFoundError("Product", product_ref)
        if product.owner_user_id == renter.id:
            raise ValidationError(
                "You cannot send an inquiry for your own product",
                details={"product_id": product.id},
                error_code="OWN_PRODUCT",
            )
        period = DateRange(start_date, end_date)

        inquiry = Inquiry.create(
            product_id=product.id,
            owner_user_id=product.owner_user_id,
            renter_user_id=renter.id,
            period=period,
        )
        await self.inquiry_repo.save(inquiry)
        log_domain_events(inquiry, self.request_id)
        chat = Chat(id=new_id(), inquiry_id=inquiry.id)
        await self.chat_repo.save(chat)

        logger.info(
            "Inquiry created",
            inquiry_id=inquiry.id,
            chat_id=chat.id,
            product_id=product.id,
            renter_user_id=renter.id,
            request_id=self.request_id,
        )

        first_message = None
        if message and message.strip():
            first_message = await self.chats.post(chat, inquiry, renter.id, text=message)
        return CreateInquiryResult(inquiry=inquiry, chat=chat, first_message=first_message)

    async def get_inquiry(self, inquiry_id: str, user: User) -> Inquiry:
        """Get an inquiry visible to the user.

        Raises:
            NotFoundError: If missing or not visible.
        """
        inquiry = await self.inquiry_repo.get(inquiry_id)
        if inquiry is None or not (user.is_admin or user.id in inquiry.participants()):
            raise NotFoundError("Inquiry", inquiry_id)
        return inquiry

    async def list_inquiries(self, user: User) -> list[Inquiry]:
        """Inquiries where the user is owner or renter."""
        return await self.inquiry_repo.list_for_user(user.id)

    async def chat_ids(self, inquiries: list[Inquiry]) -> dict[str, str]:
        """Chat id of each inquiry, keyed by inquiry id."""
        chats = await self.chat_repo.list_for_inquiries({i.id for i in inquiries})
        return {chat.inquiry_id: chat.id for chat in chats}

    async def booked_dates(self, product_ref: str) -> list[date]:
        """Every day covered by a confirmed booking of the product."""
        product = await self.catalog.find_product(product_ref)
        if product is None:
            raise NotFoundError("Product", product_ref)
        days: set[date] = set()
        confirmed = await self.inquiry_repo.list_for_product(product.id, InquiryStatus.CONFIRMED)
        for inquiry in confirmed:
            days.update(inquiry.period.days())
        return sorted(days)

    async def confirm_booking(
        self,
        inquiry_id: str,
        actor: User,
        start_date: date,
        end_date: date,
        reply_to_message_id: str | None = None,
    ) -> ConfirmBookingResult:
        """Confirm rental dates and announce them in the chat.

        Raises:
            PermissionDeniedError: If the actor is neither owner nor admin.
            BookingConflictError: If the dates overlap another confirmed
                booking of the product.
            InvalidStateTransitionError: If the inquiry was cancelled.
            ValidationError: If the reply target is not a message of the
                inquiry's chat. Nothing is confirmed in that case.
        """
        inquiry = await self.get_inquiry(inquiry_id, actor)
        if actor.id != inquiry.owner_user_id and not actor.is_admin:
            raise PermissionDeniedError(
                "Only the product owner can confirm a booking",
                details={"inquiry_id": inquiry.id},
            )
        period = DateRange(start_date, end_date)
        for other in await self.inquiry_repo.list_for_product(
            inquiry.product_id, InquiryStatus.CONFIRMED
        ):
            if other.id != inquiry.id and other.period.overlaps(period):
                raise BookingConflictError(inquiry.product_id, other.id)

        chat = await self.chat_repo.get_by_inquiry(inquiry.id)
        if chat is None:
            chat = Chat(id=new_id(), inquiry_id=inquiry.id)
            await self.chat_repo.save(chat)
        await self.chats.validate_reply_target(chat, reply_to_message_id)

        inquiry.confirm(period)
        await self.inquiry_repo.save(inquiry)
        log_domain_events(inquiry, self.request_id)
        message = await self.chats.post(
            chat,
            inquiry,
            inquiry.owner_user_id,
            text=f"Booking Confirmed for {period.display()}",
            reply_to_message_id=reply_to_message_id,
        )

        logger.info(
            "Booking confirmed",
            inquiry_id=inquiry.id,
            product_id=inquiry.product_id,
            start_date=period.start.isoformat(),
            end_date=period.end.isoformat(),
            confirmed_by=actor.id,
            request_id=self.request_id,
        )
        return ConfirmBookingResult(inquiry=inquiry, message=message)

    async def cancel_inquiry(self, inquiry_id: str, actor: User) -> Inquiry:
        """Cancel an inquiry (either participant, or an admin).

        Raises:
            InvalidStateTransitionError: If it is already cancelled.
        """
        inquiry = await self.get_inquiry(inquiry_id, actor)
        inquiry.cancel(actor.id)
        await self.inquiry_repo.save(inquiry)
        log_domain_events(inquiry, self.request_id)
        logger.info(
            "Inquiry cancelled",
            inquiry_id=inquiry.id,
            cancelled_by=actor.id,
            request_id=self.request_id,
        )
        return inquiry


def get_inquiry_service(
    session: AsyncSession, request_id: str | None = None
) -> InquiryService:
    """Get inquiry service instance.

    Args:
        session: Database session.
        request_id: Request ID for correlation.

    Returns:
        InquiryService instance.
    """
    return InquiryService(session, request_id=request_id)
