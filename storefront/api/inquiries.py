"""Inquiry API endpoints.

Renters open an inquiry for a product and date range; each inquiry gets
its own chat with the owner, who confirms the booking from there.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from storefront.api.converters import inquiry_to_response
from storefront.api.dependencies import CurrentUser, DbSession
from storefront.api.schemas import (
    BookingConfirmRequest,
    ErrorResponse,
    InquiryCreateRequest,
    InquiryListResponse,
    InquiryResponse,
)
from storefront.application.inquiry_service import InquiryService, get_inquiry_service
from storefront.domain import Inquiry

router = APIRouter(prefix="/inquiries", tags=["Inquiries"])


def get_service(request: Request, session: DbSession) -> InquiryService:
    """Get inquiry service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_inquiry_service(session, request_id=request_id)


async def with_chat_ids(
    service: InquiryService, inquiries: list[Inquiry]
) -> list[InquiryResponse]:
    """Convert inquiries to responses carrying their chat ids."""
    chat_ids = await service.chat_ids(inquiries)
    return [inquiry_to_response(i, chat_ids.get(i.id)) for i in inquiries]


@router.post(
    "",
    response_model=InquiryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Send an inquiry",
)
async def create_inquiry(
    body: InquiryCreateRequest,
    user: CurrentUser,
    service: Annotated[InquiryService, Depends(get_service)],
) -> InquiryResponse:
    """Ask to rent a live product; opens a chat with the owner.

    The optional message becomes the first message of the chat.
    """
    result = await service.create_inquiry(
        user,
        body.product_id,
        body.start_date,
        body.end_date,
        message=body.message,
    )
    return inquiry_to_response(result.inquiry, result.chat.id)


@router.get("", response_model=InquiryListResponse, summary="My inquiries")
async def list_inquiries(
    user: CurrentUser,
    service: Annotated[InquiryService, Depends(get_service)],
) -> InquiryListResponse:
    """Inquiries where the caller is the renter or the owner."""
    inquiries = await service.list_inquiries(user)
    return InquiryListResponse(items=await with_chat_ids(service, inquiries))


@router.get(
    "/{inquiry_id}",
    response_model=InquiryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get an inquiry",
)
async def get_inquiry(
    inquiry_id: str,
    user: CurrentUser,
    service: Annotated[InquiryService, Depends(get_service)],
) -> InquiryResponse:
    """Get an inquiry the caller takes part in."""
    inquiry = await service.get_inquiry(inquiry_id, user)
    return (await with_chat_ids(service, [inquiry]))[0]


@router.post(
    "/{inquiry_id}/confirm",
    response_model=InquiryResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Confirm a booking",
)
async def confirm_booking(
    inquiry_id: str,
    body: BookingConfirmRequest,
    user: CurrentUser,
    service: Annotated[InquiryService, Depends(get_service)],
) -> InquiryResponse:
    """Confirm rental dates as the owner.

    A confirmation message is posted to the chat on the owner's behalf.
    """
    result = await service.confirm_booking(
        inquiry_id,
        user,
        body.start_date,
        body.end_date,
        reply_to_message_id=body.reply_to_message_id,
    )
    return inquiry_to_response(result.inquiry, result.message.chat_id)


@router.post(
    "/{inquiry_id}/cancel",
    response_model=InquiryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Cancel an inquiry",
)
async def cancel_inquiry(
    inquiry_id: str,
    user: CurrentUser,
    service: Annotated[InquiryService, Depends(get_service)],
) -> InquiryResponse:
    """Cancel an inquiry as either participant."""
    inquiry = await service.cancel_inquiry(inquiry_id, user)
    return (await with_chat_ids(service, [inquiry]))[0]
