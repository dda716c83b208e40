"""Authentication and profile endpoints.

Members sign in with a one-time password sent to their phone or email.
Verifying the code returns a bearer session token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from storefront.api.converters import user_to_profile
from storefront.api.dependencies import CurrentUser, DbSession
from storefront.api.schemas import (
    ErrorResponse,
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    SessionResponse,
)
from storefront.application.identity_service import IdentityService, get_identity_service

router = APIRouter(tags=["Auth"])


def get_service(request: Request, session: DbSession) -> IdentityService:
    """Get identity service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_identity_service(session, request_id=request_id)


# ============================================================================
# OTP Sign-in
# ============================================================================


@router.post(
    "/auth/otp/request",
    response_model=OtpRequestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={422: {"model": ErrorResponse}},
    summary="Request a one-time password",
)
async def request_otp(
    body: OtpRequest,
    service: Annotated[IdentityService, Depends(get_service)],
) -> OtpRequestResponse:
    """Send a sign-in code to a phone number or email address."""
    result = await service.request_otp(phone=body.phone, email=body.email)
    return OtpRequestResponse(expires_at=result.expires_at, debug_code=result.debug_code)


@router.post(
    "/auth/otp/verify",
    response_model=SessionResponse,
    responses={
        401: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
    summary="Verify a one-time password",
)
async def verify_otp(
    body: OtpVerifyRequest,
    service: Annotated[IdentityService, Depends(get_service)],
) -> SessionResponse:
    """Exchange a valid code for a session token.

    First-time visitors must also send a name; their account is created.
    """
    result = await service.verify_otp(
        code=body.code,
        phone=body.phone,
        email=body.email,
        name=body.name,
    )
    return SessionResponse(
        token=result.token,
        expires_at=result.expires_at,
        is_new_user=result.is_new_user,
        user=user_to_profile(result.user),
    )


@router.post(
    "/auth/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse}},
    summary="End the current session",
)
async def logout(
    request: Request,
    user: CurrentUser,
    service: Annotated[IdentityService, Depends(get_service)],
) -> None:
    """Invalidate the bearer token used for this request."""
    await service.logout(request.state.session_token)


# ============================================================================
# Profile
# ============================================================================


@router.get(
    "/me",
    response_model=ProfileResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Get my profile",
)
async def get_me(user: CurrentUser) -> ProfileResponse:
    """Profile of the signed-in member."""
    return user_to_profile(user)


@router.patch(
    "/me",
    response_model=ProfileResponse,
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Update my profile",
)
async def update_me(
    body: ProfileUpdateRequest,
    user: CurrentUser,
    service: Annotated[IdentityService, Depends(get_service)],
) -> ProfileResponse:
    """Edit name, email, avatar or cities; omitted fields are kept."""
    updated = await service.update_profile(
        user,
        name=body.name,
        email=body.email,
        avatar_url=body.avatar_url,
        city_ids=body.city_ids,
    )
    return user_to_profile(updated)
