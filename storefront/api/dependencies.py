"""Shared FastAPI dependencies.

The session middleware stores the signed-in user on ``request.state``;
these helpers turn that into route parameters. ``DbSession`` opens one
database session per request, committed when the route returns.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain import User
from storefront.infrastructure.database import get_session


def get_request_id(request: Request) -> str | None:
    """Request ID assigned by the request id middleware."""
    return getattr(request.state, "request_id", None)


def get_optional_user(request: Request) -> User | None:
    """Signed-in user, or None for anonymous visitors."""
    return getattr(request.state, "user", None)


def get_current_user(request: Request) -> User:
    """Signed-in user.

    Raises:
        HTTPException: 401 when the request carries no session.
    """
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "UNAUTHORIZED",
                "message": "Sign in required",
                "details": {},
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_admin_user(user: Annotated[User, Depends(get_current_user)]) -> User:
    """Signed-in admin.

    Raises:
        HTTPException: 403 for members without admin rights.
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error_code": "FORBIDDEN",
                "message": "Admin access required",
                "details": {},
            },
        )
    return user


DbSession = Annotated[AsyncSession, Depends(get_session)]
RequestId = Annotated[str | None, Depends(get_request_id)]
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
AdminUser = Annotated[User, Depends(get_admin_user)]
