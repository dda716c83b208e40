"""API middleware for the Storefront API.

Provides:
- Request ID correlation
- Session token authentication
- Maintenance mode guard
- Error handling
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.application.identity_service import get_identity_service
from storefront.application.site_service import get_site_service
from storefront.infrastructure.database import session_scope

logger = structlog.get_logger()


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the uniform error body outside of exception handlers."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": {},
            "request_id": getattr(request.state, "request_id", None),
        },
        headers=headers,
    )


# ============================================================================
# Request ID Middleware
# ============================================================================


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID for correlation.

    Generates or extracts a request ID and adds it to:
    - Request state for access in handlers
    - Response headers for client correlation
    - Log context for tracing
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with correlation ID.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response with request ID header.
        """
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=getattr(response, "status_code", 500),
                duration_ms=round(duration_ms, 2),
            )
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[self.HEADER_NAME] = request_id
        return response


# ============================================================================
# Session Authentication Middleware
# ============================================================================


def bearer_token(request: Request) -> str | None:
    """Extract the token of an ``Authorization: Bearer <token>`` header.

    Returns:
        The token, "" for a malformed header, or None without a header.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return ""
    return parts[1].strip()


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Middleware resolving the session behind a bearer token.

    Sets ``request.state.user`` to the signed-in user, or None for anonymous
    visitors. Individual routes decide whether a user is required; the
    whole ``/admin`` tree requires an admin.
    """

    ADMIN_PREFIX = "/admin"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Authenticate the request if it carries a token.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response, or 401/403 error.
        """
        request.state.user = None
        request.state.session_token = None
        path = request.url.path.rstrip("/")
        token = bearer_token(request)

        if token == "":
            logger.warning("Invalid authorization format", path=path, method=request.method)
            return error_response(
                request,
                status.HTTP_401_UNAUTHORIZED,
                "UNAUTHORIZED",
                "Invalid Authorization header format. Use 'Bearer <token>'",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if token is not None:
            request_id = getattr(request.state, "request_id", None)
            async with session_scope() as session:
                service = get_identity_service(session, request_id)
                user = await service.resolve_session(token)
            if user is None:
                logger.warning("Invalid session token", path=path, method=request.method)
                return error_response(
                    request,
                    status.HTTP_401_UNAUTHORIZED,
                    "INVALID_TOKEN",
                    "Session is invalid or expired",
                    headers={"WWW-Authenticate": "Bearer"},
                )
            request.state.user = user
            request.state.session_token = token
            structlog.contextvars.bind_contextvars(user_id=user.id)

        try:
            if path == self.ADMIN_PREFIX or path.startswith(self.ADMIN_PREFIX + "/"):
                user = request.state.user
                if user is None:
                    return error_response(
                        request,
                        status.HTTP_401_UNAUTHORIZED,
                        "UNAUTHORIZED",
                        "Sign in required",
                        headers={"WWW-Authenticate": "Bearer"},
                    )
                if not user.is_admin:
                    logger.warning("Admin access denied", path=path, user_id=user.id)
                    return error_response(
                        request,
                        status.HTTP_403_FORBIDDEN,
                        "FORBIDDEN",
                        "Admin access required",
                    )
            return await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("user_id")


# ============================================================================
# Maintenance Mode Middleware
# ============================================================================


# Paths that stay available while the website is switched off
ALWAYS_AVAILABLE_PATHS = {
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/site/status",
}
ALWAYS_AVAILABLE_PREFIXES = ("/auth/", "/admin", "/docs", "/redoc")


class SiteGuardMiddleware(BaseHTTPMiddleware):
    """Middleware answering 503 for visitors while the website is off.

    Admins keep full access so they can switch it back on.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Block non-admin traffic in maintenance mode.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response or 503 error.
        """
        path = request.url.path.rstrip("/") or "/"
        if path in ALWAYS_AVAILABLE_PATHS or path.startswith(ALWAYS_AVAILABLE_PREFIXES):
            return await call_next(request)

        user = getattr(request.state, "user", None)
        if user is not None and user.is_admin:
            return await call_next(request)

        async with session_scope() as session:
            enabled = await get_site_service(session).is_website_enabled()
        if not enabled:
            return error_response(
                request,
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "MAINTENANCE_MODE",
                "The website is temporarily unavailable",
                headers={"Retry-After": "300"},
            )
        return await call_next(request)


# ============================================================================
# Error Handling Middleware
# ============================================================================


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for consistent error handling.

    Catches unhandled exceptions and returns standardized error responses.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Handle errors uniformly.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response or error response.
        """
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
            )
            return error_response(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "INTERNAL_ERROR",
                "An internal error occurred",
            )


# ============================================================================
# Middleware Setup
# ============================================================================


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application.

    Middleware is added in reverse order (last added = first executed):
    request id, then session, then maintenance guard, then error handling.

    Args:
        app: FastAPI application instance.
    """
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(SiteGuardMiddleware)
    app.add_middleware(SessionAuthMiddleware)
    app.add_middleware(RequestIdMiddleware)
