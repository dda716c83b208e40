"""Idempotency middleware for retried writes.

Provides:
- Idempotency-Key header handling, scoped to the calling user
- Response replay for retried message sends, inquiries and listings
- Request body conflict detection
"""

import json
from typing import Callable

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.application.idempotency_service import (
    IdempotencyService,
    get_idempotency_service,
)

logger = structlog.get_logger()


# Endpoints whose responses are replayed for a repeated Idempotency-Key
IDEMPOTENT_ENDPOINTS = {
    "/chats/{chat_id}/messages": ["POST"],
    "/inquiries": ["POST"],
    "/inquiries/{inquiry_id}/confirm": ["POST"],
    "/products": ["POST"],
    "/admin/products": ["POST"],
}

# Statuses that depend on who is asking or when, never replayed
_UNCACHEABLE_STATUSES = {401, 429}


def _matches_pattern(path: str, pattern: str) -> bool:
    """Check if a path matches a pattern with ``{param}`` segments.

    Args:
        path: Request path (e.g., /chats/abc123/messages).
        pattern: Pattern (e.g., /chats/{chat_id}/messages).

    Returns:
        True if path matches pattern.
    """
    path_parts = path.rstrip("/").split("/")
    pattern_parts = pattern.rstrip("/").split("/")
    if len(path_parts) != len(pattern_parts):
        return False
    return all(
        (want.startswith("{") and want.endswith("}")) or got == want
        for got, want in zip(path_parts, pattern_parts)
    )


def is_idempotent_endpoint(path: str, method: str) -> bool:
    """Check if an endpoint honours Idempotency-Key."""
    return any(
        method in methods and _matches_pattern(path, pattern)
        for pattern, methods in IDEMPOTENT_ENDPOINTS.items()
    )


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Middleware for idempotency key handling.

    Must run inside the session middleware: keys are scoped to
    ``request.state.user`` so two users never share a cached response.
    """

    HEADER_NAME = "Idempotency-Key"
    REPLAY_HEADER = "X-Idempotent-Replayed"

    def __init__(self, app, service: IdempotencyService | None = None) -> None:
        """Initialize middleware.

        Args:
            app: The ASGI application.
            service: Idempotency service (uses global if not provided).
        """
        super().__init__(app)
        self._service = service

    @property
    def service(self) -> IdempotencyService:
        """Get idempotency service."""
        return self._service or get_idempotency_service()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Replay or record responses of idempotent endpoints.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response (replayed or fresh).
        """
        path = request.url.path.rstrip("/")
        method = request.method
        idempotency_key = request.headers.get(self.HEADER_NAME)

        if not idempotency_key or not is_idempotent_endpoint(path, method):
            return await call_next(request)

        user = getattr(request.state, "user", None)
        scope = user.id if user is not None else "anonymous"

        request_body = None
        body = await request.body()
        if body:
            try:
                request_body = json.loads(body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                request_body = body.hex()

        result = await self.service.check(
            idempotency_key=idempotency_key,
            scope=scope,
            endpoint=path,
            method=method,
            request_body=request_body,
        )

        if result.is_conflict:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={
                    "error_code": "IDEMPOTENCY_CONFLICT",
                    "message": "Idempotency key already used with a different request",
                    "details": {"idempotency_key": idempotency_key},
                    "request_id": getattr(request.state, "request_id", None),
                },
            )

        if result.is_cached and result.cached_response:
            cached = result.cached_response
            response = JSONResponse(
                status_code=cached.response_status,
                content=cached.response_body,
            )
            response.headers[self.REPLAY_HEADER] = "true"
            return response

        response = await call_next(request)
        if response.status_code >= 500 or response.status_code in _UNCACHEABLE_STATUSES:
            return response

        response_body = b""
        async for chunk in response.body_iterator:
            response_body += chunk
        try:
            response_dict = json.loads(response_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            response_dict = {}

        await self.service.store(
            idempotency_key=idempotency_key,
            scope=scope,
            endpoint=path,
            method=method,
            response_status=response.status_code,
            response_body=response_dict,
            request_body=request_body,
        )

        fresh = JSONResponse(status_code=response.status_code, content=response_dict)
        for key, value in response.headers.items():
            if key.lower() not in ("content-length", "content-type"):
                fresh.headers[key] = value
        return fresh


def setup_idempotency_middleware(app) -> None:
    """Add idempotency middleware to the application.

    Call before ``setup_middleware`` so it ends up inside the session
    middleware.

    Args:
        app: FastAPI application instance.
    """
    app.add_middleware(IdempotencyMiddleware)
