"""Idempotency service for safe request retries.

Clients retry message sends, inquiries and product submissions with the
same ``Idempotency-Key``. The first response is cached per caller and
endpoint, and replayed for retries with an identical body.
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import structlog

from storefront.domain import utcnow

logger = structlog.get_logger()

DEFAULT_TTL_HOURS = 24


@dataclass
class CachedResponse:
    """A cached response for an idempotent request.

    Attributes:
        idempotency_key: The idempotency key.
        scope: Caller the key belongs to (user id or "anonymous").
        endpoint: API endpoint path.
        method: HTTP method.
        response_status: HTTP status code.
        response_body: Response body.
        created_at: When the response was cached.
        expires_at: When the cached response expires.
        request_hash: Hash of the original request body.
    """

    idempotency_key: str
    scope: str
    endpoint: str
    method: str
    response_status: int
    response_body: Any
    created_at: datetime
    expires_at: datetime
    request_hash: str | None = None


@dataclass
class IdempotencyResult:
    """Result of an idempotency check."""

    is_cached: bool
    cached_response: CachedResponse | None = None
    is_conflict: bool = False


class InMemoryIdempotencyStore:
    """In-memory store for idempotency responses.

    Mirrors the ``idempotency_responses`` table.
    """

    def __init__(self, ttl_hours: int = DEFAULT_TTL_HOURS) -> None:
        self._responses: dict[tuple[str, str, str, str], CachedResponse] = {}
        self.ttl = timedelta(hours=ttl_hours)

    async def get(
        self, idempotency_key: str, scope: str, endpoint: str, method: str
    ) -> CachedResponse | None:
        """Get a live cached response."""
        key = (scope, idempotency_key, method, endpoint)
        cached = self._responses.get(key)
        if cached is None:
            return None
        if utcnow() > cached.expires_at:
            del self._responses[key]
            return None
        return cached

    async def put(self, cached: CachedResponse) -> None:
        """Store a response."""
        key = (cached.scope, cached.idempotency_key, cached.method, cached.endpoint)
        self._responses[key] = cached

    async def cleanup_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed.
        """
        now = utcnow()
        expired = [key for key, c in self._responses.items() if now > c.expires_at]
        for key in expired:
            del self._responses[key]
        return len(expired)


class IdempotencyService:
    """Service for handling idempotent requests."""

    def __init__(self, storage: InMemoryIdempotencyStore | None = None) -> None:
        self._storage = storage or InMemoryIdempotencyStore()

    @staticmethod
    def compute_request_hash(body: Any) -> str | None:
        """Hash a request body for conflict detection.

        Returns:
            SHA-256 hex digest, or None without a body.
        """
        if body is None:
            return None
        payload = json.dumps(body, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    async def check(
        self,
        idempotency_key: str,
        scope: str,
        endpoint: str,
        method: str,
        request_body: Any = None,
    ) -> IdempotencyResult:
        """Look up an earlier response for the key.

        Returns:
            Cached response, a conflict if the body differs, or a miss.
        """
        cached = await self._storage.get(idempotency_key, scope, endpoint, method)
        if cached is None:
            return IdempotencyResult(is_cached=False)

        if cached.request_hash != self.compute_request_hash(request_body):
            logger.warning(
                "Idempotency key reused with different request body",
                idempotency_key=idempotency_key,
                endpoint=endpoint,
            )
            return IdempotencyResult(is_cached=False, is_conflict=True)

        logger.info(
            "Returning cached idempotent response",
            idempotency_key=idempotency_key,
            endpoint=endpoint,
            original_status=cached.response_status,
        )
        return IdempotencyResult(is_cached=True, cached_response=cached)

    async def store(
        self,
        idempotency_key: str,
        scope: str,
        endpoint: str,
        method: str,
        response_status: int,
        response_body: Any,
        request_body: Any = None,
    ) -> CachedResponse:
        """Cache the response for a key."""
        now = utcnow()
        cached = CachedResponse(
            idempotency_key=idempotency_key,
            scope=scope,
            endpoint=endpoint,
            method=method,
            response_status=response_status,
            response_body=response_body,
            created_at=now,
            expires_at=now + self._storage.ttl,
            request_hash=self.compute_request_hash(request_body),
        )
        await self._storage.put(cached)
        logger.debug(
            "Stored idempotent response",
            idempotency_key=idempotency_key,
            endpoint=endpoint,
            status=response_status,
        )
        return cached


_idempotency_service: IdempotencyService | None = None


def get_idempotency_service() -> IdempotencyService:
    """Get or create the idempotency service instance."""
    global _idempotency_service
    if _idempotency_service is None:
        _idempotency_service = IdempotencyService()
    return _idempotency_service


def reset_idempotency_service() -> None:
    """Reset the idempotency service (for testing)."""
    global _idempotency_service
    _idempotency_service = None
