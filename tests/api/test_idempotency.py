"""Tests for idempotency middleware.

Tests:
- Idempotency key handling
- Response caching per caller
- Request body conflict detection
"""

from datetime import timedelta

import pytest

from storefront.api.idempotency import _matches_pattern, is_idempotent_endpoint
from storefront.application.idempotency_service import (
    CachedResponse,
    IdempotencyService,
    InMemoryIdempotencyStore,
)
from storefront.domain import utcnow


def make_cached(key: str, scope: str = "user-1", endpoint: str = "/inquiries") -> CachedResponse:
    """Build a cached response that expires in a day."""
    now = utcnow()
    return CachedResponse(
        idempotency_key=key,
        scope=scope,
        endpoint=endpoint,
        method="POST",
        response_status=201,
        response_body={"id": "inquiry-001"},
        created_at=now,
        expires_at=now + timedelta(hours=24),
        request_hash="abc123",
    )


# ============================================================================
# Pattern Matching Tests
# ============================================================================


class TestPatternMatching:
    """Tests for endpoint pattern matching."""

    def test_matches_exact_path(self):
        """Should match exact paths."""
        assert _matches_pattern("/inquiries", "/inquiries") is True

    def test_matches_path_with_parameters(self):
        """Should match paths with parameters."""
        assert _matches_pattern("/chats/abc123/messages", "/chats/{chat_id}/messages") is True

    def test_no_match_different_length(self):
        """Should not match paths of different length."""
        assert _matches_pattern("/inquiries", "/inquiries/{inquiry_id}/confirm") is False

    def test_no_match_different_segments(self):
        """Should not match paths with different segments."""
        assert _matches_pattern("/chats/abc/read", "/chats/{chat_id}/messages") is False


class TestIdempotentEndpoints:
    """Tests for is_idempotent_endpoint."""

    def test_message_send_is_idempotent(self):
        """POST /chats/{id}/messages honours the key."""
        assert is_idempotent_endpoint("/chats/abc123/messages", "POST") is True

    def test_not_for_get(self):
        """Reads never use the key."""
        assert is_idempotent_endpoint("/chats/abc123/messages", "GET") is False

    def test_not_for_unknown_endpoint(self):
        """Unknown endpoints don't use the key."""
        assert is_idempotent_endpoint("/wishlist", "POST") is False


# ============================================================================
# Idempotency Store Tests
# ============================================================================


class TestInMemoryIdempotencyStore:
    """Tests for InMemoryIdempotencyStore."""

    @pytest.fixture
    def store(self):
        """Create store instance."""
        return InMemoryIdempotencyStore(ttl_hours=24)

    @pytest.mark.asyncio
    async def test_put_and_get(self, store):
        """Should store and retrieve responses."""
        await store.put(make_cached("key-001"))

        retrieved = await store.get("key-001", "user-1", "/inquiries", "POST")

        assert retrieved is not None
        assert retrieved.response_status == 201
        assert retrieved.response_body == {"id": "inquiry-001"}

    @pytest.mark.asyncio
    async def test_keys_are_scoped_to_caller(self, store):
        """Another user's key does not hit the cache."""
        await store.put(make_cached("key-001", scope="user-1"))
        assert await store.get("key-001", "user-2", "/inquiries", "POST") is None

    @pytest.mark.asyncio
    async def test_expired_entries_not_returned(self, store):
        """Expired entries should not be returned."""
        cached = make_cached("key-001")
        cached.expires_at = utcnow() - timedelta(hours=1)
        await store.put(cached)

        assert await store.get("key-001", "user-1", "/inquiries", "POST") is None

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, store):
        """Should cleanup expired entries."""
        expired = make_cached("key-001", endpoint="/a")
        expired.expires_at = utcnow() - timedelta(hours=1)
        await store.put(expired)
        await store.put(make_cached("key-002", endpoint="/b"))

        removed = await store.cleanup_expired()

        assert removed == 1
        assert await store.get("key-002", "user-1", "/b", "POST") is not None


# ============================================================================
# Idempotency Service Tests
# ============================================================================


class TestIdempotencyService:
    """Tests for IdempotencyService."""

    @pytest.fixture
    def service(self):
        """Create service instance."""
        return IdempotencyService()

    @pytest.mark.asyncio
    async def test_check_returns_not_cached_for_new_key(self, service):
        """Should return not cached for new keys."""
        result = await service.check("new-key", "user-1", "/inquiries", "POST")

        assert result.is_cached is False
        assert result.cached_response is None
        assert result.is_conflict is False

    @pytest.mark.asyncio
    async def test_same_request_body_replays(self, service):
        """Same key and body returns the stored response."""
        body = {"message": "Hello", "client_id": "c-1"}
        await service.store("key-001", "user-1", "/chats/c/messages", "POST", 201, {"id": "m-1"}, body)

        result = await service.check("key-001", "user-1", "/chats/c/messages", "POST", body)

        assert result.is_cached is True
        assert result.cached_response.response_body == {"id": "m-1"}

    @pytest.mark.asyncio
    async def test_detects_request_body_conflict(self, service):
        """Should detect request body conflicts."""
        await service.store(
            "key-001", "user-1", "/inquiries", "POST", 201, {"id": "i-1"}, {"product_id": "p-1"}
        )

        result = await service.check(
            "key-001", "user-1", "/inquiries", "POST", {"product_id": "p-2"}
        )

        assert result.is_cached is False
        assert result.is_conflict is True


class TestComputeRequestHash:
    """Tests for request hash computation."""

    def test_none_body_returns_none(self):
        """None body should return None hash."""
        assert IdempotencyService.compute_request_hash(None) is None

    def test_key_order_independent(self):
        """Key order should not affect hash."""
        assert IdempotencyService.compute_request_hash(
            {"a": 1, "b": 2}
        ) == IdempotencyService.compute_request_hash({"b": 2, "a": 1})


# ============================================================================
# Middleware Tests
# ============================================================================


class TestIdempotencyMiddleware:
    """Tests for replaying retried requests over HTTP."""

    def test_retried_send_is_replayed(self, client, auth_headers, renter, chat_setup):
        """A retried send returns the first response without a new message."""
        headers = {**auth_headers(renter), "Idempotency-Key": "send-001"}
        body = {"message": "Pick up at 10?"}
        url = f"/chats/{chat_setup.chat.id}/messages"

        first = client.post(url, json=body, headers=headers)
        second = client.post(url, json=body, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.headers["X-Idempotent-Replayed"] == "true"
        assert second.json()["id"] == first.json()["id"]

        history = client.get(url, headers=auth_headers(renter)).json()
        assert [m["message"] for m in history["items"]].count("Pick up at 10?") == 1

    def test_reused_key_with_other_body_conflicts(self, client, auth_headers, renter, chat_setup):
        """A key cannot be reused for a different message."""
        headers = {**auth_headers(renter), "Idempotency-Key": "send-002"}
        url = f"/chats/{chat_setup.chat.id}/messages"

        client.post(url, json={"message": "One"}, headers=headers)
        response = client.post(url, json={"message": "Two"}, headers=headers)

        assert response.status_code == 409
        assert response.json()["error_code"] == "IDEMPOTENCY_CONFLICT"
