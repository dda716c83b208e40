"""Storefront API Client.

Thin async HTTP client for the Storefront REST API, used by chat clients
and scripts. Handles session authentication, idempotency keys, error
handling, and response parsing.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

logger = structlog.get_logger()


@dataclass
class APIError:
    """Represents an API error response."""

    error_code: str
    message: str
    status_code: int
    details: dict[str, Any] | list[Any] = field(default_factory=dict)


@dataclass
class APIResponse:
    """Represents an API response."""

    success: bool
    data: dict[str, Any] | list[Any] | None = None
    error: APIError | None = None
    replayed: bool = False


class StorefrontAPIClient:
    """HTTP client for the Storefront REST API.

    Example usage:
        client = StorefrontAPIClient("http://localhost:8000", token=session_token)
        page = await client.list_messages(chat_id)
        await client.close()
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the API client.

        Args:
            base_url: Storefront API base URL.
            token: Session token from OTP verification (None for anonymous).
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> APIResponse:
        """Make an API request.

        Args:
            method: HTTP method.
            path: API endpoint path.
            json: Request body as JSON.
            params: Query parameters.
            idempotency_key: Optional idempotency key.

        Returns:
            APIResponse with success status and data or error.
        """
        client = await self._get_client()

        headers = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            logger.debug("Making API request", method=method, path=path)
            response = await client.request(
                method=method,
                url=path,
                json=json,
                params=params,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.error("API request timeout", path=path, error=str(e))
            return APIResponse(
                success=False,
                error=APIError(
                    error_code="TIMEOUT",
                    message=f"Request timed out: {path}",
                    status_code=504,
                ),
            )
        except httpx.RequestError as e:
            logger.error("API request failed", path=path, error=str(e))
            return APIResponse(
                success=False,
                error=APIError(
                    error_code="REQUEST_ERROR",
                    message=f"Request failed: {e}",
                    status_code=500,
                ),
            )

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            return APIResponse(
                success=False,
                error=APIError(
                    error_code=error_data.get("error_code", "UNKNOWN_ERROR"),
                    message=error_data.get("message", "Unknown error"),
                    status_code=response.status_code,
                    details=error_data.get("details", {}),
                ),
            )

        if response.status_code == 204:
            return APIResponse(success=True, data=None)

        return APIResponse(
            success=True,
            data=response.json(),
            replayed=response.headers.get("X-Idempotent-Replayed") == "true",
        )

    # =========================================================================
    # Chat Endpoints
    # =========================================================================

    async def list_chats(self) -> APIResponse:
        """List the caller's chats with unread counts."""
        return await self._request("GET", "/chats")

    async def get_chat(self, chat_id: str) -> APIResponse:
        """Get one chat summary."""
        return await self._request("GET", f"/chats/{chat_id}")

    async def unread_count(self) -> APIResponse:
        """Get the unread badge count."""
        return await self._request("GET", "/chats/unread")

    async def list_messages(self, chat_id: str, page: int = 1) -> APIResponse:
        """Get a page of history (page 1 = newest), oldest first."""
        return await self._request("GET", f"/chats/{chat_id}/messages", params={"page": page})

    async def send_message(
        self,
        chat_id: str,
        text: str | None = None,
        media_url: str | None = None,
        media_type: str | None = None,
        reply_to_message_id: str | None = None,
        client_id: str | None = None,
    ) -> APIResponse:
        """Send a message.

        The ``client_id`` doubles as the idempotency key so that a retried
        send never creates a second message.

        Args:
            chat_id: Chat to post to.
            text: Message text.
            media_url: Uploaded media URL.
            media_type: Media kind.
            reply_to_message_id: Message being replied to.
            client_id: Client-generated message id.

        Returns:
            APIResponse with the stored message.
        """
        return await self._request(
            "POST",
            f"/chats/{chat_id}/messages",
            json={
                "message": text,
                "media_url": media_url,
                "media_type": media_type,
                "reply_to_message_id": reply_to_message_id,
                "client_id": client_id,
            },
            idempotency_key=client_id,
        )

    async def mark_read(self, chat_id: str) -> APIResponse:
        """Mark incoming messages of a chat as read."""
        return await self._request("POST", f"/chats/{chat_id}/read")

    async def mark_delivered(self, chat_id: str) -> APIResponse:
        """Mark incoming messages of a chat as delivered."""
        return await self._request("POST", f"/chats/{chat_id}/delivered")

    # =========================================================================
    # Product Endpoints
    # =========================================================================

    async def list_products(self, query: dict[str, Any] | None = None) -> APIResponse:
        """List live products.

        Args:
            query: Filter parameters (``city``, ``color``, ``min_price``...).
        """
        return await self._request("GET", "/products", params=query)

    async def get_product(self, product_ref: str) -> APIResponse:
        """Get a product page by code or id."""
        return await self._request("GET", f"/products/{product_ref}")
