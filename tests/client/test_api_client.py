"""Tests for the Storefront API client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from storefront.client import StorefrontAPIClient


def make_response(status_code: int, body=None, headers: dict | None = None) -> MagicMock:
    """Build a mocked httpx response."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    response.headers = headers or {}
    return response


class TestStorefrontAPIClient:
    """Tests for StorefrontAPIClient."""

    @pytest.fixture
    def client(self):
        """Create a test client."""
        return StorefrontAPIClient(base_url="http://localhost:8000/", token="session-token")

    @pytest.mark.asyncio
    async def test_client_initialization(self, client):
        """Test client initialization."""
        assert client.base_url == "http://localhost:8000"
        assert client.token == "session-token"
        assert client._client is None

    @pytest.mark.asyncio
    async def test_bearer_header_on_lazy_client(self, client):
        """Test the lazily created client carries the session token."""
        http_client = await client._get_client()
        try:
            assert http_client.headers["Authorization"] == "Bearer session-token"
            assert await client._get_client() is http_client
        finally:
            await client.close()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_send_message_uses_client_id_as_idempotency_key(self, client):
        """Test sends are keyed by their client id."""
        mock_response = make_response(201, {"id": "msg-1", "client_id": "local-1"})

        with patch.object(client, "_get_client", new_callable=AsyncMock) as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(return_value=mock_response)
            mock_get_client.return_value = mock_http_client

            result = await client.send_message("chat-1", text="Hi", client_id="local-1")

            assert result.success is True
            assert result.data["id"] == "msg-1"
            kwargs = mock_http_client.request.call_args.kwargs
            assert kwargs["url"] == "/chats/chat-1/messages"
            assert kwargs["headers"] == {"Idempotency-Key": "local-1"}
            assert kwargs["json"]["message"] == "Hi"

    @pytest.mark.asyncio
    async def test_replayed_response_flag(self, client):
        """Test replayed responses are flagged."""
        mock_response = make_response(
            201, {"id": "msg-1"}, headers={"X-Idempotent-Replayed": "true"}
        )

        with patch.object(client, "_get_client", new_callable=AsyncMock) as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(return_value=mock_response)
            mock_get_client.return_value = mock_http_client

            result = await client.send_message("chat-1", text="Hi", client_id="local-1")

            assert result.replayed is True

    @pytest.mark.asyncio
    async def test_error_response(self, client):
        """Test error bodies are parsed."""
        mock_response = make_response(
            422,
            {"error_code": "EMPTY_MESSAGE", "message": "Message is empty", "details": {}},
        )

        with patch.object(client, "_get_client", new_callable=AsyncMock) as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(return_value=mock_response)
            mock_get_client.return_value = mock_http_client

            result = await client.send_message("chat-1", text="")

            assert result.success is False
            assert result.error.error_code == "EMPTY_MESSAGE"
            assert result.error.status_code == 422

    @pytest.mark.asyncio
    async def test_error_without_json_body(self, client):
        """Test non-JSON error bodies fall back to UNKNOWN_ERROR."""
        mock_response = make_response(502)
        mock_response.json.side_effect = ValueError("no json")

        with patch.object(client, "_get_client", new_callable=AsyncMock) as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(return_value=mock_response)
            mock_get_client.return_value = mock_http_client

            result = await client.list_chats()

            assert result.error.error_code == "UNKNOWN_ERROR"
            assert result.error.status_code == 502

    @pytest.mark.asyncio
    async def test_no_content(self, client):
        """Test 204 responses carry no data."""
        with patch.object(client, "_get_client", new_callable=AsyncMock) as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(return_value=make_response(204))
            mock_get_client.return_value = mock_http_client

            result = await client.mark_read("chat-1")

            assert result.success is True
            assert result.data is None

    @pytest.mark.asyncio
    async def test_none_params_dropped(self, client):
        """Test unset query parameters are not sent."""
        with patch.object(client, "_get_client", new_callable=AsyncMock) as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(return_value=make_response(200, {"items": []}))
            mock_get_client.return_value = mock_http_client

            await client.list_products({"city": "pune", "color": None})

            kwargs = mock_http_client.request.call_args.kwargs
            assert kwargs["params"] == {"city": "pune"}

    @pytest.mark.asyncio
    async def test_request_timeout(self, client):
        """Test request timeout handling."""
        with patch.object(client, "_get_client", new_callable=AsyncMock) as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(
                side_effect=httpx.TimeoutException("Connection timeout")
            )
            mock_get_client.return_value = mock_http_client

            result = await client.list_messages("chat-1")

            assert result.success is False
            assert result.error.error_code == "TIMEOUT"
            assert result.error.status_code == 504

    @pytest.mark.asyncio
    async def test_request_error(self, client):
        """Test request error handling."""
        with patch.object(client, "_get_client", new_callable=AsyncMock) as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(
                side_effect=httpx.RequestError("Connection failed")
            )
            mock_get_client.return_value = mock_http_client

            result = await client.get_product("PR-00001")

            assert result.success is False
            assert result.error.error_code == "REQUEST_ERROR"
