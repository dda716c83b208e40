"""Python client for the Storefront API.

Provides the async HTTP client and the chat screen synchroniser built on
the conversation timeline.
"""

from storefront.client.api_client import APIError, APIResponse, StorefrontAPIClient
from storefront.client.conversation_sync import ConversationSync

__all__ = [
    "APIError",
    "APIResponse",
    "StorefrontAPIClient",
    "ConversationSync",
]
