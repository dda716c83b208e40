"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from storefront.application.chat_service import ChatService, get_chat_service
from storefront.application.identity_service import (
    IdentityService,
    get_identity_service,
)
from storefront.application.idempotency_service import (
    IdempotencyService,
    get_idempotency_service,
)
from storefront.application.inquiry_service import (
    InquiryService,
    get_inquiry_service,
)
from storefront.application.moderation_service import (
    ModerationService,
    get_moderation_service,
)
from storefront.application.presence import PresenceRegistry, get_presence_registry
from storefront.application.realtime import ChatEventHub, get_event_hub
from storefront.application.site_service import SiteService, get_site_service
from storefront.application.wishlist_service import (
    WishlistService,
    get_wishlist_service,
)

__all__ = [
    "ChatEventHub",
    "get_event_hub",
    "ChatService",
    "get_chat_service",
    "IdentityService",
    "get_identity_service",
    "IdempotencyService",
    "get_idempotency_service",
    "InquiryService",
    "get_inquiry_service",
    "ModerationService",
    "get_moderation_service",
    "PresenceRegistry",
    "get_presence_registry",
    "SiteService",
    "get_site_service",
    "WishlistService",
    "get_wishlist_service",
]
