"""API layer module.

Contains FastAPI routers, middleware and request/response schemas.
"""

from storefront.api.admin import router as admin_router
from storefront.api.auth import router as auth_router
from storefront.api.chats import router as chats_router
from storefront.api.facets import router as facets_router
from storefront.api.health import router as health_router
from storefront.api.inquiries import router as inquiries_router
from storefront.api.media import router as media_router
from storefront.api.products import router as products_router
from storefront.api.site import router as site_router
from storefront.api.wishlist import router as wishlist_router

__all__ = [
    "admin_router",
    "auth_router",
    "chats_router",
    "facets_router",
    "health_router",
    "inquiries_router",
    "media_router",
    "products_router",
    "site_router",
    "wishlist_router",
]
