"""Product Catalog.

Provides facet terms, listing filters with canonical filter URLs, product
storage with view/impression tracking, and the catalog service.
"""

from storefront.catalog.facets import FacetService, get_facet_service
from storefront.catalog.filters import PaginatedResult, ProductFilter, SortOrder
from storefront.catalog.repository import FacetRepository, ProductRepository
from storefront.catalog.service import (
    CatalogService,
    DeleteProductResult,
    OwnerDashboard,
    OwnerProductStats,
    ProductInput,
    get_catalog_service,
)

__all__ = [
    # Facets
    "FacetService",
    "get_facet_service",
    # Filters
    "PaginatedResult",
    "ProductFilter",
    "SortOrder",
    # Repositories
    "FacetRepository",
    "ProductRepository",
    # Service
    "CatalogService",
    "DeleteProductResult",
    "OwnerDashboard",
    "OwnerProductStats",
    "ProductInput",
    "get_catalog_service",
]
