"""Product filtering, sorting and filter-URL synchronisation.

A ``ProductFilter`` is parsed from listing query parameters and serialised
back to a canonical query string, so that the same selection always maps to
the same URL regardless of the order the visitor clicked filters in.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar
from urllib.parse import urlencode

from storefront.domain import FacetKind, ValidationError

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class SortOrder(str, Enum):
    """Listing sort options."""

    NEWEST = "newest"
    OLDEST = "oldest"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"


@dataclass
class ProductFilter:
    """Filter parameters for the public product listing.

    Attributes:
        facets: Selected term ids per facet kind.
        min_price: Minimum price per day (inclusive).
        max_price: Maximum price per day (inclusive).
        search: Text search in title/description.
        sort: Sort order.
        page: Page number (1-based).
    """

    facets: dict[FacetKind, set[str]] = field(default_factory=dict)
    min_price: int | None = None
    max_price: int | None = None
    search: str | None = None
    sort: SortOrder = SortOrder.NEWEST
    page: int = 1

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> "ProductFilter":
        """Parse a filter from query parameters.

        Facet parameters hold comma-separated term ids
        (``?city=a,b&color=c``). Unknown parameters are ignored.

        Args:
            params: Query parameters (e.g. ``request.query_params``).

        Returns:
            Parsed filter.

        Raises:
            ValidationError: If a numeric or sort parameter is malformed.
        """
        facets: dict[FacetKind, set[str]] = {}
        for kind in FacetKind:
            raw = params.get(kind.query_param)
            if raw:
                ids = {part.strip() for part in raw.split(",") if part.strip()}
                if ids:
                    facets[kind] = ids

        sort_value = params.get("sort") or SortOrder.NEWEST.value
        try:
            sort = SortOrder(sort_value)
        except ValueError:
            raise ValidationError(
                f"Unknown sort order: {sort_value}",
                details={"sort": sort_value, "allowed": [s.value for s in SortOrder]},
            ) from None

        search = (params.get("q") or "").strip() or None
        page = _int_param(params, "page")
        if page is None:
            page = 1
        if page < 1:
            raise ValidationError("Page must be >= 1", details={"page": page})

        result = cls(
            facets=facets,
            min_price=_int_param(params, "min_price"),
            max_price=_int_param(params, "max_price"),
            search=search,
            sort=sort,
            page=page,
        )
        if (
            result.min_price is not None
            and result.max_price is not None
            and result.min_price > result.max_price
        ):
            raise ValidationError(
                "min_price must not exceed max_price",
                details={"min_price": result.min_price, "max_price": result.max_price},
            )
        return result

    def to_query_params(self) -> list[tuple[str, str]]:
        """Canonical query parameters; defaults are omitted."""
        pairs: list[tuple[str, str]] = []
        for kind in sorted(self.facets, key=lambda k: k.query_param):
            ids = sorted(self.facets[kind])
            if ids:
                pairs.append((kind.query_param, ",".join(ids)))
        if self.min_price is not None:
            pairs.append(("min_price", str(self.min_price)))
        if self.max_price is not None:
            pairs.append(("max_price", str(self.max_price)))
        if self.search:
            pairs.append(("q", self.search))
        if self.sort is not SortOrder.NEWEST:
            pairs.append(("sort", self.sort.value))
        if self.page != 1:
            pairs.append(("page", str(self.page)))
        return sorted(pairs)

    def to_query_string(self) -> str:
        """Serialise to a canonical URL query string (without ``?``)."""
        return urlencode(self.to_query_params(), safe=",")

    def with_page(self, page: int) -> "ProductFilter":
        """Copy of the filter pointing at another page."""
        return ProductFilter(
            facets={kind: set(ids) for kind, ids in self.facets.items()},
            min_price=self.min_price,
            max_price=self.max_price,
            search=self.search,
            sort=self.sort,
            page=page,
        )

    @property
    def is_empty(self) -> bool:
        """Whether no narrowing criteria are selected."""
        return not (
            self.facets
            or self.min_price is not None
            or self.max_price is not None
            or self.search
        )


@dataclass
class PaginatedResult(Generic[T]):
    """Paginated result container.

    Attributes:
        items: List of items.
        total: Total count.
        page: Current page.
        page_size: Items per page.
    """

    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_more(self) -> bool:
        """Check if there's a next page."""
        return self.page < self.total_pages


def _int_param(params: Mapping[str, str], name: str) -> int | None:
    raw = params.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(
            f"{name} must be an integer",
            details={name: raw},
        ) from None
