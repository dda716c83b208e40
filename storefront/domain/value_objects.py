"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Self

from storefront.domain.exceptions import (
    InvalidDateRangeError,
    InvalidListingStatusError,
    ValidationError,
)


# ============================================================================
# Facet Kinds
# ============================================================================


class FacetKind(str, Enum):
    """Kinds of facet terms products can be tagged with."""

    PRODUCT_TYPES = "product_types"
    OCCASIONS = "occasions"
    COLORS = "colors"
    MATERIALS = "materials"
    CITIES = "cities"
    CATEGORIES = "categories"

    @property
    def query_param(self) -> str:
        """Singular query-string parameter name for this kind.

        Returns:
            Parameter name (e.g., "product_type" for PRODUCT_TYPES).
        """
        return _QUERY_PARAMS[self]

    @classmethod
    def from_query_param(cls, name: str) -> "FacetKind | None":
        """Look up a facet kind by its query-string parameter name.

        Args:
            name: Parameter name.

        Returns:
            Matching kind or None.
        """
        for kind, param in _QUERY_PARAMS.items():
            if param == name:
                return kind
        return None


_QUERY_PARAMS: dict[FacetKind, str] = {
    FacetKind.PRODUCT_TYPES: "product_type",
    FacetKind.OCCASIONS: "occasion",
    FacetKind.COLORS: "color",
    FacetKind.MATERIALS: "material",
    FacetKind.CITIES: "city",
    FacetKind.CATEGORIES: "category",
}


# ============================================================================
# Listing Status
# ============================================================================


class ListingKind(str, Enum):
    """How a listing is charged for on the storefront."""

    PAID = "Paid"
    FREE = "Free"
    OFFER = "Offer"


_AMOUNT_RE = re.compile(r"(\d+)")


@dataclass(frozen=True)
class ListingStatus:
    """Listing fee arrangement of a product.

    Stored as display strings: ``"Paid: ₹99"``, ``"Free"`` or
    ``"Offer: ₹500"``. A bare ``"Paid"`` carries no amount and is
    resolved to the default listing fee by callers.

    Attributes:
        kind: Paid, free or discounted offer.
        amount: Fee in whole currency units (None for free listings).
    """

    kind: ListingKind
    amount: int | None = None

    def __post_init__(self) -> None:
        """Validate amount against kind."""
        if self.kind is ListingKind.FREE and self.amount is not None:
            raise ValidationError("Free listings carry no amount")
        if self.kind is ListingKind.OFFER and self.amount is None:
            raise ValidationError("Offer listings require an amount")
        if self.amount is not None and self.amount <= 0:
            raise ValidationError(
                "Listing amount must be positive",
                details={"amount": self.amount},
            )

    @classmethod
    def paid(cls, fee: int) -> Self:
        """Create a paid listing with the given fee."""
        return cls(kind=ListingKind.PAID, amount=fee)

    @classmethod
    def free(cls) -> Self:
        """Create a free listing."""
        return cls(kind=ListingKind.FREE)

    @classmethod
    def offer(cls, amount: int) -> Self:
        """Create a discounted offer listing."""
        return cls(kind=ListingKind.OFFER, amount=amount)

    @classmethod
    def parse(cls, value: str) -> Self:
        """Parse a stored listing status string.

        Args:
            value: String such as "Free", "Paid", "Paid: ₹99" or "Offer: ₹500".

        Returns:
            ListingStatus instance.

        Raises:
            InvalidListingStatusError: If the string is not recognised.
        """
        text = (value or "").strip()
        head = text.split(":", 1)[0].strip().lower()
        match = _AMOUNT_RE.search(text)
        amount = int(match.group(1)) if match else None

        try:
            if head == "free":
                return cls.free()
            if head == "paid":
                return cls(kind=ListingKind.PAID, amount=amount)
            if head == "offer" and amount is not None:
                return cls.offer(amount)
        except ValidationError as e:
            raise InvalidListingStatusError(value) from e
        raise InvalidListingStatusError(value)

    def format(self, currency_symbol: str = "₹") -> str:
        """Render the listing status as its stored display string.

        Args:
            currency_symbol: Symbol prefixed to the amount.

        Returns:
            Display string.
        """
        if self.amount is None:
            return self.kind.value
        return f"{self.kind.value}: {currency_symbol}{self.amount}"

    def __str__(self) -> str:
        """Return display string."""
        return self.format()


# ============================================================================
# Rental Period
# ============================================================================


@dataclass(frozen=True)
class DateRange:
    """A rental period of whole days.

    Both ends are inclusive when expanding to calendar days, and the end
    must fall strictly after the start.

    Attributes:
        start: First day of the rental.
        end: Last day of the rental.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        """Validate ordering."""
        if self.end <= self.start:
            raise InvalidDateRangeError(self.start.isoformat(), self.end.isoformat())

    def days(self) -> list[date]:
        """Expand the range to every covered calendar day.

        Returns:
            Days from start to end, inclusive.
        """
        span = (self.end - self.start).days
        return [self.start + timedelta(days=offset) for offset in range(span + 1)]

    def overlaps(self, other: "DateRange") -> bool:
        """Check whether two ranges share at least one day.

        Args:
            other: Range to compare with.

        Returns:
            True if any day is covered by both.
        """
        return self.start <= other.end and other.start <= self.end

    def display(self) -> str:
        """Format as ``DD/MM/YYYY - DD/MM/YYYY``."""
        return f"{self.start.strftime('%d/%m/%Y')} - {self.end.strftime('%d/%m/%Y')}"


# ============================================================================
# Contact Identifiers
# ============================================================================


_PHONE_RE = re.compile(r"^\+?\d{7,15}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_phone(value: str) -> str:
    """Normalise a phone number to digits with an optional leading ``+``.

    Args:
        value: Raw phone number (spaces, dashes and parentheses allowed).

    Returns:
        Normalised phone number.

    Raises:
        ValidationError: If the result is not a plausible phone number.
    """
    raw = (value or "").strip()
    prefix = "+" if raw.startswith("+") else ""
    digits = re.sub(r"\D", "", raw)
    phone = f"{prefix}{digits}"
    if not _PHONE_RE.match(phone):
        raise ValidationError(
            "Invalid phone number",
            details={"phone": value},
            error_code="INVALID_PHONE",
        )
    return phone


def normalize_email(value: str) -> str:
    """Normalise an email address to lower case.

    Raises:
        ValidationError: If the address is malformed.
    """
    email = (value or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError(
            "Invalid email address",
            details={"email": value},
            error_code="INVALID_EMAIL",
        )
    return email


_HEX_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def normalize_hex_color(value: str) -> str:
    """Validate and upper-case a ``#RRGGBB`` color.

    Raises:
        ValidationError: If the value is not a six-digit hex color.
    """
    if not _HEX_RE.match(value or ""):
        raise ValidationError(
            "Color must be a #RRGGBB hex value",
            details={"hex": value},
            error_code="INVALID_COLOR",
        )
    return value.upper()
