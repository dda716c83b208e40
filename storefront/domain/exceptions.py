"""Domain exceptions.

All domain-level errors that represent business rule violations.
Each error carries a machine-readable ``error_code`` and the HTTP status
the API layer renders it with, so handlers never need to translate them
one by one.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
    ) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
            error_code: Optional override of the class error code.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code


class NotFoundError(DomainError):
    """Raised when a requested entity does not exist."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity_type: str, entity_id: str) -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of entity (e.g., "Product", "Chat").
            entity_id: Identifier that was looked up.
        """
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            details={"entity_type": entity_type, "entity_id": entity_id},
            error_code=f"{_snake(entity_type).upper()}_NOT_FOUND",
        )


class PermissionDeniedError(DomainError):
    """Raised when the acting user may not perform an operation."""

    error_code = "FORBIDDEN"
    status_code = 403


class ValidationError(DomainError):
    """Raised when input violates a business rule."""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class ConflictError(DomainError):
    """Raised when an operation conflicts with existing state."""

    error_code = "CONFLICT"
    status_code = 409


class AuthenticationError(DomainError):
    """Raised when credentials are missing, wrong or expired."""

    error_code = "UNAUTHORIZED"
    status_code = 401


class RateLimitedError(DomainError):
    """Raised when an actor exceeded an attempt budget."""

    error_code = "TOO_MANY_ATTEMPTS"
    status_code = 429


class MaintenanceModeError(DomainError):
    """Raised when the storefront is switched off for visitors."""

    error_code = "MAINTENANCE_MODE"
    status_code = 503


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_STATE_TRANSITION"
    status_code = 409

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Product", "Inquiry").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Catalog Errors
# ============================================================================


class PendingListingExistsError(ConflictError):
    """Raised when a user already has a draft or pending listing."""

    error_code = "PENDING_LISTING_EXISTS"

    def __init__(self, user_id: str, product_id: str) -> None:
        """Initialize pending listing error.

        Args:
            user_id: Owner of the listings.
            product_id: The existing draft/pending product.
        """
        super().__init__(
            "You already have an active draft or pending listing. "
            "Please wait for approval or delete your existing draft.",
            details={"user_id": user_id, "product_id": product_id},
        )


class DuplicateFacetError(ConflictError):
    """Raised when a facet term name is already used within its kind."""

    error_code = "FACET_EXISTS"

    def __init__(self, kind: str, name: str) -> None:
        """Initialize duplicate facet error.

        Args:
            kind: Facet kind.
            name: Conflicting term name.
        """
        super().__init__(
            f"{kind} '{name}' already exists",
            details={"kind": kind, "name": name},
        )


class InvalidListingStatusError(ValidationError):
    """Raised when a listing status string cannot be parsed."""

    error_code = "INVALID_LISTING_STATUS"

    def __init__(self, value: str) -> None:
        """Initialize invalid listing status error.

        Args:
            value: The rejected value.
        """
        super().__init__(
            f"Invalid listing status: {value!r}",
            details={"value": value},
        )


# ============================================================================
# Booking Errors
# ============================================================================


class InvalidDateRangeError(ValidationError):
    """Raised when a rental period ends before it starts."""

    error_code = "INVALID_DATE_RANGE"

    def __init__(self, start: str, end: str) -> None:
        """Initialize invalid date range error.

        Args:
            start: Start date (ISO format).
            end: End date (ISO format).
        """
        super().__init__(
            "End date must be after start date",
            details={"start_date": start, "end_date": end},
        )


class BookingConflictError(ConflictError):
    """Raised when a booking overlaps an already confirmed booking."""

    error_code = "BOOKING_CONFLICT"

    def __init__(self, product_id: str, conflicting_inquiry_id: str) -> None:
        """Initialize booking conflict error.

        Args:
            product_id: Product being booked.
            conflicting_inquiry_id: The confirmed inquiry that overlaps.
        """
        super().__init__(
            "Selected dates overlap an existing booking",
            details={
                "product_id": product_id,
                "conflicting_inquiry_id": conflicting_inquiry_id,
            },
        )


# ============================================================================
# Chat Errors
# ============================================================================


class EmptyMessageError(ValidationError):
    """Raised when a message has neither text nor media."""

    error_code = "EMPTY_MESSAGE"

    def __init__(self) -> None:
        """Initialize empty message error."""
        super().__init__("Message must contain text or media")


class MessageTooLongError(ValidationError):
    """Raised when a message exceeds the maximum length."""

    error_code = "MESSAGE_TOO_LONG"

    def __init__(self, length: int, limit: int) -> None:
        """Initialize message too long error.

        Args:
            length: Actual message length.
            limit: Maximum allowed length.
        """
        super().__init__(
            f"Message is {length} characters, limit is {limit}",
            details={"length": length, "limit": limit},
        )


def _snake(name: str) -> str:
    """Convert a CamelCase name to snake_case."""
    out: list[str] = []
    for index, char in enumerate(name):
        if char.isupper() and index > 0:
            out.append("_")
        out.append(char.lower())
    return "".join(out)
