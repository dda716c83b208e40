"""State machines for domain entities.

Deterministic state machines that define valid state transitions
for product listings, rental inquiries and abuse reports. State machines
enforce business rules about what operations are valid in each state.
"""

from enum import Enum

from storefront.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Product State Machine
# ============================================================================


class ProductStatus(str, Enum):
    """Product listing lifecycle states.

    State diagram:
        DRAFT ──── submit ────► PENDING ──── reject ────► REJECTED
          ▲  │                    │                         │
          │  │ publish (admin)    │ approve                 │ resubmit
          │  ▼                    ▼                         │
          │  APPROVED ◄───────────┘◄────────────────────────┘
          │    │    ▲
          │    │    │ reject deactivation
          │    ▼    │
          └── PENDING_DEACTIVATION
             approve deactivation

    Only APPROVED listings are live on the storefront.
    """

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING_DEACTIVATION = "pending_deactivation"

    def can_transition_to(self, target: "ProductStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _PRODUCT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["ProductStatus"]:
        """Get list of valid target states.

        Returns:
            List of states that can be transitioned to.
        """
        return sorted(_PRODUCT_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_live(self) -> bool:
        """Check if listings in this state are shown to visitors.

        Returns:
            True only for approved listings.
        """
        return self is ProductStatus.APPROVED

    def is_awaiting_review(self) -> bool:
        """Check if an admin decision is outstanding.

        Returns:
            True for pending submissions and deactivation requests.
        """
        return self in {ProductStatus.PENDING, ProductStatus.PENDING_DEACTIVATION}

    def is_open_submission(self) -> bool:
        """Check if the listing counts against the one-open-listing limit.

        Returns:
            True for drafts and pending submissions.
        """
        return self in {ProductStatus.DRAFT, ProductStatus.PENDING}


_PRODUCT_TRANSITIONS: dict[ProductStatus, set[ProductStatus]] = {
    ProductStatus.DRAFT: {ProductStatus.PENDING, ProductStatus.APPROVED},
    ProductStatus.PENDING: {
        ProductStatus.APPROVED,
        ProductStatus.REJECTED,
        ProductStatus.DRAFT,
    },
    ProductStatus.APPROVED: {ProductStatus.DRAFT, ProductStatus.PENDING_DEACTIVATION},
    ProductStatus.REJECTED: {ProductStatus.PENDING, ProductStatus.DRAFT},
    ProductStatus.PENDING_DEACTIVATION: {ProductStatus.DRAFT, ProductStatus.APPROVED},
}


# ============================================================================
# Inquiry State Machine
# ============================================================================


class InquiryStatus(str, Enum):
    """Rental inquiry lifecycle states.

    State diagram:
        PENDING ──── confirm ────► CONFIRMED
          │                          │
          │ cancel                   │ cancel
          ▼                          ▼
        CANCELLED ◄──────────────────┘

    A confirmed inquiry may be re-confirmed with new dates.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "InquiryStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _INQUIRY_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["InquiryStatus"]:
        """Get list of valid target states."""
        return sorted(_INQUIRY_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_INQUIRY_TRANSITIONS.get(self, set())) == 0


_INQUIRY_TRANSITIONS: dict[InquiryStatus, set[InquiryStatus]] = {
    InquiryStatus.PENDING: {InquiryStatus.CONFIRMED, InquiryStatus.CANCELLED},
    InquiryStatus.CONFIRMED: {InquiryStatus.CONFIRMED, InquiryStatus.CANCELLED},
    InquiryStatus.CANCELLED: set(),  # Terminal state
}


# ============================================================================
# Report State Machine
# ============================================================================


class ReportStatus(str, Enum):
    """Abuse report lifecycle states."""

    NEW = "new"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"

    def can_transition_to(self, target: "ReportStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _REPORT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["ReportStatus"]:
        """Get list of valid target states."""
        return sorted(_REPORT_TRANSITIONS.get(self, set()), key=lambda s: s.value)


_REPORT_TRANSITIONS: dict[ReportStatus, set[ReportStatus]] = {
    ReportStatus.NEW: {ReportStatus.REVIEWED, ReportStatus.DISMISSED},
    ReportStatus.REVIEWED: set(),
    ReportStatus.DISMISSED: set(),
}


# ============================================================================
# Transition Validators
# ============================================================================


def validate_product_transition(
    product_id: str,
    current: ProductStatus,
    target: ProductStatus,
) -> None:
    """Validate a product status transition.

    Args:
        product_id: ID of the product.
        current: Current status.
        target: Target status.

    Raises:
        InvalidStateTransitionError: If transition is invalid.
    """
    if not current.can_transition_to(target):
        raise InvalidStateTransitionError(
            entity_type="Product",
            entity_id=product_id,
            current_state=current.value,
            target_state=target.value,
            allowed_transitions=[s.value for s in current.allowed_transitions()],
        )


def validate_inquiry_transition(
    inquiry_id: str,
    current: InquiryStatus,
    target: InquiryStatus,
) -> None:
    """Validate an inquiry status transition.

    Raises:
        InvalidStateTransitionError: If transition is invalid.
    """
    if not current.can_transition_to(target):
        raise InvalidStateTransitionError(
            entity_type="Inquiry",
            entity_id=inquiry_id,
            current_state=current.value,
            target_state=target.value,
            allowed_transitions=[s.value for s in current.allowed_transitions()],
        )


def validate_report_transition(
    report_id: str,
    current: ReportStatus,
    target: ReportStatus,
) -> None:
    """Validate a report status transition.

    Raises:
        InvalidStateTransitionError: If transition is invalid.
    """
    if not current.can_transition_to(target):
        raise InvalidStateTransitionError(
            entity_type="Report",
            entity_id=report_id,
            current_state=current.value,
            target_state=target.value,
            allowed_transitions=[s.value for s in current.allowed_transitions()],
        )
