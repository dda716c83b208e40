"""Shared fixtures for API tests."""

import pytest

from storefront.domain import User


@pytest.fixture
def owner_headers(auth_headers, owner: User) -> dict[str, str]:
    """Authentication headers of the listing owner."""
    return auth_headers(owner)


@pytest.fixture
def renter_headers(auth_headers, renter: User) -> dict[str, str]:
    """Authentication headers of the renter."""
    return auth_headers(renter)


@pytest.fixture
def admin_headers(auth_headers, admin: User) -> dict[str, str]:
    """Authentication headers of an administrator."""
    return auth_headers(admin)
