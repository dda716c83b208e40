"""Shared fixtures: a fresh database and realtime state per test, plus factories.

Every test runs against its own SQLite file. Factories are synchronous so
that TestClient tests and async service tests can share them; each one
commits in a session of its own on a private event loop.
"""

import asyncio
import secrets
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from pathlib import Path
from typing import Any, TypeVar

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from storefront.application.idempotency_service import reset_idempotency_service
from storefront.application.inquiry_service import CreateInquiryResult, InquiryService
from storefront.application.presence import reset_presence_registry
from storefront.application.realtime import reset_event_hub
from storefront.catalog.facets import FacetService
from storefront.catalog.service import CatalogService, ProductInput
from storefront.domain import (
    FacetKind,
    FacetTerm,
    Product,
    ProductStatus,
    Session,
    User,
    new_id,
    utcnow,
)
from storefront.infrastructure import models  # noqa: F401
from storefront.infrastructure.database import Base, configure_engine, session_scope
from storefront.infrastructure.repositories import SessionRepository, UserRepository
from storefront.infrastructure.storage import InMemoryMediaStorage, set_media_storage
from storefront.main import app

T = TypeVar("T")


def run(coro: Awaitable[T]) -> T:
    """Run a coroutine to completion on a private event loop."""
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def run_in_session(work: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run one committed unit of work, e.g. ``run_in_session(lambda s: repo(s).get(id))``."""

    async def _run() -> T:
        async with session_scope() as session:
            return await work(session)

    return run(_run())


@pytest.fixture(autouse=True)
def database(tmp_path: Path) -> Iterator[Path]:
    """Point the application at an empty SQLite database."""
    path = tmp_path / "storefront.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    configure_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    yield path


@pytest.fixture(autouse=True)
def fresh_state() -> Iterator[InMemoryMediaStorage]:
    """Reset the realtime, idempotency and media singletons around each test."""
    reset_event_hub()
    reset_presence_registry()
    reset_idempotency_service()
    storage = InMemoryMediaStorage()
    set_media_storage(storage)
    yield storage
    set_media_storage(None)


@pytest_asyncio.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """A session for async service tests, committed at teardown."""
    async with session_scope() as session:
        yield session


@pytest.fixture
def in_session() -> Callable[[Callable[[AsyncSession], Awaitable[Any]]], Any]:
    """Run a unit of work against the test database from synchronous code."""
    return run_in_session


@pytest.fixture
def client(database) -> Iterator[TestClient]:
    """Test client sharing one event loop across HTTP and WebSocket calls."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user() -> Callable[..., User]:
    """Factory registering a member directly in the database."""

    def _make(name: str = "Asha", is_admin: bool = False, phone: str | None = None) -> User:
        user = User(
            id=new_id(),
            name=name,
            phone=phone or f"+9198{secrets.randbelow(10**8):08d}",
            is_admin=is_admin,
        )
        return run_in_session(lambda s: UserRepository(s).save(user))

    return _make


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Factory opening a session for a member and returning its headers."""

    def _headers(user: User) -> dict[str, str]:
        auth_session = Session(
            id=secrets.token_urlsafe(16),
            user_id=user.id,
            expires_at=utcnow() + timedelta(hours=1),
        )
        run_in_session(lambda s: SessionRepository(s).save(auth_session))
        return {"Authorization": f"Bearer {auth_session.id}"}

    return _headers


@pytest.fixture
def owner(make_user) -> User:
    """A member who lists products."""
    return make_user("Meera")


@pytest.fixture
def renter(make_user) -> User:
    """A member who rents products."""
    return make_user("Ravi")


@pytest.fixture
def admin(make_user) -> User:
    """An administrator."""
    return make_user("Admin", is_admin=True)


@pytest.fixture
def make_product() -> Callable[..., Product]:
    """Factory creating a listing in the given state."""

    def _make(
        owner: User,
        title: str = "Red silk saree",
        price: int = 1500,
        status: ProductStatus = ProductStatus.APPROVED,
        **fields,
    ) -> Product:
        return run_in_session(
            lambda s: CatalogService(s).create_product(
                owner,
                ProductInput(title=title, price=price, **fields),
                initial_status=status,
                enforce_open_limit=False,
            )
        )

    return _make


@pytest.fixture
def live_product(owner, make_product) -> Product:
    """An approved listing owned by ``owner``."""
    return make_product(owner)


@pytest.fixture
def make_inquiry() -> Callable[..., CreateInquiryResult]:
    """Factory opening an inquiry (and its chat) on a product."""

    def _make(
        renter: User,
        product: Product,
        start: date | None = None,
        days: int = 3,
        message: str | None = "Is this available?",
    ) -> CreateInquiryResult:
        start = start or date.today() + timedelta(days=7)
        return run_in_session(
            lambda s: InquiryService(s).create_inquiry(
                renter,
                product.id,
                start,
                start + timedelta(days=days),
                message=message,
            )
        )

    return _make


@pytest.fixture
def chat_setup(renter, live_product, make_inquiry) -> CreateInquiryResult:
    """An inquiry between ``renter`` and the owner of ``live_product``."""
    return make_inquiry(renter, live_product)


@pytest.fixture
def make_term() -> Callable[..., FacetTerm]:
    """Factory creating a facet term, e.g. ``make_term(FacetKind.CITIES, "Pune")``."""

    def _make(kind: FacetKind, name: str, **fields) -> FacetTerm:
        return run_in_session(lambda s: FacetService(s).create_term(kind, name, **fields))

    return _make
