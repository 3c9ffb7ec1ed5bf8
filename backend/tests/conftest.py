"""Pytest configuration and fixtures for ClientDesk tests.

Provides an in-memory database per test, an HTTP client bound to it,
and factories for clients, packages, components and steps.
"""

from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clientdesk.database import Base, get_db
from clientdesk.main import app
from clientdesk.models.client import Client
from clientdesk.models.component import Component
from clientdesk.models.invoice import Invoice
from clientdesk.models.progress_step import ProgressStep

TEST_DB_URL = "sqlite+aiosqlite://"

# Fixed reference time for deterministic deadlines / ordering.
T0 = datetime(2026, 3, 1, 9, 0, 0)


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def test_client_row(db_session: AsyncSession) -> Client:
    """An agency client with nothing bought yet."""
    row = Client(name="Jane Doe", business_name="Doe Bakery", email="jane@example.com")
    db_session.add(row)
    await db_session.flush()
    return row


@pytest.fixture
def make_package(db_session: AsyncSession, test_client_row: Client):
    """Factory: add a package (invoice) for the test client."""
    counter = {"n": 0}

    async def _make(package_name: str, created_at: datetime | None = None) -> Invoice:
        counter["n"] += 1
        package = Invoice(
            client_id=test_client_row.id,
            package_name=package_name,
            created_at=created_at or T0 + timedelta(minutes=counter["n"]),
        )
        db_session.add(package)
        await db_session.flush()
        return package

    return _make


@pytest.fixture
def make_component(db_session: AsyncSession, test_client_row: Client):
    """Factory: add a component, optionally inside a package."""
    counter = {"n": 0}

    async def _make(name: str, package: Invoice | None = None) -> Component:
        counter["n"] += 1
        component = Component(
            client_id=test_client_row.id,
            invoice_id=package.id if package else None,
            name=name,
            created_at=T0 + timedelta(minutes=counter["n"]),
        )
        db_session.add(component)
        await db_session.flush()
        return component

    return _make


@pytest.fixture
def make_step(db_session: AsyncSession, test_client_row: Client):
    """Factory: insert a step row directly, with an explicit creation time."""
    counter = {"n": 0}

    async def _make(title: str, **fields) -> ProgressStep:
        counter["n"] += 1
        fields.setdefault("deadline", T0 + timedelta(days=30))
        fields.setdefault("created_at", T0 + timedelta(hours=counter["n"]))
        completed = fields.pop("completed", False)
        if completed:
            fields.setdefault("completed_date", T0)
        step = ProgressStep(
            client_id=test_client_row.id,
            title=title,
            completed=completed,
            important=fields.pop("important", False),
            comments=[],
            **fields,
        )
        db_session.add(step)
        await db_session.flush()
        return step

    return _make


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
