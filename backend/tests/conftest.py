"""Test fixtures for the DMS reconciliation backend."""
from __future__ import annotations

import asyncio
import itertools
import os
import uuid
from collections.abc import AsyncIterator, Callable
from datetime import date
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("APP_ENCRYPTION_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from app.core.config import get_settings
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import dispose_engine, get_sessionmaker
from app.integrations.dms import (
    Booking,
    CredentialResult,
    DiaryResponse,
    DmsCredentials,
)
from app.main import app
from app.models import CheckTemplate, Organization, OrganizationDmsSettings, Site
from app.security.encryption import encrypt_str


class FakeCredentialProvider:
    """Credential provider returning a fixed answer."""

    def __init__(self, result: CredentialResult | None = None) -> None:
        self.result = result or CredentialResult(
            configured=True,
            credentials=DmsCredentials(
                api_url="https://dms.example.test",
                username="dealer",
                password="s3cret",
            ),
        )
        self.calls: list[uuid.UUID] = []

    async def get_credentials(self, organization_id: uuid.UUID) -> CredentialResult:
        self.calls.append(organization_id)
        return self.result


class FakeDiaryFetcher:
    """Diary fetcher serving an in-memory list of bookings."""

    def __init__(self, bookings: list[Booking] | None = None) -> None:
        self.bookings = list(bookings or [])
        self.success = True
        self.error: str | None = None
        self.exc: Exception | None = None
        self.delay: float = 0.0
        self.calls: list[tuple[date, date | None]] = []

    async def fetch_bookings(
        self,
        credentials: DmsCredentials,
        start_date: date,
        *,
        end_date: date | None = None,
    ) -> DiaryResponse:
        self.calls.append((start_date, end_date))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        if not self.success:
            return DiaryResponse(success=False, error=self.error)
        return DiaryResponse(success=True, bookings=list(self.bookings))


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest_asyncio.fixture()
async def seeded_org(reset_database: None, db_url: str) -> dict[str, Any]:
    """An organization with one site, one template and enabled DMS settings."""
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        organization = Organization(
            name="Riverside Motors", slug=f"riverside-{uuid.uuid4().hex[:8]}"
        )
        session.add(organization)
        await session.flush()

        site = Site(organization_id=organization.id, name="Riverside Workshop")
        template = CheckTemplate(organization_id=organization.id, name="Full VHC")
        session.add_all([site, template])
        await session.flush()

        session.add(
            OrganizationDmsSettings(
                organization_id=organization.id,
                enabled=True,
                api_url="https://dms.example.test",
                username_encrypted=encrypt_str("dealer"),
                password_encrypted=encrypt_str("s3cret"),
                daily_import_limit=100,
            )
        )
        await session.commit()

        return {
            "organization_id": organization.id,
            "site_id": site.id,
            "template_id": template.id,
        }


@pytest.fixture()
def credential_provider() -> FakeCredentialProvider:
    return FakeCredentialProvider()


@pytest.fixture()
def diary_fetcher() -> FakeDiaryFetcher:
    return FakeDiaryFetcher()


@pytest.fixture()
def make_booking() -> Callable[..., Booking]:
    """Build a complete, importable booking; keyword arguments override fields."""

    counter = itertools.count()

    def _make(booking_id: str, /, **overrides: Any) -> Booking:
        suffix = booking_id.replace("-", "").upper()
        fields: dict[str, Any] = {
            "booking_id": booking_id,
            "status": "Booked",
            "booking_date": "2026-10-19",
            "booking_time": "09:30",
            "customer_id": f"C-{booking_id}",
            "customer_title": "Mr",
            "customer_first_name": "Alex",
            "customer_last_name": f"Driver{suffix}",
            "customer_email": f"{suffix.lower()}@example.com",
            "customer_mobile": f"07700 {900100 + next(counter)}",
            "vehicle_id": f"V-{booking_id}",
            "vehicle_reg": f"AB{suffix}",
            "vehicle_make": "Ford",
            "vehicle_model": "Focus",
            "vehicle_mileage": 42000,
            "description": "Annual service",
            "jobsheet_number": f"JS-{booking_id}",
        }
        fields.update(overrides)
        return Booking(**fields)

    return _make


@pytest.fixture()
def auth_headers(seeded_org: dict[str, Any]) -> dict[str, str]:
    token = create_access_token(
        subject="user-123", organization_id=seeded_org["organization_id"]
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def api_client(
    seeded_org: dict[str, Any], diary_fetcher: FakeDiaryFetcher
) -> AsyncIterator[AsyncClient]:
    """Yield an async client with the fake diary fetcher wired into app state."""
    app.state.diary_fetcher = diary_fetcher
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.state.diary_fetcher = None
