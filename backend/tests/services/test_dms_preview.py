"""Import preview classification."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from sqlalchemy import func, select, update

from app.db.session import get_sessionmaker
from app.integrations.dms import CredentialResult
from app.models import Customer, ImportBatch, ImportType, Inspection, OrganizationDmsSettings
from app.schemas.dms_import import ImportOptions
from app.services.dms_errors import ConfigurationError, ExternalServiceError
from app.services.dms_import_service import DmsImporter
from app.services.dms_preview_service import preview_import

pytestmark = pytest.mark.asyncio


async def _counts(db_url: str) -> tuple[int, int, int]:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        counts = []
        for model in (Customer, Inspection, ImportBatch):
            counts.append(
                (
                    await session.execute(select(func.count()).select_from(model))
                ).scalar_one()
            )
        return tuple(counts)


async def test_preview_classifies_bookings_and_writes_nothing(
    seeded_org, db_url, credential_provider, diary_fetcher, make_booking
) -> None:
    org_id = seeded_org["organization_id"]
    today = datetime.now(UTC).date()
    sessionmaker = get_sessionmaker(db_url)

    diary_fetcher.bookings = [make_booking("B1")]
    async with sessionmaker() as session:
        await DmsImporter(
            session, credential_provider=credential_provider, diary_fetcher=diary_fetcher
        ).run(
            ImportOptions(
                organization_id=org_id, target_date=today, import_type=ImportType.MANUAL
            )
        )
        await session.execute(
            update(OrganizationDmsSettings)
            .where(OrganizationDmsSettings.organization_id == org_id)
            .values(daily_import_limit=2)
        )
        await session.commit()
    before = await _counts(db_url)

    diary_fetcher.bookings = [
        make_booking("B1"),
        make_booking("B2", vehicle_reg="  "),
        make_booking("B3", status=" Cancelled "),
        make_booking("B4", service_type="MOT", customer_last_name="Smith"),
        make_booking("B5"),
    ]
    async with sessionmaker() as session:
        preview = await preview_import(
            session,
            org_id,
            credential_provider=credential_provider,
            diary_fetcher=diary_fetcher,
            target_date=today,
        )

    assert await _counts(db_url) == before
    assert [entry.booking_id for entry in preview.will_import] == ["B4"]
    imported = preview.will_import[0]
    assert imported.service_type == "MOT"
    assert imported.scheduled_time == "09:30"
    assert imported.customer_name == "Alex Smith"
    assert imported.vehicle_reg == "ABB4"
    assert [(entry.booking_id, entry.reason) for entry in preview.will_skip] == [
        ("B1", "Already imported"),
        ("B2", "No vehicle registration"),
        ("B3", "Status: Cancelled"),
        ("B5", "Would exceed daily import limit"),
    ]
    assert preview.will_skip[1].vehicle_reg == "N/A"
    summary = preview.summary
    assert summary.total_bookings == 5
    assert summary.will_import == 1
    assert summary.will_skip == 4
    assert summary.already_imported_today == 1
    assert summary.daily_limit == 2
    assert summary.remaining_capacity == 1
    assert summary.limit_would_be_exceeded is True
    assert preview.warnings == [
        "Import would be limited to 1 bookings due to daily limit of 2"
    ]


async def test_preview_defaults_service_type(
    seeded_org, db_url, credential_provider, diary_fetcher, make_booking
) -> None:
    diary_fetcher.bookings = [make_booking("B1", booking_time=None)]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        preview = await preview_import(
            session,
            seeded_org["organization_id"],
            credential_provider=credential_provider,
            diary_fetcher=diary_fetcher,
            target_date=date(2026, 10, 19),
        )

    entry = preview.will_import[0]
    assert entry.service_type == "Service"
    assert entry.scheduled_time is None
    assert preview.summary.limit_would_be_exceeded is False
    assert preview.warnings == []


async def test_preview_requires_credentials(
    seeded_org, db_url, credential_provider, diary_fetcher
) -> None:
    credential_provider.result = CredentialResult(
        configured=False, error="DMS integration is disabled for this organization"
    )
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(ConfigurationError, match="disabled"):
            await preview_import(
                session,
                seeded_org["organization_id"],
                credential_provider=credential_provider,
                diary_fetcher=diary_fetcher,
                target_date=date(2026, 10, 19),
            )
    assert diary_fetcher.calls == []


async def test_preview_surfaces_fetch_failure(
    seeded_org, db_url, credential_provider, diary_fetcher
) -> None:
    diary_fetcher.success = False
    diary_fetcher.error = "Diary unavailable"
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        with pytest.raises(ExternalServiceError, match="Diary unavailable"):
            await preview_import(
                session,
                seeded_org["organization_id"],
                credential_provider=credential_provider,
                diary_fetcher=diary_fetcher,
                target_date=date(2026, 10, 19),
            )
