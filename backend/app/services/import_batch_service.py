"""Import batch audit rows, organization bookkeeping and usage counters."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.models import (
    Customer,
    ImportBatch,
    ImportBatchStatus,
    ImportType,
    Inspection,
    OrganizationDmsSettings,
    OrganizationUsage,
    Vehicle,
)
from app.schemas.dms_import import (
    ImportBatchRead,
    ImportBatchSummary,
    ImportedInspection,
    ImportOptions,
    ImportResult,
    Pagination,
)
from app.services.best_effort import best_effort

logger = logging.getLogger(__name__)

SYSTEM_TRIGGER = "System"


async def create_batch(
    session: AsyncSession, options: ImportOptions, *, site_id: uuid.UUID | None = None
) -> uuid.UUID:
    """Insert the batch row in ``running`` state and commit it."""
    batch = ImportBatch(
        organization_id=options.organization_id,
        site_id=site_id or options.site_id,
        import_type=options.import_type,
        import_date=options.target_date,
        end_date=options.end_date,
        status=ImportBatchStatus.RUNNING,
        errors=[],
        triggered_by=options.triggered_by,
    )
    session.add(batch)
    await session.commit()
    batch_id = batch.id
    # Later writes go through UPDATE statements only.
    session.expunge(batch)
    return batch_id


async def finalize_batch(
    session: AsyncSession,
    batch_id: uuid.UUID,
    *,
    status: ImportBatchStatus,
    result: ImportResult,
    site_id: uuid.UUID | None = None,
) -> None:
    """Write terminal status, counters and errors onto the batch row."""
    if not status.is_terminal:
        raise ValueError("A batch can only be finalized into a terminal status")
    values = {
        "status": status,
        "completed_at": datetime.now(UTC),
        "bookings_found": result.bookings_found,
        "bookings_imported": result.bookings_imported,
        "bookings_skipped": result.bookings_skipped,
        "bookings_failed": result.bookings_failed,
        "customers_created": result.customers_created,
        "vehicles_created": result.vehicles_created,
        "health_checks_created": result.health_checks_created,
        "errors": [entry.model_dump() for entry in result.errors],
    }
    if site_id is not None:
        values["site_id"] = site_id
    await session.execute(
        update(ImportBatch)
        .where(
            ImportBatch.id == batch_id,
            ImportBatch.status == ImportBatchStatus.RUNNING,
        )
        .values(**values)
    )
    await session.commit()


async def record_last_import(
    session: AsyncSession,
    organization_id: uuid.UUID,
    *,
    status: ImportBatchStatus,
    error: str | None,
    now: datetime | None = None,
) -> None:
    """Update the organization's last-import bookkeeping on its settings row."""
    now = now or datetime.now(UTC)
    values: dict[str, object] = {
        "last_import_at": now,
        "last_import_status": status.value,
        "last_error": error,
    }
    if status is not ImportBatchStatus.FAILED:
        values["last_sync_at"] = now
    await session.execute(
        update(OrganizationDmsSettings)
        .where(OrganizationDmsSettings.organization_id == organization_id)
        .values(**values)
    )


def _period_start(day: date) -> date:
    return day.replace(day=1)


async def increment_usage(
    session: AsyncSession,
    organization_id: uuid.UUID,
    *,
    bookings_imported: int,
    today: date | None = None,
) -> bool:
    """Bump the monthly usage counters. Failures are logged and swallowed."""
    period_start = _period_start(today or datetime.now(UTC).date())

    async def _write() -> None:
        usage_id = (
            await session.execute(
                select(OrganizationUsage.id).where(
                    OrganizationUsage.organization_id == organization_id,
                    OrganizationUsage.period_start == period_start,
                )
            )
        ).scalar_one_or_none()
        if usage_id is None:
            session.add(
                OrganizationUsage(
                    organization_id=organization_id,
                    period_start=period_start,
                    dms_imports=1,
                    dms_bookings_imported=bookings_imported,
                )
            )
            await session.flush()
            return
        await session.execute(
            update(OrganizationUsage)
            .where(OrganizationUsage.id == usage_id)
            .values(
                dms_imports=OrganizationUsage.dms_imports + 1,
                dms_bookings_imported=OrganizationUsage.dms_bookings_imported
                + bookings_imported,
            )
        )

    return await best_effort(
        session,
        "usage increment",
        _write,
        organization_id=str(organization_id),
    )


def display_triggered_by(batch: ImportBatch) -> str | None:
    if batch.triggered_by:
        return batch.triggered_by
    if batch.import_type is ImportType.SCHEDULED:
        return SYSTEM_TRIGGER
    return None


def summarize_batch(batch: ImportBatch) -> ImportBatchSummary:
    summary = ImportBatchSummary.model_validate(batch)
    summary.error_count = len(batch.errors or [])
    summary.triggered_by = display_triggered_by(batch)
    return summary


def read_batch(batch: ImportBatch) -> ImportBatchRead:
    return ImportBatchRead(
        **summarize_batch(batch).model_dump(),
        errors=list(batch.errors or []),
    )


async def get_latest_batch(
    session: AsyncSession, organization_id: uuid.UUID
) -> ImportBatch | None:
    stmt = (
        select(ImportBatch)
        .where(ImportBatch.organization_id == organization_id)
        .order_by(ImportBatch.started_at.desc(), ImportBatch.created_at.desc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def list_batches(
    session: AsyncSession,
    organization_id: uuid.UUID,
    *,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[ImportBatch], Pagination]:
    """Return one page of batches, newest first, with pagination metadata."""
    total = (
        await session.execute(
            select(func.count())
            .select_from(ImportBatch)
            .where(ImportBatch.organization_id == organization_id)
        )
    ).scalar_one()
    stmt = (
        select(ImportBatch)
        .where(ImportBatch.organization_id == organization_id)
        .order_by(ImportBatch.started_at.desc(), ImportBatch.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    batches = (await session.execute(stmt)).scalars().all()
    return batches, paginate(page=page, limit=limit, total=total)


def paginate(*, page: int, limit: int, total: int) -> Pagination:
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=(total + limit - 1) // limit,
    )


async def get_batch(
    session: AsyncSession, organization_id: uuid.UUID, batch_id: uuid.UUID
) -> ImportBatch | None:
    stmt = select(ImportBatch).where(
        ImportBatch.id == batch_id,
        ImportBatch.organization_id == organization_id,
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def list_batch_inspections(
    session: AsyncSession, batch_id: uuid.UUID
) -> list[ImportedInspection]:
    """Inspections created by one batch, with a short vehicle/customer label."""
    stmt = (
        select(
            Inspection.id,
            Inspection.status,
            Inspection.created_at,
            Vehicle.registration,
            Customer.first_name,
            Customer.last_name,
        )
        .outerjoin(Vehicle, Vehicle.id == Inspection.vehicle_id)
        .outerjoin(Customer, Customer.id == Inspection.customer_id)
        .where(Inspection.import_batch_id == batch_id)
        .order_by(Inspection.created_at.asc())
    )
    rows = (await session.execute(stmt)).all()
    items: list[ImportedInspection] = []
    for row in rows:
        name = " ".join(part for part in (row.first_name, row.last_name) if part)
        items.append(
            ImportedInspection(
                id=row.id,
                status=row.status,
                created_at=row.created_at,
                vehicle=row.registration,
                customer=name or None,
            )
        )
    return items


@dataclass(slots=True, frozen=True)
class DailyLimitStatus:
    limit: int
    imported_today: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.imported_today, 0)

    @property
    def reached(self) -> bool:
        return self.imported_today >= self.limit


async def check_daily_limit(
    session: AsyncSession,
    organization_id: uuid.UUID,
    day: date | None = None,
) -> DailyLimitStatus:
    """Count DMS-sourced inspections created on ``day`` against the daily limit."""
    settings = get_settings()
    day = day or datetime.now(UTC).date()
    configured = (
        await session.execute(
            select(OrganizationDmsSettings.daily_import_limit).where(
                OrganizationDmsSettings.organization_id == organization_id
            )
        )
    ).scalar_one_or_none()
    limit = configured or settings.dms_default_daily_import_limit

    start = datetime.combine(day, time.min, tzinfo=UTC)
    end = start + timedelta(days=1)
    imported_today = (
        await session.execute(
            select(func.count())
            .select_from(Inspection)
            .where(
                Inspection.organization_id == organization_id,
                Inspection.external_source == settings.dms_external_source,
                Inspection.deleted_at.is_(None),
                Inspection.created_at >= start,
                Inspection.created_at < end,
            )
        )
    ).scalar_one()
    return DailyLimitStatus(limit=limit, imported_today=imported_today)


__all__ = [
    "DailyLimitStatus",
    "SYSTEM_TRIGGER",
    "check_daily_limit",
    "create_batch",
    "display_triggered_by",
    "finalize_batch",
    "get_batch",
    "get_latest_batch",
    "increment_usage",
    "list_batch_inspections",
    "list_batches",
    "paginate",
    "read_batch",
    "record_last_import",
    "summarize_batch",
]
