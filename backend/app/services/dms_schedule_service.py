"""Decide which organizations are due for a scheduled DMS import, and run them."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.integrations.dms import DiaryFetcher
from app.models import ImportType, OrganizationDmsSettings
from app.schemas.dms_import import ImportOptions, ImportResult
from app.services.dms_credential_service import SettingsCredentialProvider
from app.services.dms_import_service import DmsImporter
from app.services.import_batch_service import check_daily_limit

logger = logging.getLogger(__name__)


def schedule_weekday(moment: datetime) -> int:
    """Weekday number with 0 = Sunday."""
    return (moment.weekday() + 1) % 7


def is_due(settings_row: OrganizationDmsSettings, local_now: datetime) -> bool:
    days = settings_row.import_schedule_days or []
    hours = settings_row.import_schedule_hours or []
    return schedule_weekday(local_now) in days and local_now.hour in hours


def _local_now(now: datetime | None) -> datetime:
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(ZoneInfo(get_settings().dms_timezone))


async def due_scheduled_imports(
    session: AsyncSession, now: datetime | None = None
) -> list[OrganizationDmsSettings]:
    """Return settings rows whose schedule matches ``now`` in the DMS timezone."""
    local_now = _local_now(now)

    stmt = (
        select(OrganizationDmsSettings)
        .where(
            OrganizationDmsSettings.enabled.is_(True),
            OrganizationDmsSettings.auto_import_enabled.is_(True),
        )
        .order_by(OrganizationDmsSettings.created_at.asc())
    )
    candidates = (await session.execute(stmt)).scalars().all()
    due = [row for row in candidates if is_due(row, local_now)]
    logger.debug(
        "Scheduled import check at %s: %s of %s organizations due",
        local_now.isoformat(),
        len(due),
        len(candidates),
    )
    return due


async def run_due_imports(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    diary_fetcher: DiaryFetcher,
    now: datetime | None = None,
) -> dict[uuid.UUID, ImportResult]:
    """Run a scheduled import for every organization due at ``now``.

    Each organization gets its own session. Organizations that already hit
    their daily limit are skipped and left out of the returned mapping.
    """
    local_now = _local_now(now)
    async with session_factory() as session:
        due = [row.organization_id for row in await due_scheduled_imports(session, now)]

    results: dict[uuid.UUID, ImportResult] = {}
    for organization_id in due:
        async with session_factory() as session:
            usage = await check_daily_limit(
                session, organization_id, local_now.astimezone(UTC).date()
            )
            if usage.reached:
                logger.info(
                    "Skipping scheduled import for %s: daily limit %s reached",
                    organization_id,
                    usage.limit,
                )
                continue
            importer = DmsImporter(
                session,
                credential_provider=SettingsCredentialProvider(session),
                diary_fetcher=diary_fetcher,
            )
            result = await importer.run(
                ImportOptions(
                    organization_id=organization_id,
                    target_date=local_now.date(),
                    import_type=ImportType.SCHEDULED,
                )
            )
        logger.info(
            "Scheduled import for %s finished: imported=%s skipped=%s failed=%s",
            organization_id,
            result.bookings_imported,
            result.bookings_skipped,
            result.bookings_failed,
        )
        results[organization_id] = result
    return results


__all__ = [
    "due_scheduled_imports",
    "is_due",
    "run_due_imports",
    "schedule_weekday",
]
