"""Dry-run an import: classify diary bookings without writing anything."""

from __future__ import annotations

import logging
import uuid
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.integrations.dms import Booking, CredentialProvider, DiaryFetcher
from app.schemas.dms_import import ImportPreview, ImportPreviewSummary, PreviewBooking
from app.services.dms_errors import ConfigurationError
from app.services.dms_fields import (
    clean,
    is_terminal_booking_status,
    normalize_registration,
)
from app.services.dms_import_service import fetch_diary
from app.services.import_batch_service import check_daily_limit
from app.services.inspection_service import inspection_exists

logger = logging.getLogger(__name__)

LIMIT_EXCEEDED_REASON = "Would exceed daily import limit"


def _customer_name(booking: Booking) -> str:
    parts = (clean(booking.customer_first_name), clean(booking.customer_last_name))
    return " ".join(part for part in parts if part)


async def _skip_reason(
    session: AsyncSession,
    organization_id: uuid.UUID,
    booking: Booking,
    external_source: str,
) -> str | None:
    booking_id = clean(booking.booking_id)
    if not booking_id:
        return "Missing booking id"
    if await inspection_exists(
        session,
        organization_id=organization_id,
        external_source=external_source,
        external_id=booking_id,
    ):
        return "Already imported"
    if not normalize_registration(booking.vehicle_reg):
        return "No vehicle registration"
    if is_terminal_booking_status(booking.status):
        return f"Status: {booking.status.strip()}"
    return None


async def preview_import(
    session: AsyncSession,
    organization_id: uuid.UUID,
    *,
    credential_provider: CredentialProvider,
    diary_fetcher: DiaryFetcher,
    target_date: date,
    end_date: date | None = None,
    settings: Settings | None = None,
) -> ImportPreview:
    """Fetch the diary and report which bookings an import would create.

    Bookings beyond the remaining daily capacity move to the skip list.
    Raises ``ConfigurationError`` when credentials are unusable and
    ``ExternalServiceError`` when the diary cannot be fetched.
    """
    settings = settings or get_settings()
    answer = await credential_provider.get_credentials(organization_id)
    if not answer.configured or answer.credentials is None:
        raise ConfigurationError(answer.error or "DMS integration not configured")

    usage = await check_daily_limit(session, organization_id, target_date)
    bookings = await fetch_diary(
        diary_fetcher,
        answer.credentials,
        target_date,
        end_date,
        timeout=settings.dms_fetch_timeout_seconds,
    )

    will_import: list[PreviewBooking] = []
    will_skip: list[PreviewBooking] = []
    for booking in bookings:
        entry = PreviewBooking(
            booking_id=clean(booking.booking_id) or "",
            vehicle_reg=normalize_registration(booking.vehicle_reg) or "N/A",
            customer_name=_customer_name(booking),
            booking_date=clean(booking.booking_date) or target_date.isoformat(),
        )
        reason = await _skip_reason(
            session, organization_id, booking, settings.dms_external_source
        )
        if reason is not None:
            entry.reason = reason
            will_skip.append(entry)
            continue
        entry.scheduled_time = clean(booking.booking_time)
        entry.service_type = clean(booking.service_type) or "Service"
        will_import.append(entry)

    remaining = usage.remaining
    exceeded = len(will_import) > remaining
    if exceeded:
        for entry in will_import[remaining:]:
            entry.reason = LIMIT_EXCEEDED_REASON
            will_skip.append(entry)
        will_import = will_import[:remaining]

    logger.info(
        "DMS import preview organization=%s date=%s import=%s skip=%s",
        organization_id,
        target_date.isoformat(),
        len(will_import),
        len(will_skip),
    )
    return ImportPreview(
        date=target_date,
        end_date=end_date,
        summary=ImportPreviewSummary(
            total_bookings=len(bookings),
            will_import=len(will_import),
            will_skip=len(will_skip),
            already_imported_today=usage.imported_today,
            daily_limit=usage.limit,
            remaining_capacity=remaining,
            limit_would_be_exceeded=exceeded,
        ),
        will_import=will_import,
        will_skip=will_skip,
        warnings=(
            [
                f"Import would be limited to {remaining} bookings due to daily "
                f"limit of {usage.limit}"
            ]
            if exceeded
            else []
        ),
    )


__all__ = ["LIMIT_EXCEEDED_REASON", "preview_import"]
