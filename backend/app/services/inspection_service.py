"""Create inspections (health checks) from DMS bookings."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import get_settings
from app.integrations.dms import Booking
from app.models import Inspection, InspectionStatus
from app.schemas.dms_import import UnactionedInspection
from app.services.dms_errors import DuplicateBookingError, StorageError
from app.services.dms_fields import clean, safe_int

logger = logging.getLogger(__name__)

DMS_INITIAL_STATUS = InspectionStatus.AWAITING_ARRIVAL


def _to_utc(value: datetime, zone: tzinfo) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=zone)
    return value.astimezone(UTC)


def parse_promise_time(booking: Booking, zone: tzinfo) -> datetime | None:
    """Combine booking date and time; ``None`` when absent or unparseable."""
    booking_date = clean(booking.booking_date)
    booking_time = clean(booking.booking_time)
    if not booking_date or not booking_time:
        return None
    try:
        return _to_utc(datetime.fromisoformat(f"{booking_date}T{booking_time}"), zone)
    except ValueError:
        logger.warning(
            "Failed to parse promise time booking=%s date=%r time=%r",
            booking.booking_id,
            booking_date,
            booking_time,
        )
        return None


def parse_due_date(booking: Booking, zone: tzinfo) -> datetime | None:
    raw = clean(booking.due_date_time)
    if not raw:
        return None
    try:
        return _to_utc(datetime.fromisoformat(raw), zone)
    except ValueError:
        logger.warning(
            "Failed to parse due date booking=%s value=%r", booking.booking_id, raw
        )
        return None


async def inspection_exists(
    session: AsyncSession,
    *,
    organization_id: uuid.UUID,
    external_source: str,
    external_id: str,
) -> bool:
    """Return True when an inspection was already created for this booking."""
    stmt = (
        select(Inspection.id)
        .where(
            Inspection.organization_id == organization_id,
            Inspection.external_source == external_source,
            Inspection.external_id == external_id,
        )
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none() is not None


async def create_inspection(
    session: AsyncSession,
    *,
    organization_id: uuid.UUID,
    site_id: uuid.UUID | None,
    customer_id: uuid.UUID,
    vehicle_id: uuid.UUID,
    booking: Booking,
    template_id: uuid.UUID,
    import_batch_id: uuid.UUID,
    external_source: str,
    now: datetime | None = None,
) -> uuid.UUID:
    """Insert an inspection in the initial DMS state and return its id.

    Raises DuplicateBookingError when the unique external key rejects the row
    and StorageError for any other database failure.
    """
    zone = ZoneInfo(get_settings().dms_timezone)
    inspection = Inspection(
        organization_id=organization_id,
        site_id=site_id,
        customer_id=customer_id,
        vehicle_id=vehicle_id,
        template_id=template_id,
        status=DMS_INITIAL_STATUS,
        mileage_in=safe_int(booking.vehicle_mileage),
        promise_time=parse_promise_time(booking, zone),
        due_date=parse_due_date(booking, zone),
        booked_date=now or datetime.now(UTC),
        notes=clean(booking.description),
        customer_waiting=bool(booking.customer_waiting),
        loan_car_required=bool(booking.loan_car_required),
        is_internal=bool(booking.is_internal),
        jobsheet_number=clean(booking.jobsheet_number),
        jobsheet_status=clean(booking.jobsheet_status),
        booked_repairs=[repair.as_dict() for repair in booking.booked_repairs or []],
        external_id=clean(booking.booking_id),
        external_source=external_source,
        import_batch_id=import_batch_id,
    )
    session.add(inspection)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise DuplicateBookingError(
            f"Inspection already exists for booking {booking.booking_id}"
        ) from exc
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to create health check: {exc}") from exc
    return inspection.id


def _hours_since(moment: datetime, now: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return max(int((now - moment).total_seconds() // 3600), 0)


async def list_unactioned(
    session: AsyncSession,
    organization_id: uuid.UUID,
    *,
    site_id: uuid.UUID | None = None,
    page: int = 1,
    limit: int = 50,
    now: datetime | None = None,
) -> tuple[list[UnactionedInspection], int]:
    """Imported inspections still awaiting arrival, most urgent first.

    Returns the page of items and the total number of matching rows.
    """
    now = now or datetime.now(UTC)
    filters = [
        Inspection.organization_id == organization_id,
        Inspection.external_source == get_settings().dms_external_source,
        Inspection.status == DMS_INITIAL_STATUS,
        Inspection.deleted_at.is_(None),
        Inspection.external_id.is_not(None),
    ]
    if site_id is not None:
        filters.append(Inspection.site_id == site_id)

    total = (
        await session.execute(
            select(func.count()).select_from(Inspection).where(*filters)
        )
    ).scalar_one()
    stmt = (
        select(Inspection)
        .options(selectinload(Inspection.vehicle), selectinload(Inspection.customer))
        .where(*filters)
        .order_by(
            Inspection.customer_waiting.desc(),
            Inspection.due_date.asc().nulls_last(),
            Inspection.promise_time.asc().nulls_last(),
            Inspection.created_at.desc(),
        )
        .offset((page - 1) * limit)
        .limit(limit)
    )
    inspections = (await session.execute(stmt)).scalars().all()

    items = []
    for inspection in inspections:
        vehicle = inspection.vehicle
        customer = inspection.customer
        items.append(
            UnactionedInspection(
                id=inspection.id,
                status=inspection.status,
                external_id=inspection.external_id,
                external_source=inspection.external_source,
                registration=vehicle.registration if vehicle else "",
                make=(vehicle.make or "") if vehicle else "",
                model=(vehicle.model or "") if vehicle else "",
                customer_name=customer.full_name if customer else "",
                customer_mobile=customer.mobile if customer else None,
                customer_id=inspection.customer_id,
                vehicle_id=inspection.vehicle_id,
                promise_time=inspection.promise_time,
                due_date=inspection.due_date,
                imported_at=inspection.created_at,
                customer_waiting=inspection.customer_waiting,
                loan_car_required=inspection.loan_car_required,
                booked_repairs=list(inspection.booked_repairs or []),
                jobsheet_number=inspection.jobsheet_number,
                hours_since_import=_hours_since(inspection.created_at, now),
            )
        )
    return items, total


__all__ = [
    "DMS_INITIAL_STATUS",
    "create_inspection",
    "inspection_exists",
    "list_unactioned",
    "parse_due_date",
    "parse_promise_time",
]
