"""Resolve a booking's vehicle to an internal Vehicle, creating one if needed."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.integrations.dms import Booking
from app.models import Vehicle
from app.services.best_effort import best_effort
from app.services.dms_errors import BookingValidationError, StorageError
from app.services.dms_fields import (
    clean,
    normalize_registration,
    normalize_vin,
    safe_int,
)

logger = logging.getLogger(__name__)

_GAP_FIELDS = ("vin", "make", "model", "color", "fuel_type", "mileage")


@dataclass(slots=True, frozen=True)
class VehicleMatch:
    vehicle_id: uuid.UUID
    created: bool


def _incoming_details(booking: Booking) -> dict[str, Any]:
    return {
        "vin": normalize_vin(booking.vehicle_vin),
        "make": clean(booking.vehicle_make),
        "model": clean(booking.vehicle_model),
        "color": clean(booking.vehicle_color),
        "fuel_type": clean(booking.vehicle_fuel_type),
        "mileage": safe_int(booking.vehicle_mileage),
    }


async def _apply(
    session: AsyncSession,
    vehicle_id: uuid.UUID,
    changes: dict[str, Any],
    *,
    description: str,
    booking_id: str,
) -> None:
    async def _write() -> None:
        await session.execute(
            update(Vehicle).where(Vehicle.id == vehicle_id).values(**changes)
        )

    await best_effort(
        session,
        description,
        _write,
        vehicle_id=str(vehicle_id),
        booking_id=booking_id,
    )


async def find_or_create_vehicle(
    session: AsyncSession,
    *,
    organization_id: uuid.UUID,
    customer_id: uuid.UUID,
    booking: Booking,
    external_source: str,
) -> VehicleMatch:
    """Match on external id, then registration, then VIN; otherwise create.

    Raises BookingValidationError when the booking has no registration.
    """
    registration = normalize_registration(booking.vehicle_reg)
    if not registration:
        raise BookingValidationError("Vehicle registration is required")

    external_id = clean(booking.vehicle_id)
    if external_id:
        existing_id = (
            await session.execute(
                select(Vehicle.id)
                .where(
                    Vehicle.organization_id == organization_id,
                    Vehicle.external_source == external_source,
                    Vehicle.external_id == external_id,
                )
                .limit(1)
            )
        ).scalar_one_or_none()
        if existing_id is not None:
            return VehicleMatch(existing_id, created=False)

    details = _incoming_details(booking)
    external_link: dict[str, Any] = {}
    if external_id:
        external_link = {"external_id": external_id, "external_source": external_source}

    by_registration = (
        await session.execute(
            select(Vehicle).where(
                Vehicle.organization_id == organization_id,
                Vehicle.registration == registration,
            )
        )
    ).scalar_one_or_none()
    if by_registration is not None:
        matched_id = by_registration.id
        changes: dict[str, Any] = {**external_link, "customer_id": customer_id}
        for column in _GAP_FIELDS:
            if details[column] is not None and getattr(by_registration, column) is None:
                changes[column] = details[column]
        logger.debug("Matched vehicle %s by registration %s", matched_id, registration)
        await _apply(
            session,
            matched_id,
            changes,
            description="vehicle backfill",
            booking_id=booking.booking_id,
        )
        return VehicleMatch(matched_id, created=False)

    vin = details["vin"]
    if vin:
        by_vin = (
            await session.execute(
                select(Vehicle.id)
                .where(
                    Vehicle.organization_id == organization_id,
                    func.upper(Vehicle.vin) == vin,
                )
                .order_by(Vehicle.created_at)
                .limit(1)
            )
        ).scalar_one_or_none()
        if by_vin is not None:
            logger.debug("Matched vehicle %s by VIN", by_vin)
            await _apply(
                session,
                by_vin,
                {
                    **external_link,
                    "customer_id": customer_id,
                    "registration": registration,
                },
                description="vehicle re-registration",
                booking_id=booking.booking_id,
            )
            return VehicleMatch(by_vin, created=False)

    vehicle = Vehicle(
        organization_id=organization_id,
        customer_id=customer_id,
        registration=registration,
        year=None,
        external_id=external_id,
        external_source=external_source if external_id else None,
        **details,
    )
    session.add(vehicle)
    try:
        await session.flush()
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to create vehicle: {exc}") from exc
    logger.debug("Created vehicle %s (%s)", vehicle.id, registration)
    return VehicleMatch(vehicle.id, created=True)


__all__ = ["VehicleMatch", "find_or_create_vehicle"]
