"""Resolve a booking's customer to an internal Customer, creating one if needed."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.integrations.dms import Booking
from app.models import Customer
from app.services.best_effort import best_effort
from app.services.dms_errors import StorageError
from app.services.dms_fields import clean, normalize_email, normalize_mobile

logger = logging.getLogger(__name__)

# Booking attribute -> Customer column, filled only when the column is empty.
_BACKFILL_FIELDS = {
    "customer_title": "title",
    "customer_address_line1": "address_line1",
    "customer_address_line2": "address_line2",
    "customer_town": "town",
    "customer_county": "county",
    "customer_postcode": "postcode",
}


@dataclass(slots=True, frozen=True)
class CustomerMatch:
    customer_id: uuid.UUID
    created: bool


async def _backfill(
    session: AsyncSession,
    customer: Customer,
    booking: Booking,
    external_source: str,
) -> None:
    changes: dict[str, Any] = {
        "external_id": clean(booking.customer_id),
        "external_source": external_source,
    }
    for booking_attr, column in _BACKFILL_FIELDS.items():
        incoming = clean(getattr(booking, booking_attr))
        if incoming and not getattr(customer, column):
            changes[column] = incoming
    if changes["external_id"] is None:
        changes.pop("external_id")
        changes.pop("external_source")
    if not changes:
        return

    async def _write() -> None:
        await session.execute(
            update(Customer).where(Customer.id == customer.id).values(**changes)
        )

    await best_effort(
        session,
        "customer backfill",
        _write,
        customer_id=str(customer.id),
        booking_id=booking.booking_id,
    )


async def find_or_create_customer(
    session: AsyncSession,
    *,
    organization_id: uuid.UUID,
    booking: Booking,
    external_source: str,
) -> CustomerMatch:
    """Match on external id, then email, then mobile; otherwise create.

    Email and mobile hits adopt the booking's external id and fill empty
    title/address fields. Populated fields are never overwritten.
    """
    external_id = clean(booking.customer_id)
    if external_id:
        existing_id = (
            await session.execute(
                select(Customer.id)
                .where(
                    Customer.organization_id == organization_id,
                    Customer.external_source == external_source,
                    Customer.external_id == external_id,
                )
                .limit(1)
            )
        ).scalar_one_or_none()
        if existing_id is not None:
            return CustomerMatch(existing_id, created=False)

    email = normalize_email(booking.customer_email)
    if email:
        by_email = (
            await session.execute(
                select(Customer)
                .where(
                    Customer.organization_id == organization_id,
                    func.lower(Customer.email) == email,
                )
                .order_by(Customer.created_at)
                .limit(1)
            )
        ).scalar_one_or_none()
        if by_email is not None:
            matched_id = by_email.id
            logger.debug("Matched customer %s by email", matched_id)
            await _backfill(session, by_email, booking, external_source)
            return CustomerMatch(matched_id, created=False)

    mobile = normalize_mobile(booking.customer_mobile)
    if mobile:
        by_mobile = (
            await session.execute(
                select(Customer)
                .where(
                    Customer.organization_id == organization_id,
                    Customer.mobile == mobile,
                )
                .order_by(Customer.created_at)
                .limit(1)
            )
        ).scalar_one_or_none()
        if by_mobile is not None:
            matched_id = by_mobile.id
            logger.debug("Matched customer %s by mobile", matched_id)
            await _backfill(session, by_mobile, booking, external_source)
            return CustomerMatch(matched_id, created=False)

    customer = Customer(
        organization_id=organization_id,
        title=clean(booking.customer_title),
        first_name=clean(booking.customer_first_name),
        last_name=clean(booking.customer_last_name),
        email=email,
        mobile=mobile or normalize_mobile(booking.customer_phone),
        address_line1=clean(booking.customer_address_line1),
        address_line2=clean(booking.customer_address_line2),
        town=clean(booking.customer_town),
        county=clean(booking.customer_county),
        postcode=clean(booking.customer_postcode),
        external_id=external_id,
        external_source=external_source if external_id else None,
    )
    session.add(customer)
    try:
        await session.flush()
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to create customer: {exc}") from exc
    logger.debug("Created customer %s for booking %s", customer.id, booking.booking_id)
    return CustomerMatch(customer.id, created=True)


__all__ = ["CustomerMatch", "find_or_create_customer"]
