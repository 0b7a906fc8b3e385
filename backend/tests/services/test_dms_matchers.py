"""Customer and vehicle matching cascades."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, insert, select

from app.db.session import get_sessionmaker
from app.models import Customer, Organization, Vehicle
from app.services.best_effort import best_effort
from app.services.customer_matcher import find_or_create_customer
from app.services.dms_errors import BookingValidationError
from app.services.vehicle_matcher import find_or_create_vehicle

pytestmark = pytest.mark.asyncio

SOURCE = "gemini_osi"


async def test_email_match_is_case_insensitive_and_only_fills_gaps(
    seeded_org, db_url, make_booking
) -> None:
    org_id = seeded_org["organization_id"]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        existing = Customer(
            organization_id=org_id,
            first_name="Jo",
            email="jo.bloggs@example.com",
            town="Leeds",
        )
        session.add(existing)
        await session.commit()
        existing_id = existing.id

    booking = make_booking(
        "B1",
        customer_email="  Jo.Bloggs@Example.COM ",
        customer_town="York",
        customer_postcode="LS1 1AA",
        customer_title="Ms",
    )
    async with sessionmaker() as session:
        match = await find_or_create_customer(
            session, organization_id=org_id, booking=booking, external_source=SOURCE
        )
        await session.commit()

    assert match.customer_id == existing_id
    assert match.created is False
    async with sessionmaker() as session:
        customer = await session.get(Customer, existing_id)
        assert customer.external_id == "C-B1"
        assert customer.external_source == SOURCE
        assert customer.town == "Leeds"
        assert customer.postcode == "LS1 1AA"
        assert customer.title == "Ms"
        assert customer.first_name == "Jo"


async def test_email_match_prefers_the_oldest_customer(
    seeded_org, db_url, make_booking
) -> None:
    org_id = seeded_org["organization_id"]
    now = datetime.now(UTC)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        newer = Customer(
            organization_id=org_id, email="dup@example.com", created_at=now
        )
        older = Customer(
            organization_id=org_id,
            email="dup@example.com",
            created_at=now - timedelta(days=30),
        )
        session.add_all([newer, older])
        await session.commit()
        older_id = older.id

    async with sessionmaker() as session:
        match = await find_or_create_customer(
            session,
            organization_id=org_id,
            booking=make_booking("B1", customer_email="dup@example.com"),
            external_source=SOURCE,
        )
    assert match.customer_id == older_id


async def test_mobile_match_ignores_whitespace(seeded_org, db_url, make_booking) -> None:
    org_id = seeded_org["organization_id"]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        existing = Customer(organization_id=org_id, mobile="07700900555")
        session.add(existing)
        await session.commit()
        existing_id = existing.id

    booking = make_booking("B1", customer_email=None, customer_mobile="07700 900 555")
    async with sessionmaker() as session:
        match = await find_or_create_customer(
            session, organization_id=org_id, booking=booking, external_source=SOURCE
        )
    assert match.customer_id == existing_id
    assert match.created is False


async def test_new_customer_is_normalized(seeded_org, db_url, make_booking) -> None:
    org_id = seeded_org["organization_id"]
    booking = make_booking(
        "B1",
        customer_email="New.Person@Example.com",
        customer_mobile=None,
        customer_phone="01632 960 000",
        customer_address_line2=None,
    )
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        match = await find_or_create_customer(
            session, organization_id=org_id, booking=booking, external_source=SOURCE
        )
        await session.commit()

    assert match.created is True
    async with sessionmaker() as session:
        customer = await session.get(Customer, match.customer_id)
        assert customer.email == "new.person@example.com"
        assert customer.mobile == "01632960000"
        assert customer.address_line2 is None
        assert customer.external_id == "C-B1"


async def test_customer_without_external_id_is_created_unlinked(
    seeded_org, db_url, make_booking
) -> None:
    org_id = seeded_org["organization_id"]
    booking = make_booking("B1", customer_id="")
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        match = await find_or_create_customer(
            session, organization_id=org_id, booking=booking, external_source=SOURCE
        )
        customer = await session.get(Customer, match.customer_id)
        assert customer.external_id is None
        assert customer.external_source is None


async def test_vehicle_requires_registration(seeded_org, db_url, make_booking) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        customer = Customer(organization_id=seeded_org["organization_id"])
        session.add(customer)
        await session.flush()
        with pytest.raises(BookingValidationError, match="registration is required"):
            await find_or_create_vehicle(
                session,
                organization_id=seeded_org["organization_id"],
                customer_id=customer.id,
                booking=make_booking("B1", vehicle_reg="   "),
                external_source=SOURCE,
            )


async def test_external_vehicle_match_is_returned_unchanged(
    seeded_org, db_url, make_booking
) -> None:
    org_id = seeded_org["organization_id"]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        customer = Customer(organization_id=org_id)
        session.add(customer)
        await session.flush()
        vehicle = Vehicle(
            organization_id=org_id,
            registration="OLD123",
            external_id="V-B1",
            external_source=SOURCE,
        )
        session.add(vehicle)
        await session.commit()
        vehicle_id, customer_id = vehicle.id, customer.id

    async with sessionmaker() as session:
        match = await find_or_create_vehicle(
            session,
            organization_id=org_id,
            customer_id=customer_id,
            booking=make_booking("B1", vehicle_reg="NEW 456", vehicle_make="Audi"),
            external_source=SOURCE,
        )
        await session.commit()

    assert match.vehicle_id == vehicle_id
    assert match.created is False
    async with sessionmaker() as session:
        stored = await session.get(Vehicle, vehicle_id)
        assert stored.registration == "OLD123"
        assert stored.make is None
        assert stored.customer_id is None


async def test_registration_match_fills_gaps_without_overwriting(
    seeded_org, db_url, make_booking
) -> None:
    org_id = seeded_org["organization_id"]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        customer = Customer(organization_id=org_id)
        session.add(customer)
        await session.flush()
        vehicle = Vehicle(organization_id=org_id, registration="AB12CDE", make="Vauxhall")
        session.add(vehicle)
        await session.commit()
        vehicle_id, customer_id = vehicle.id, customer.id

    booking = make_booking(
        "B1",
        vehicle_reg="ab12 cde",
        vehicle_make="Ford",
        vehicle_vin="wf0xxxgcdx1234567",
        vehicle_color="Blue",
    )
    async with sessionmaker() as session:
        match = await find_or_create_vehicle(
            session,
            organization_id=org_id,
            customer_id=customer_id,
            booking=booking,
            external_source=SOURCE,
        )
        await session.commit()

    assert match.vehicle_id == vehicle_id
    async with sessionmaker() as session:
        stored = await session.get(Vehicle, vehicle_id)
        assert stored.make == "Vauxhall"
        assert stored.vin == "WF0XXXGCDX1234567"
        assert stored.color == "Blue"
        assert stored.mileage == 42000
        assert stored.customer_id == customer_id
        assert stored.external_id == "V-B1"


async def test_vin_match_reregisters_vehicle(seeded_org, db_url, make_booking) -> None:
    org_id = seeded_org["organization_id"]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        customer = Customer(organization_id=org_id)
        session.add(customer)
        await session.flush()
        vehicle = Vehicle(
            organization_id=org_id, registration="PRIV8", vin="WF0XXXGCDX7654321"
        )
        session.add(vehicle)
        await session.commit()
        vehicle_id, customer_id = vehicle.id, customer.id

    booking = make_booking("B1", vehicle_reg="GH34 IJK", vehicle_vin="wf0xxxgcdx7654321")
    async with sessionmaker() as session:
        match = await find_or_create_vehicle(
            session,
            organization_id=org_id,
            customer_id=customer_id,
            booking=booking,
            external_source=SOURCE,
        )
        await session.commit()

    assert match.vehicle_id == vehicle_id
    assert match.created is False
    async with sessionmaker() as session:
        stored = await session.get(Vehicle, vehicle_id)
        assert stored.registration == "GH34IJK"
        assert stored.customer_id == customer_id
        assert stored.external_id == "V-B1"
        total = (await session.execute(select(func.count()).select_from(Vehicle))).scalar_one()
        assert total == 1


async def test_new_vehicle_is_normalized(seeded_org, db_url, make_booking) -> None:
    org_id = seeded_org["organization_id"]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        customer = Customer(organization_id=org_id)
        session.add(customer)
        await session.flush()
        match = await find_or_create_vehicle(
            session,
            organization_id=org_id,
            customer_id=customer.id,
            booking=make_booking(
                "B1",
                vehicle_reg=" mn56 opq",
                vehicle_vin="sajaa01",
                vehicle_mileage="51,000",
            ),
            external_source=SOURCE,
        )
        vehicle = await session.get(Vehicle, match.vehicle_id)

    assert match.created is True
    assert vehicle.registration == "MN56OPQ"
    assert vehicle.vin == "SAJAA01"
    assert vehicle.year is None
    assert vehicle.mileage is None
    assert vehicle.external_source == SOURCE


async def test_failed_backfill_write_keeps_the_outer_unit_of_work(
    seeded_org, db_url, caplog
) -> None:
    org_id = seeded_org["organization_id"]
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        slug = (await session.get(Organization, org_id)).slug
        session.add(Customer(organization_id=org_id, first_name="Kept"))
        await session.flush()

        async def _conflicting_write() -> None:
            await session.execute(
                insert(Organization).values(id=uuid4(), name="Clash", slug=slug)
            )

        with caplog.at_level(logging.WARNING, logger="app.services.best_effort"):
            applied = await best_effort(
                session, "customer backfill", _conflicting_write, booking_id="B1"
            )
        await session.commit()

    assert applied is False
    assert "customer backfill" in caplog.text
    async with sessionmaker() as session:
        kept = await session.execute(
            select(func.count()).select_from(Customer).where(Customer.first_name == "Kept")
        )
        assert kept.scalar_one() == 1
