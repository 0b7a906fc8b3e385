"""Vehicle model."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.customer import Customer


class Vehicle(TimestampMixin, Base):
    """A vehicle, stored with a normalized (spaceless, uppercase) registration."""

    __tablename__ = "vehicles"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "registration", name="uq_vehicles_org_registration"
        ),
        Index(
            "ux_vehicles_org_external",
            "organization_id",
            "external_source",
            "external_id",
            unique=True,
            postgresql_where=sa.text("external_id IS NOT NULL"),
            sqlite_where=sa.text("external_id IS NOT NULL"),
        ),
        Index("ix_vehicles_org_vin", "organization_id", "vin"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL")
    )
    registration: Mapped[str] = mapped_column(String(32), nullable=False)
    vin: Mapped[str | None] = mapped_column(String(64))
    make: Mapped[str | None] = mapped_column(String(120))
    model: Mapped[str | None] = mapped_column(String(120))
    year: Mapped[int | None] = mapped_column(Integer)
    color: Mapped[str | None] = mapped_column(String(64))
    fuel_type: Mapped[str | None] = mapped_column(String(64))
    mileage: Mapped[int | None] = mapped_column(Integer)
    external_id: Mapped[str | None] = mapped_column(String(255))
    external_source: Mapped[str | None] = mapped_column(String(50))

    customer: Mapped["Customer | None"] = relationship(
        "Customer", back_populates="vehicles"
    )
