"""Inspection (vehicle health check) model."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.customer import Customer
    from app.models.vehicle import Vehicle


class InspectionStatus(str, enum.Enum):
    """Operational states of an inspection.

    Records reconciled from the DMS always start in ``AWAITING_ARRIVAL``; the
    remaining states are driven by the workshop floor.
    """

    AWAITING_ARRIVAL = "awaiting_arrival"
    AWAITING_CHECKIN = "awaiting_checkin"
    CREATED = "created"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Inspection(TimestampMixin, Base):
    """A health check work order created for a vehicle visit."""

    __tablename__ = "inspections"
    __table_args__ = (
        Index(
            "ux_inspections_org_external",
            "organization_id",
            "external_source",
            "external_id",
            unique=True,
            postgresql_where=sa.text("external_id IS NOT NULL"),
            sqlite_where=sa.text("external_id IS NOT NULL"),
        ),
        Index("ix_inspections_import_batch", "import_batch_id"),
        Index("ix_inspections_org_status", "organization_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    site_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("sites.id", ondelete="SET NULL")
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("check_templates.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[InspectionStatus] = mapped_column(
        Enum(InspectionStatus), nullable=False, default=InspectionStatus.CREATED
    )
    mileage_in: Mapped[int | None] = mapped_column(Integer)
    promise_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    booked_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)
    customer_waiting: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    loan_car_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_internal: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    jobsheet_number: Mapped[str | None] = mapped_column(String(64))
    jobsheet_status: Mapped[str | None] = mapped_column(String(64))
    booked_repairs: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    external_id: Mapped[str | None] = mapped_column(String(255))
    external_source: Mapped[str | None] = mapped_column(String(50))
    import_batch_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("dms_import_batches.id", ondelete="SET NULL")
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    customer: Mapped["Customer"] = relationship("Customer")
    vehicle: Mapped["Vehicle"] = relationship("Vehicle")
