"""Monthly usage aggregates used for billing."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import TimestampMixin


class OrganizationUsage(TimestampMixin, Base):
    """Per-organization counters for one calendar month."""

    __tablename__ = "organization_usage"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "period_start", name="uq_organization_usage_period"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    dms_imports: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dms_bookings_imported: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
