"""Audit record for one DMS import run."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import TimestampMixin, utcnow


class ImportType(str, enum.Enum):
    """How an import run was started."""

    MANUAL = "manual"
    SCHEDULED = "scheduled"
    TEST = "test"


class ImportBatchStatus(str, enum.Enum):
    """Batch lifecycle; every state except RUNNING is terminal."""

    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ImportBatchStatus.RUNNING


class ImportBatch(TimestampMixin, Base):
    """One execution of the booking reconciliation for an organization."""

    __tablename__ = "dms_import_batches"
    __table_args__ = (
        Index("ix_dms_import_batches_org_date", "organization_id", "import_date"),
        Index("ix_dms_import_batches_org_status", "organization_id", "status"),
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
    import_type: Mapped[ImportType] = mapped_column(
        Enum(ImportType), nullable=False, default=ImportType.MANUAL
    )
    import_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[ImportBatchStatus] = mapped_column(
        Enum(ImportBatchStatus), nullable=False, default=ImportBatchStatus.RUNNING
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    bookings_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bookings_imported: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bookings_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bookings_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    customers_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vehicles_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    health_checks_created: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    errors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    triggered_by: Mapped[str | None] = mapped_column(String(255))
