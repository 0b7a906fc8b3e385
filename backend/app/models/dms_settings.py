"""Per-organization dealer management system (DMS) integration settings."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.organization import Organization


DEFAULT_SCHEDULE_HOURS = [6, 10, 14, 20]
# 0 = Sunday
DEFAULT_SCHEDULE_DAYS = [1, 2, 3, 4, 5, 6]


class OrganizationDmsSettings(TimestampMixin, Base):
    """Credentials, defaults and last-import bookkeeping for one organization."""

    __tablename__ = "organization_dms_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    provider: Mapped[str] = mapped_column(
        String(50), nullable=False, default="gemini_osi"
    )
    api_url: Mapped[str | None] = mapped_column(String(512))
    username_encrypted: Mapped[str | None] = mapped_column(String(1024))
    password_encrypted: Mapped[str | None] = mapped_column(String(1024))

    default_template_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("check_templates.id", ondelete="SET NULL")
    )
    auto_import_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    import_schedule_hours: Mapped[list[int]] = mapped_column(
        JSON, nullable=False, default=lambda: list(DEFAULT_SCHEDULE_HOURS)
    )
    import_schedule_days: Mapped[list[int]] = mapped_column(
        JSON, nullable=False, default=lambda: list(DEFAULT_SCHEDULE_DAYS)
    )
    daily_import_limit: Mapped[int | None] = mapped_column(Integer, default=100)

    last_import_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_import_status: Mapped[str | None] = mapped_column(String(50))
    last_error: Mapped[str | None] = mapped_column(Text)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="dms_settings"
    )
