"""Organization (tenant) and site models."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, String, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin


if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.dms_settings import OrganizationDmsSettings


class Organization(TimestampMixin, Base):
    """A tenant organization (a dealer group or independent service centre)."""

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    sites: Mapped[list["Site"]] = relationship(
        "Site", back_populates="organization", cascade="all, delete-orphan"
    )
    dms_settings: Mapped["OrganizationDmsSettings | None"] = relationship(
        "OrganizationDmsSettings",
        back_populates="organization",
        cascade="all, delete-orphan",
        uselist=False,
    )


class Site(TimestampMixin, Base):
    """A physical workshop belonging to an organization."""

    __tablename__ = "sites"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="sites"
    )
