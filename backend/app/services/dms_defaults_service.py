"""Default template and site resolution for DMS imports."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import CheckTemplate, OrganizationDmsSettings, Site

DefaultResolver = Callable[[AsyncSession, uuid.UUID], Awaitable[uuid.UUID | None]]


async def resolve_template_id(
    session: AsyncSession, organization_id: uuid.UUID
) -> uuid.UUID | None:
    """Return the configured default template, else the oldest active one."""
    configured = (
        await session.execute(
            select(OrganizationDmsSettings.default_template_id).where(
                OrganizationDmsSettings.organization_id == organization_id
            )
        )
    ).scalar_one_or_none()
    if configured is not None:
        return configured

    stmt = (
        select(CheckTemplate.id)
        .where(
            CheckTemplate.organization_id == organization_id,
            CheckTemplate.is_active.is_(True),
        )
        .order_by(CheckTemplate.created_at.asc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def resolve_site_id(
    session: AsyncSession, organization_id: uuid.UUID
) -> uuid.UUID | None:
    """Return the oldest active site for the organization."""
    stmt = (
        select(Site.id)
        .where(Site.organization_id == organization_id, Site.is_active.is_(True))
        .order_by(Site.created_at.asc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


__all__ = ["DefaultResolver", "resolve_site_id", "resolve_template_id"]
