"""Resolve DMS credentials from the organization's stored settings."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.integrations.dms import CredentialResult, DmsCredentials
from app.models import OrganizationDmsSettings
from app.security.encryption import CredentialDecryptionError, decrypt_str

logger = logging.getLogger(__name__)


class SettingsCredentialProvider:
    """CredentialProvider backed by ``organization_dms_settings``."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_credentials(self, organization_id: uuid.UUID) -> CredentialResult:
        settings = (
            await self._session.execute(
                select(OrganizationDmsSettings).where(
                    OrganizationDmsSettings.organization_id == organization_id
                )
            )
        ).scalar_one_or_none()
        if settings is None:
            return CredentialResult(
                configured=False,
                error="DMS settings not configured for this organization",
            )
        if not settings.enabled:
            return CredentialResult(
                configured=False,
                error="DMS integration is disabled for this organization",
            )
        if not (
            settings.api_url
            and settings.username_encrypted
            and settings.password_encrypted
        ):
            return CredentialResult(
                configured=False, error="DMS credentials are incomplete"
            )

        try:
            username = decrypt_str(settings.username_encrypted)
            password = decrypt_str(settings.password_encrypted)
        except CredentialDecryptionError:
            logger.exception(
                "Failed to decrypt DMS credentials organization=%s", organization_id
            )
            return CredentialResult(
                configured=False, error="Failed to decrypt DMS credentials"
            )

        return CredentialResult(
            configured=True,
            credentials=DmsCredentials(
                api_url=settings.api_url,
                username=username or "",
                password=password or "",
            ),
        )


async def is_dms_available(session: AsyncSession, organization_id: uuid.UUID) -> bool:
    result = await SettingsCredentialProvider(session).get_credentials(organization_id)
    return result.configured


__all__ = ["SettingsCredentialProvider", "is_dms_available"]
