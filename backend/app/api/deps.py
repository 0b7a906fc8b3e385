"""Common API dependencies."""

from __future__ import annotations

import uuid
from typing import Annotated
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.security import Principal, decode_access_token
from app.db.session import get_session
from app.integrations.dms import CredentialProvider, DiaryFetcher
from app.services.dms_credential_service import SettingsCredentialProvider

settings = get_settings()

# Tokens are issued by the identity service; this API only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_prefix}/auth/token")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


async def get_current_principal(
    token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Authenticate request via bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        raise credentials_exception from exc

    subject = payload.get("sub")
    organization = payload.get("org")
    if not subject or not organization:
        raise credentials_exception

    try:
        organization_id = uuid.UUID(str(organization))
    except (ValueError, TypeError) as exc:
        raise credentials_exception from exc
    return Principal(user_id=str(subject), organization_id=organization_id)


def get_diary_fetcher(request: Request) -> DiaryFetcher:
    """Return the diary fetcher wired at startup."""
    fetcher = getattr(request.app.state, "diary_fetcher", None)
    if fetcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="DMS diary fetcher is not configured",
        )
    return fetcher


def get_credential_provider(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CredentialProvider:
    return SettingsCredentialProvider(session)
