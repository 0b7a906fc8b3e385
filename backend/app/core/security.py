"""Bearer token helpers for the authenticated principal."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
import uuid

from jose import jwt

from app.core.config import get_settings


@dataclass(frozen=True, slots=True)
class Principal:
    """The caller identity resolved from an access token."""

    user_id: str
    organization_id: uuid.UUID


def create_access_token(
    subject: str,
    organization_id: uuid.UUID,
    expires_delta: timedelta | None = None,
    **extra: Any,
) -> str:
    """Create a JWT access token scoped to one organization."""
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    expire = datetime.now(UTC) + expires_delta
    claims: dict[str, Any] = {
        "sub": subject,
        "org": str(organization_id),
        "exp": expire,
    }
    claims.update(extra)
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode a JWT token, raising JWTError on failure."""
    settings = get_settings()
    return jwt.decode(
        token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
    )
