"""Encryption helpers for DMS credentials stored at rest."""

from __future__ import annotations

import base64
import os
from functools import lru_cache
from typing import Callable, Optional

from app.core.config import get_settings
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

_KEY_ENV_VAR = "APP_ENCRYPTION_KEY"
_PREFIX = "enc:"
_NONCE_LEN = 12
_SALT = b"vhc-dms-credentials-hkdf"


class CredentialDecryptionError(RuntimeError):
    """Raised when a stored credential cannot be decrypted."""


def _load_key() -> bytes:
    raw = os.getenv(_KEY_ENV_VAR)
    if not raw:
        settings = get_settings()
        raw = settings.app_encryption_key
    if not raw:
        raise RuntimeError(f"{_KEY_ENV_VAR} must be configured")
    raw_bytes = raw.encode("utf-8") if isinstance(raw, str) else raw
    decoded: bytes | None = None
    decoders: tuple[Callable[[bytes], bytes], ...] = (
        base64.urlsafe_b64decode,
        base64.b64decode,
    )
    for decoder in decoders:
        try:
            decoded = decoder(raw_bytes)
        except ValueError:  # pragma: no cover - try next decoding strategy
            continue
        if decoded:
            break
    if not decoded:
        raise RuntimeError(f"{_KEY_ENV_VAR} is not valid base64 data")
    if len(decoded) < 32:
        raise RuntimeError(f"{_KEY_ENV_VAR} must decode to at least 32 bytes")
    return decoded


class _CredentialCipher:
    """AES-GCM cipher with a random nonce per value."""

    def __init__(self, master_key: bytes) -> None:
        hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=_SALT, info=b"dms")
        self._aesgcm = AESGCM(hkdf.derive(master_key))

    def encrypt(self, plain: str) -> str:
        nonce = os.urandom(_NONCE_LEN)
        cipher = self._aesgcm.encrypt(nonce, plain.encode("utf-8"), None)
        return _PREFIX + base64.urlsafe_b64encode(nonce + cipher).decode("utf-8")

    def decrypt(self, token: str) -> str:
        if not token.startswith(_PREFIX):
            raise CredentialDecryptionError("Value is not an encrypted token")
        try:
            blob = base64.urlsafe_b64decode(token[len(_PREFIX) :].encode("utf-8"))
        except ValueError as exc:
            raise CredentialDecryptionError("Encrypted token is not base64") from exc
        if len(blob) <= _NONCE_LEN:
            raise CredentialDecryptionError("Encrypted token is truncated")
        nonce, cipher = blob[:_NONCE_LEN], blob[_NONCE_LEN:]
        try:
            data = self._aesgcm.decrypt(nonce, cipher, None)
        except InvalidTag as exc:
            raise CredentialDecryptionError("Encrypted token failed authentication") from exc
        return data.decode("utf-8")


@lru_cache
def _cipher() -> _CredentialCipher:
    return _CredentialCipher(_load_key())


def encrypt_str(value: Optional[str]) -> Optional[str]:
    """Encrypt a string if present."""
    if value is None or value == "":
        return value
    if value.startswith(_PREFIX):
        return value
    return _cipher().encrypt(value)


def decrypt_str(value: Optional[str]) -> Optional[str]:
    """Decrypt a stored token, raising CredentialDecryptionError when it is invalid."""
    if value is None or value == "":
        return value
    return _cipher().decrypt(value)
