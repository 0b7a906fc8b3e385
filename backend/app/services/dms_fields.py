"""Normalization helpers for raw DMS booking fields."""

from __future__ import annotations

import re
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")


def clean(value: Any) -> str | None:
    """Return a stripped string, or ``None`` for blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def safe_int(value: Any) -> int | None:
    """Attempt to coerce a value to ``int`` returning ``None`` on failure."""

    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None


def normalize_email(email: str | None) -> str | None:
    email = clean(email)
    return email.lower() if email else None


def normalize_mobile(mobile: str | None) -> str | None:
    if not mobile:
        return None
    return _WHITESPACE_RE.sub("", mobile) or None


def normalize_registration(registration: str | None) -> str | None:
    """``" ab12 cde "`` -> ``"AB12CDE"``."""
    if not registration:
        return None
    return _WHITESPACE_RE.sub("", registration).upper() or None


def normalize_vin(vin: str | None) -> str | None:
    vin = clean(vin)
    return vin.upper() if vin else None


def is_terminal_booking_status(status: str | None) -> bool:
    """Cancelled and completed bookings are never imported."""
    return (status or "").strip().lower() in {"cancelled", "completed"}
