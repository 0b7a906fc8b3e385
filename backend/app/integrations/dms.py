"""Dealer management system (DMS) collaborator contracts.

The reconciliation engine never talks to a DMS directly. It consumes two
collaborators:

* a credential provider that turns an organization id into decrypted
  credentials (or a "not configured" answer), and
* a diary fetcher that turns credentials plus a date range into bookings.

Concrete fetchers live outside this package and are wired in through the
``DMS_DIARY_FETCHER`` setting (``"package.module:factory"``).
"""

from __future__ import annotations

import importlib
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.core.config import Settings


@dataclass(slots=True)
class DmsCredentials:
    """Decrypted credentials for one organization's DMS account."""

    api_url: str
    username: str
    password: str

    def __repr__(self) -> str:
        return f"DmsCredentials(api_url={self.api_url!r}, username={self.username!r})"


@dataclass(slots=True)
class CredentialResult:
    configured: bool
    credentials: DmsCredentials | None = None
    error: str | None = None


@dataclass(slots=True)
class BookedRepair:
    """A repair line pre-booked against the DMS job sheet."""

    code: str | None = None
    description: str | None = None
    notes: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "description": self.description, "notes": self.notes}


@dataclass(slots=True)
class Booking:
    """One workshop diary booking as delivered by the DMS.

    Field values are raw: nothing here is normalized.
    """

    booking_id: str
    status: str = ""
    booking_date: str | None = None
    booking_time: str | None = None
    due_date_time: str | None = None

    customer_id: str | None = None
    customer_title: str | None = None
    customer_first_name: str | None = None
    customer_last_name: str | None = None
    customer_email: str | None = None
    customer_mobile: str | None = None
    customer_phone: str | None = None
    customer_address_line1: str | None = None
    customer_address_line2: str | None = None
    customer_town: str | None = None
    customer_county: str | None = None
    customer_postcode: str | None = None

    vehicle_id: str | None = None
    vehicle_reg: str | None = None
    vehicle_vin: str | None = None
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_color: str | None = None
    vehicle_fuel_type: str | None = None
    vehicle_mileage: int | None = None

    description: str | None = None
    service_type: str | None = None
    jobsheet_number: str | None = None
    jobsheet_status: str | None = None
    booked_repairs: list[BookedRepair] = field(default_factory=list)

    customer_waiting: bool = False
    loan_car_required: bool = False
    is_internal: bool = False


@dataclass(slots=True)
class DiaryResponse:
    success: bool
    bookings: list[Booking] = field(default_factory=list)
    error: str | None = None


@runtime_checkable
class CredentialProvider(Protocol):
    """Resolves decrypted DMS credentials for an organization."""

    async def get_credentials(self, organization_id: uuid.UUID) -> CredentialResult:
        ...


@runtime_checkable
class DiaryFetcher(Protocol):
    """Fetches diary bookings for an inclusive date range.

    Each call is bounded by ``DMS_FETCH_TIMEOUT_SECONDS``; implementations
    own their transport and any retry policy.
    """

    async def fetch_bookings(
        self,
        credentials: DmsCredentials,
        start_date: date,
        *,
        end_date: date | None = None,
    ) -> DiaryResponse:
        ...


def load_diary_fetcher(path: str, settings: "Settings") -> DiaryFetcher:
    """Import ``module:factory`` and build a diary fetcher from settings."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Diary fetcher path must look like 'module:factory', got {path!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    fetcher = factory(settings)
    if not isinstance(fetcher, DiaryFetcher):
        raise TypeError(f"{path} did not produce a DiaryFetcher")
    return fetcher


__all__ = [
    "BookedRepair",
    "Booking",
    "CredentialProvider",
    "CredentialResult",
    "DiaryFetcher",
    "DiaryResponse",
    "DmsCredentials",
    "load_diary_fetcher",
]
