"""Schemas for DMS booking imports."""
from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.import_batch import ImportBatchStatus, ImportType
from app.models.inspection import InspectionStatus


class ImportOptions(BaseModel):
    """Input contract for one reconciliation run."""

    organization_id: uuid.UUID
    site_id: uuid.UUID | None = None
    target_date: dt.date
    end_date: dt.date | None = None
    import_type: ImportType
    triggered_by: str | None = None
    booking_ids: list[str] | None = None

    @model_validator(mode="after")
    def _check_range(self) -> "ImportOptions":
        if self.end_date is not None and self.end_date < self.target_date:
            raise ValueError("end_date must not be before target_date")
        return self


class ImportErrorEntry(BaseModel):
    booking_id: str
    error: str


class ImportResult(BaseModel):
    """Outcome of one run. Always fully populated, even when the run failed."""

    success: bool = False
    import_id: uuid.UUID | None = None
    bookings_found: int = 0
    bookings_imported: int = 0
    bookings_skipped: int = 0
    bookings_failed: int = 0
    customers_created: int = 0
    vehicles_created: int = 0
    health_checks_created: int = 0
    errors: list[ImportErrorEntry] = Field(default_factory=list)

    def add_error(self, booking_id: str, error: str) -> None:
        self.errors.append(ImportErrorEntry(booking_id=booking_id, error=error))


class DmsImportRequest(BaseModel):
    """Payload for triggering a manual import."""

    import_date: dt.date | None = Field(default=None, alias="date")
    end_date: dt.date | None = None
    site_id: uuid.UUID | None = None
    booking_ids: list[str] | None = None
    skip_limit_check: bool = False

    model_config = ConfigDict(populate_by_name=True)


class ImportBatchSummary(BaseModel):
    """Serialized import batch for history listings."""

    id: uuid.UUID
    status: ImportBatchStatus
    import_type: ImportType
    import_date: dt.date
    end_date: dt.date | None = None
    started_at: dt.datetime
    completed_at: dt.datetime | None = None
    bookings_found: int
    bookings_imported: int
    bookings_skipped: int
    bookings_failed: int
    customers_created: int
    vehicles_created: int
    health_checks_created: int
    error_count: int = 0
    triggered_by: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ImportBatchRead(ImportBatchSummary):
    errors: list[dict[str, Any]] = Field(default_factory=list)


class ImportStatusResponse(BaseModel):
    has_history: bool
    latest_import: ImportBatchRead | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ImportHistoryPage(BaseModel):
    history: list[ImportBatchSummary]
    pagination: Pagination


class ImportedInspection(BaseModel):
    id: uuid.UUID
    status: InspectionStatus
    created_at: dt.datetime
    vehicle: str | None = None
    customer: str | None = None


class ImportBatchDetail(BaseModel):
    batch: ImportBatchRead = Field(alias="import")
    health_checks: list[ImportedInspection]

    model_config = ConfigDict(populate_by_name=True)


class UnactionedInspection(BaseModel):
    """An imported inspection still waiting for the vehicle to arrive."""

    id: uuid.UUID
    status: InspectionStatus
    external_id: str | None = None
    external_source: str | None = None
    registration: str = ""
    make: str = ""
    model: str = ""
    customer_name: str = ""
    customer_mobile: str | None = None
    customer_id: uuid.UUID | None = None
    vehicle_id: uuid.UUID | None = None
    promise_time: dt.datetime | None = None
    due_date: dt.datetime | None = None
    imported_at: dt.datetime
    customer_waiting: bool = False
    loan_car_required: bool = False
    booked_repairs: list[dict[str, Any]] = Field(default_factory=list)
    jobsheet_number: str | None = None
    hours_since_import: int = 0


class UnactionedPage(BaseModel):
    health_checks: list[UnactionedInspection]
    pagination: Pagination


class PreviewBooking(BaseModel):
    """A diary booking as it would be treated by an import."""

    booking_id: str
    vehicle_reg: str
    customer_name: str
    booking_date: str
    scheduled_time: str | None = None
    service_type: str | None = None
    reason: str | None = None


class ImportPreviewSummary(BaseModel):
    total_bookings: int
    will_import: int
    will_skip: int
    already_imported_today: int
    daily_limit: int
    remaining_capacity: int
    limit_would_be_exceeded: bool


class ImportPreview(BaseModel):
    """Dry run of an import: nothing is written."""

    success: bool = True
    date: dt.date
    end_date: dt.date | None = None
    summary: ImportPreviewSummary
    will_import: list[PreviewBooking] = Field(default_factory=list)
    will_skip: list[PreviewBooking] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
