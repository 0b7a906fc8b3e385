"""Error taxonomy for the DMS booking reconciliation."""

from __future__ import annotations


class DmsImportError(RuntimeError):
    """Base class for reconciliation failures."""


class ConfigurationError(DmsImportError):
    """Credentials, template or site are missing. Fails the whole batch."""


class ExternalServiceError(DmsImportError):
    """The DMS fetch failed or reported a logical failure. Fails the whole batch."""


class BookingValidationError(DmsImportError, ValueError):
    """A booking lacks a field required to reconcile it. Fails only that booking."""


class StorageError(DmsImportError):
    """A create or update against the database failed."""


class DuplicateBookingError(DmsImportError):
    """Another run already stored an inspection for this booking."""


__all__ = [
    "BookingValidationError",
    "ConfigurationError",
    "DmsImportError",
    "DuplicateBookingError",
    "ExternalServiceError",
    "StorageError",
]
