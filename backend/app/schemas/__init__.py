"""Schema exports."""

from app.schemas.dms_import import (
    DmsImportRequest,
    ImportBatchDetail,
    ImportBatchRead,
    ImportBatchSummary,
    ImportedInspection,
    ImportErrorEntry,
    ImportHistoryPage,
    ImportOptions,
    ImportPreview,
    ImportPreviewSummary,
    ImportResult,
    ImportStatusResponse,
    Pagination,
    PreviewBooking,
    UnactionedInspection,
    UnactionedPage,
)

__all__ = [
    "DmsImportRequest",
    "ImportBatchDetail",
    "ImportBatchRead",
    "ImportBatchSummary",
    "ImportedInspection",
    "ImportErrorEntry",
    "ImportHistoryPage",
    "ImportOptions",
    "ImportPreview",
    "ImportPreviewSummary",
    "ImportResult",
    "ImportStatusResponse",
    "Pagination",
    "PreviewBooking",
    "UnactionedInspection",
    "UnactionedPage",
]
