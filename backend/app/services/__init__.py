"""Service layer exports."""
from app.services import (
    customer_matcher,
    dms_credential_service,
    dms_defaults_service,
    dms_import_service,
    dms_preview_service,
    dms_schedule_service,
    import_batch_service,
    inspection_service,
    vehicle_matcher,
)

__all__ = [
    "customer_matcher",
    "dms_credential_service",
    "dms_defaults_service",
    "dms_import_service",
    "dms_preview_service",
    "dms_schedule_service",
    "import_batch_service",
    "inspection_service",
    "vehicle_matcher",
]
