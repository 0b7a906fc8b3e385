"""ORM models package export."""

from app.models.check_template import CheckTemplate
from app.models.customer import Customer
from app.models.dms_settings import OrganizationDmsSettings
from app.models.import_batch import ImportBatch, ImportBatchStatus, ImportType
from app.models.inspection import Inspection, InspectionStatus
from app.models.organization import Organization, Site
from app.models.usage import OrganizationUsage
from app.models.vehicle import Vehicle

__all__ = [
    "CheckTemplate",
    "Customer",
    "ImportBatch",
    "ImportBatchStatus",
    "ImportType",
    "Inspection",
    "InspectionStatus",
    "Organization",
    "OrganizationDmsSettings",
    "OrganizationUsage",
    "Site",
    "Vehicle",
]
