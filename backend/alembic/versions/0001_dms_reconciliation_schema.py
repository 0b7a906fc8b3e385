"""DMS booking reconciliation schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

IMPORT_TYPE = sa.Enum("MANUAL", "SCHEDULED", "TEST", name="importtype")
IMPORT_BATCH_STATUS = sa.Enum(
    "RUNNING", "COMPLETED", "PARTIAL", "FAILED", name="importbatchstatus"
)
INSPECTION_STATUS = sa.Enum(
    "AWAITING_ARRIVAL",
    "AWAITING_CHECKIN",
    "CREATED",
    "ARRIVED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
    name="inspectionstatus",
)

_EXTERNAL_ONLY = sa.text("external_id IS NOT NULL")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _org_fk() -> sa.Column:
    return sa.Column(
        "organization_id",
        sa.Uuid(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )


def _external_columns() -> list[sa.Column]:
    return [
        sa.Column("external_id", sa.String(length=255)),
        sa.Column("external_source", sa.String(length=50)),
    ]


def _external_index(name: str, table: str) -> None:
    op.create_index(
        name,
        table,
        ["organization_id", "external_source", "external_id"],
        unique=True,
        postgresql_where=_EXTERNAL_ONLY,
        sqlite_where=_EXTERNAL_ONLY,
    )


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "sites",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _org_fk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_sites_organization_id", "sites", ["organization_id"])

    op.create_table(
        "check_templates",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _org_fk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_check_templates_organization_id", "check_templates", ["organization_id"]
    )

    op.create_table(
        "organization_dms_settings",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("api_url", sa.String(length=512)),
        sa.Column("username_encrypted", sa.String(length=1024)),
        sa.Column("password_encrypted", sa.String(length=1024)),
        sa.Column(
            "default_template_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("check_templates.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "auto_import_enabled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("import_schedule_hours", sa.JSON(), nullable=False),
        sa.Column("import_schedule_days", sa.JSON(), nullable=False),
        sa.Column("daily_import_limit", sa.Integer()),
        sa.Column("last_import_at", sa.DateTime(timezone=True)),
        sa.Column("last_import_status", sa.String(length=50)),
        sa.Column("last_error", sa.Text()),
        sa.Column("last_sync_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _org_fk(),
        sa.Column("title", sa.String(length=32)),
        sa.Column("first_name", sa.String(length=120)),
        sa.Column("last_name", sa.String(length=120)),
        sa.Column("email", sa.String(length=255)),
        sa.Column("mobile", sa.String(length=32)),
        sa.Column("address_line1", sa.String(length=255)),
        sa.Column("address_line2", sa.String(length=255)),
        sa.Column("town", sa.String(length=120)),
        sa.Column("county", sa.String(length=120)),
        sa.Column("postcode", sa.String(length=16)),
        *_external_columns(),
        *_timestamps(),
    )
    _external_index("ux_customers_org_external", "customers")
    op.create_index("ix_customers_org_email", "customers", ["organization_id", "email"])
    op.create_index(
        "ix_customers_org_mobile", "customers", ["organization_id", "mobile"]
    )

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _org_fk(),
        sa.Column(
            "customer_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("customers.id", ondelete="SET NULL"),
        ),
        sa.Column("registration", sa.String(length=32), nullable=False),
        sa.Column("vin", sa.String(length=64)),
        sa.Column("make", sa.String(length=120)),
        sa.Column("model", sa.String(length=120)),
        sa.Column("year", sa.Integer()),
        sa.Column("color", sa.String(length=64)),
        sa.Column("fuel_type", sa.String(length=64)),
        sa.Column("mileage", sa.Integer()),
        *_external_columns(),
        *_timestamps(),
        sa.UniqueConstraint(
            "organization_id", "registration", name="uq_vehicles_org_registration"
        ),
    )
    _external_index("ux_vehicles_org_external", "vehicles")
    op.create_index("ix_vehicles_org_vin", "vehicles", ["organization_id", "vin"])

    op.create_table(
        "dms_import_batches",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _org_fk(),
        sa.Column(
            "site_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("sites.id", ondelete="SET NULL"),
        ),
        sa.Column("import_type", IMPORT_TYPE, nullable=False),
        sa.Column("import_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("status", IMPORT_BATCH_STATUS, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("bookings_found", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "bookings_imported", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("bookings_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bookings_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "customers_created", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("vehicles_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "health_checks_created", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.Column("triggered_by", sa.String(length=255)),
        *_timestamps(),
    )
    op.create_index(
        "ix_dms_import_batches_org_date",
        "dms_import_batches",
        ["organization_id", "import_date"],
    )
    op.create_index(
        "ix_dms_import_batches_org_status",
        "dms_import_batches",
        ["organization_id", "status"],
    )

    op.create_table(
        "inspections",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _org_fk(),
        sa.Column(
            "site_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("sites.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "customer_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "vehicle_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("vehicles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "template_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("check_templates.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", INSPECTION_STATUS, nullable=False),
        sa.Column("mileage_in", sa.Integer()),
        sa.Column("promise_time", sa.DateTime(timezone=True)),
        sa.Column("due_date", sa.DateTime(timezone=True)),
        sa.Column("booked_date", sa.DateTime(timezone=True)),
        sa.Column("notes", sa.Text()),
        sa.Column(
            "customer_waiting", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "loan_car_required", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("jobsheet_number", sa.String(length=64)),
        sa.Column("jobsheet_status", sa.String(length=64)),
        sa.Column("booked_repairs", sa.JSON(), nullable=False),
        *_external_columns(),
        sa.Column(
            "import_batch_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("dms_import_batches.id", ondelete="SET NULL"),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    _external_index("ux_inspections_org_external", "inspections")
    op.create_index("ix_inspections_import_batch", "inspections", ["import_batch_id"])
    op.create_index(
        "ix_inspections_org_status", "inspections", ["organization_id", "status"]
    )

    op.create_table(
        "organization_usage",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        _org_fk(),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("dms_imports", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "dms_bookings_imported", sa.Integer(), nullable=False, server_default="0"
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "organization_id", "period_start", name="uq_organization_usage_period"
        ),
    )


def downgrade() -> None:
    op.drop_table("organization_usage")
    op.drop_index("ix_inspections_org_status", table_name="inspections")
    op.drop_index("ix_inspections_import_batch", table_name="inspections")
    op.drop_index("ux_inspections_org_external", table_name="inspections")
    op.drop_table("inspections")
    op.drop_index("ix_dms_import_batches_org_status", table_name="dms_import_batches")
    op.drop_index("ix_dms_import_batches_org_date", table_name="dms_import_batches")
    op.drop_table("dms_import_batches")
    op.drop_index("ix_vehicles_org_vin", table_name="vehicles")
    op.drop_index("ux_vehicles_org_external", table_name="vehicles")
    op.drop_table("vehicles")
    op.drop_index("ix_customers_org_mobile", table_name="customers")
    op.drop_index("ix_customers_org_email", table_name="customers")
    op.drop_index("ux_customers_org_external", table_name="customers")
    op.drop_table("customers")
    op.drop_table("organization_dms_settings")
    op.drop_index("ix_check_templates_organization_id", table_name="check_templates")
    op.drop_table("check_templates")
    op.drop_index("ix_sites_organization_id", table_name="sites")
    op.drop_table("sites")
    op.drop_table("organizations")

    bind = op.get_bind()
    for enum_type in (INSPECTION_STATUS, IMPORT_BATCH_STATUS, IMPORT_TYPE):
        enum_type.drop(bind, checkfirst=True)
