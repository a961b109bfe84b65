"""asset lifecycle core tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum("ADMIN", "STAFF", "USER", name="userrole")
asset_status = sa.Enum("AVAILABLE", "BORROWED", "UNDER_REPAIR", "DAMAGED", "DELETED", name="assetstatus")
loan_request_status = sa.Enum(
    "PENDING_APPROVAL",
    "APPROVED",
    "REJECTED",
    "COMPLETED",
    name="loanrequeststatus",
)
damage_severity = sa.Enum("MINOR", "MAJOR", "CRITICAL", name="damageseverity")
maintenance_type = sa.Enum("PREVENTIVE", "CORRECTIVE", "EMERGENCY", name="maintenancetype")
maintenance_status = sa.Enum("SCHEDULED", "IN_PROGRESS", "COMPLETED", name="maintenancestatus")


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("correlation_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])
    op.create_index("ix_events_correlation_id", "events", ["correlation_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "assets",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("asset_code", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("brand", sa.String(length=100), nullable=True),
        sa.Column("serial_number", sa.String(length=100), nullable=True),
        sa.Column("specification", sa.Text(), nullable=True),
        sa.Column("status", asset_status, nullable=False, server_default="AVAILABLE"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assets_asset_code", "assets", ["asset_code"], unique=True)
    op.create_index("ix_assets_status", "assets", ["status"])
    op.create_index("ix_assets_created_at", "assets", ["created_at"])

    op.create_table(
        "loan_requests",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("asset_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("borrow_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", loan_request_status, nullable=False, server_default="PENDING_APPROVAL"),
        sa.Column("approved_by", sa.String(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("handover_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["approved_by"], ["users.id"]),
        sa.CheckConstraint("borrow_date < return_date", name="ck_loan_requests_date_range"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_loan_requests_asset_id", "loan_requests", ["asset_id"])
    op.create_index("ix_loan_requests_user_id", "loan_requests", ["user_id"])
    op.create_index("ix_loan_requests_status", "loan_requests", ["status"])
    op.create_index("ix_loan_requests_borrow_date", "loan_requests", ["borrow_date"])
    op.create_index("ix_loan_requests_return_date", "loan_requests", ["return_date"])
    op.create_index("ix_loan_requests_created_at", "loan_requests", ["created_at"])
    op.create_index("ix_loan_requests_asset_status", "loan_requests", ["asset_id", "status"])

    op.create_table(
        "damage_reports",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("asset_id", sa.String(), nullable=False),
        sa.Column("reported_by", sa.String(), nullable=False),
        sa.Column("loan_request_id", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("severity", damage_severity, nullable=False),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["reported_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["loan_request_id"], ["loan_requests.id"]),
        sa.ForeignKeyConstraint(["resolved_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_damage_reports_asset_id", "damage_reports", ["asset_id"])
    op.create_index("ix_damage_reports_reported_by", "damage_reports", ["reported_by"])
    op.create_index("ix_damage_reports_loan_request_id", "damage_reports", ["loan_request_id"])
    op.create_index("ix_damage_reports_severity", "damage_reports", ["severity"])
    op.create_index("ix_damage_reports_is_resolved", "damage_reports", ["is_resolved"])
    op.create_index("ix_damage_reports_created_at", "damage_reports", ["created_at"])
    op.create_index("ix_damage_reports_asset_resolved", "damage_reports", ["asset_id", "is_resolved"])

    op.create_table(
        "maintenance_records",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("asset_id", sa.String(), nullable=False),
        sa.Column("maintenance_type", maintenance_type, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", maintenance_status, nullable=False, server_default="SCHEDULED"),
        sa.Column("cost", sa.Float(), nullable=True),
        sa.Column("performed_by", sa.String(length=200), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_maintenance_records_asset_id", "maintenance_records", ["asset_id"])
    op.create_index("ix_maintenance_records_maintenance_type", "maintenance_records", ["maintenance_type"])
    op.create_index("ix_maintenance_records_scheduled_date", "maintenance_records", ["scheduled_date"])
    op.create_index("ix_maintenance_records_status", "maintenance_records", ["status"])
    op.create_index("ix_maintenance_records_created_by", "maintenance_records", ["created_by"])
    op.create_index("ix_maintenance_records_created_at", "maintenance_records", ["created_at"])


def downgrade() -> None:
    op.drop_table("maintenance_records")
    op.drop_table("damage_reports")
    op.drop_table("loan_requests")
    op.drop_table("assets")
    op.drop_table("users")
    op.drop_table("events")

    bind = op.get_bind()
    for enum_type in (
        maintenance_status,
        maintenance_type,
        damage_severity,
        loan_request_status,
        asset_status,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
