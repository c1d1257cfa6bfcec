"""create users, dc_installations and audit_logs tables

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-10-16 10:12:41.118402

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5c1e7a9d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _str(name, length=255, nullable=True):
    return sa.Column(name, sa.String(length=length), nullable=nullable)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        _str("name", nullable=False),
        _str("email", nullable=False),
        _str("password_hash", 256, nullable=False),
        sa.Column("user_type", sa.String(length=16), server_default=sa.text("'User'"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_user_type", "users", ["user_type"])

    op.create_table(
        "dc_installations",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        _str("sr_no", 64, nullable=False),
        # Location
        _str("region_division", nullable=False),
        sa.Column("location_address", sa.Text(), nullable=False),
        _str("district", nullable=False),
        _str("tahsil", nullable=False),
        _str("pin_code", 6, nullable=False),
        # Contact
        _str("receiver_name", nullable=False),
        _str("contact_no", 10, nullable=False),
        _str("contact_no_two", 10),
        _str("dc_ir_no"),
        # Dates
        sa.Column("dispatch_date", sa.Date(), nullable=True),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("installation_date", sa.Date(), nullable=True),
        # Delivery details
        sa.Column("total_boxes", sa.Integer(), nullable=True),
        _str("courier_docket_no"),
        _str("representative_name"),
        # Status
        sa.Column("delivery_status", sa.String(length=16), server_default=sa.text("'Pending'"), nullable=False),
        sa.Column("installation_status", sa.String(length=16), server_default=sa.text("'Pending'"), nullable=False),
        sa.Column("priority", sa.String(length=8), server_default=sa.text("'Medium'"), nullable=False),
        # Document / photo flags
        *[
            sa.Column(flag, sa.Boolean(), server_default=sa.text("false"), nullable=False)
            for flag in (
                "soft_copy_dc",
                "soft_copy_ir",
                "original_pod_received",
                "original_dc_received",
                "ir_original_copy_received",
                "back_side_photo_taken",
                "os_installation_photo_taken",
                "belarc_report_generated",
            )
        ],
        # Equipment
        _str("serial_number"),
        _str("aio_hp_serial"),
        _str("keyboard_serial"),
        _str("mouse_serial"),
        _str("ups_serial"),
        _str("antivirus"),
        sa.Column("breakage_notes", sa.Text(), nullable=True),
        # Updated equipment
        _str("hp_440_g9_serial"),
        _str("hp_keyboard_serial"),
        _str("hp_mouse_serial"),
        _str("updated_antivirus"),
        sa.Column("updated_breakage_notes", sa.Text(), nullable=True),
        _str("hostname"),
        # Installation details
        _str("ir_receiver_name"),
        _str("ir_receiver_designation"),
        _str("entity_vendor_name"),
        _str("vendor_contact_number", 15),
        sa.Column("charges", sa.Numeric(10, 2), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        # Updated installation details
        _str("updated_ir_receiver_name"),
        _str("updated_ir_receiver_designation"),
        sa.Column("updated_installation_date", sa.Date(), nullable=True),
        sa.Column("updated_remarks", sa.Text(), nullable=True),
        _str("updated_entity_vendor"),
        _str("updated_contact_number", 15),
        # Attachment slots
        *[
            _str(slot, 512)
            for slot in (
                "delivery_report_file",
                "installation_report_file",
                "belarc_report_file",
                "back_side_photo_file",
                "os_installation_photo_file",
                "keyboard_photo_file",
                "mouse_photo_file",
                "screenshot_file",
                "evidence_file",
            )
        ],
        # Assignment
        _str("assigned_technician"),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        # Tracking
        _str("created_by"),
        _str("updated_by"),
        sa.Column("record_state", sa.String(length=16), server_default=sa.text("'active'"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("sr_no", name="uq_dc_installations_sr_no"),
    )
    op.create_index("ix_dc_installations_statuses", "dc_installations", ["delivery_status", "installation_status"])
    op.create_index("ix_dc_installations_region", "dc_installations", ["region_division"])
    op.create_index("ix_dc_installations_district", "dc_installations", ["district"])
    op.create_index("ix_dc_installations_dates", "dc_installations", ["delivery_date", "installation_date"])
    op.create_index("ix_dc_installations_priority", "dc_installations", ["priority"])
    op.create_index("ix_dc_installations_state_created", "dc_installations", ["record_state", "created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        _str("request_id", 128),
        _str("user_id", 64),
        _str("user_name"),
        _str("user_email"),
        _str("user_type", 32),
        _str("action", 64, nullable=False),
        _str("resource_type", 64),
        _str("resource_id", 64),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("severity", sa.String(length=16), server_default=sa.text("'low'"), nullable=False),
        sa.Column("old_values", JSONType, nullable=True),
        sa.Column("new_values", JSONType, nullable=True),
        sa.Column("metadata_json", JSONType, nullable=True),
        _str("ip_address", 64),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        _str("method", 16),
    )
    op.create_index("ix_audit_logs_user_created", "audit_logs", ["user_id", "created_at"])
    op.create_index("ix_audit_logs_action_created", "audit_logs", ["action", "created_at"])
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])
    op.create_index("ix_audit_logs_severity_created", "audit_logs", ["severity", "created_at"])
    op.create_index("ix_audit_logs_created", "audit_logs", ["created_at"])


def downgrade():
    op.drop_table("audit_logs")
    op.drop_table("dc_installations")
    op.drop_table("users")
