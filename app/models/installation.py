# app/models/installation.py
from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.attachment_slots import SLOT_KEYS
from app.db.base import Base
from app.models.enums import (
    DeliveryStatus,
    InstallationStatus,
    Priority,
    RecordState,
)

OVERDUE_AFTER_DAYS = 7

DOCUMENT_FLAGS = (
    "soft_copy_dc",
    "soft_copy_ir",
    "original_pod_received",
    "original_dc_received",
    "ir_original_copy_received",
)
PHOTO_FLAGS = (
    "back_side_photo_taken",
    "os_installation_photo_taken",
    "belarc_report_generated",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Installation(Base):
    """
    One row per field-service job (delivery + installation of a DC kit).

    Boolean document/photo flags record physical-world confirmation and are
    independent of the *_file attachment slots.
    """
    __tablename__ = "dc_installations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Identity
    sr_no: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    # Location
    region_division: Mapped[str] = mapped_column(String(255), nullable=False)
    location_address: Mapped[str] = mapped_column(Text, nullable=False)
    district: Mapped[str] = mapped_column(String(255), nullable=False)
    tahsil: Mapped[str] = mapped_column(String(255), nullable=False)
    pin_code: Mapped[str] = mapped_column(String(6), nullable=False)

    # Contact
    receiver_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_no: Mapped[str] = mapped_column(String(10), nullable=False)
    contact_no_two: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    dc_ir_no: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Dates
    dispatch_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    installation_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Delivery details
    total_boxes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    courier_docket_no: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    representative_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Status
    delivery_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=DeliveryStatus.pending.value,
        server_default=text("'Pending'"),
    )
    installation_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=InstallationStatus.pending.value,
        server_default=text("'Pending'"),
    )
    priority: Mapped[str] = mapped_column(
        String(8), nullable=False, default=Priority.medium.value,
        server_default=text("'Medium'"),
    )

    # Document flags
    soft_copy_dc: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    soft_copy_ir: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    original_pod_received: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    original_dc_received: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ir_original_copy_received: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Photo / evidence flags
    back_side_photo_taken: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    os_installation_photo_taken: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    belarc_report_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Equipment
    serial_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    aio_hp_serial: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    keyboard_serial: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mouse_serial: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ups_serial: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    antivirus: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    breakage_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Updated equipment
    hp_440_g9_serial: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hp_keyboard_serial: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hp_mouse_serial: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_antivirus: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_breakage_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hostname: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Installation details
    ir_receiver_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ir_receiver_designation: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    entity_vendor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    vendor_contact_number: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    charges: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Updated installation details
    updated_ir_receiver_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_ir_receiver_designation: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_installation_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    updated_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_entity_vendor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_contact_number: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)

    # Attachment slots (relative storage keys)
    delivery_report_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    installation_report_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    belarc_report_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    back_side_photo_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    os_installation_photo_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    keyboard_photo_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    mouse_photo_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    screenshot_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    evidence_file: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Assignment (internal-only)
    assigned_technician: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Tracking
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    record_state: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RecordState.active.value,
        server_default=text("'active'"),
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("ix_dc_installations_statuses", "delivery_status", "installation_status"),
        Index("ix_dc_installations_region", "region_division"),
        Index("ix_dc_installations_district", "district"),
        Index("ix_dc_installations_dates", "delivery_date", "installation_date"),
        Index("ix_dc_installations_priority", "priority"),
        Index("ix_dc_installations_state_created", "record_state", "created_at"),
    )

    # ---------------------------
    # DERIVED VIEWS (never stored)
    # ---------------------------

    @property
    def is_deleted(self) -> bool:
        return self.record_state == RecordState.deleted.value

    @property
    def completion_percentage(self) -> int:
        steps = [
            self.delivery_status == DeliveryStatus.delivered.value,
            self.installation_status == InstallationStatus.installed.value,
        ]
        steps += [bool(getattr(self, f)) for f in DOCUMENT_FLAGS + PHOTO_FLAGS]
        return round(sum(steps) / len(steps) * 100)

    def is_overdue(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return (
            self.installation_status == InstallationStatus.pending.value
            and self.delivery_date is not None
            and self.delivery_date <= today - timedelta(days=OVERDUE_AFTER_DAYS)
        )

    def days_until_due(self, today: Optional[date] = None) -> Optional[int]:
        if not self.delivery_date or self.installation_status == InstallationStatus.installed.value:
            return None
        today = today or date.today()
        return (self.delivery_date + timedelta(days=OVERDUE_AFTER_DAYS) - today).days

    @property
    def status_badge(self) -> Dict[str, str]:
        delivery = self.delivery_status
        installation = self.installation_status

        if delivery == "Delivered" and installation == "Installed":
            return {"text": "Completed", "class": "success"}
        if delivery == "Delivered" and installation == "Pending":
            return {"text": "Ready for Installation", "class": "warning"}
        if delivery == "Pending":
            return {"text": "Pending Delivery", "class": "danger"}
        if delivery == "In Transit":
            return {"text": "In Transit", "class": "info"}
        if installation == "In Progress":
            return {"text": "Installation in Progress", "class": "info"}
        return {"text": "Unknown Status", "class": "secondary"}

    def attachment_slots_present(self) -> Dict[str, str]:
        """slot -> stored key, for non-empty slots only."""
        return {slot: getattr(self, slot) for slot in SLOT_KEYS if getattr(self, slot)}

    @property
    def audit_identifier(self) -> str:
        return self.sr_no or str(self.id)
