#app/schemas/installations.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from app.models.enums import DeliveryStatus, InstallationStatus, Priority
from app.models.installation import Installation

# -----------------------
# Field formats
# -----------------------

PinCode = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d{6}$")]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d{10}$")]
# sr_no doubles as a storage directory name, so no separators or dots
SrNo = Annotated[
    str,
    StringConstraints(strip_whitespace=True, max_length=64, pattern=r"^[A-Za-z0-9][A-Za-z0-9_-]*$"),
]
Short = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]
Long = Annotated[str, StringConstraints(strip_whitespace=True, max_length=1000)]
Required = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class InstallationFields(BaseModel):
    """
    Everything except sr_no. Shared by create and update; unknown keys are rejected.
    """
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    # Location
    region_division: Required
    location_address: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]
    district: Required
    tahsil: Required
    pin_code: PinCode

    # Contact
    receiver_name: Required
    contact_no: Phone
    contact_no_two: Optional[Phone] = None
    dc_ir_no: Optional[Short] = None

    # Dates
    dispatch_date: Optional[date] = None
    delivery_date: Optional[date] = None
    installation_date: Optional[date] = None

    # Delivery details
    total_boxes: Optional[int] = Field(default=None, ge=1)
    courier_docket_no: Optional[Short] = None
    representative_name: Optional[Short] = None

    # Equipment
    serial_number: Optional[Short] = None
    aio_hp_serial: Optional[Short] = None
    keyboard_serial: Optional[Short] = None
    mouse_serial: Optional[Short] = None
    ups_serial: Optional[Short] = None
    antivirus: Optional[Short] = None
    breakage_notes: Optional[Long] = None

    # Installation details
    ir_receiver_name: Optional[Short] = None
    ir_receiver_designation: Optional[Short] = None
    entity_vendor_name: Optional[Short] = None
    vendor_contact_number: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=15)]] = None
    charges: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    remarks: Optional[Long] = None

    # Status
    delivery_status: DeliveryStatus
    installation_status: InstallationStatus
    priority: Priority

    # Updated equipment
    hp_440_g9_serial: Optional[Short] = None
    hp_keyboard_serial: Optional[Short] = None
    hp_mouse_serial: Optional[Short] = None
    updated_antivirus: Optional[Short] = None
    updated_breakage_notes: Optional[Long] = None

    # Updated installation details
    updated_ir_receiver_name: Optional[Short] = None
    updated_ir_receiver_designation: Optional[Short] = None
    updated_installation_date: Optional[date] = None
    updated_remarks: Optional[Long] = None
    hostname: Optional[Short] = None
    updated_entity_vendor: Optional[Short] = None
    updated_contact_number: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=15)]] = None

    # Assignment
    assigned_technician: Optional[Short] = None
    internal_notes: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]] = None

    # Document / photo flags
    soft_copy_dc: bool = False
    soft_copy_ir: bool = False
    original_pod_received: bool = False
    original_dc_received: bool = False
    ir_original_copy_received: bool = False
    back_side_photo_taken: bool = False
    os_installation_photo_taken: bool = False
    belarc_report_generated: bool = False


class InstallationCreate(InstallationFields):
    sr_no: Optional[SrNo] = None


class InstallationUpdate(InstallationFields):
    pass


# -----------------------
# Responses (camelCase keys)
# -----------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class InstallationResponse(_CamelModel):
    id: str
    sr_no: str

    region_division: str
    location_address: str
    district: str
    tahsil: str
    pin_code: str

    receiver_name: str
    contact_no: str
    contact_no_two: Optional[str] = None
    dc_ir_no: Optional[str] = None

    dispatch_date: Optional[date] = None
    delivery_date: Optional[date] = None
    installation_date: Optional[date] = None

    total_boxes: Optional[int] = None
    courier_docket_no: Optional[str] = None
    representative_name: Optional[str] = None

    serial_number: Optional[str] = None
    aio_hp_serial: Optional[str] = None
    keyboard_serial: Optional[str] = None
    mouse_serial: Optional[str] = None
    ups_serial: Optional[str] = None
    antivirus: Optional[str] = None
    breakage_notes: Optional[str] = None

    ir_receiver_name: Optional[str] = None
    ir_receiver_designation: Optional[str] = None
    entity_vendor_name: Optional[str] = None
    vendor_contact_number: Optional[str] = None
    charges: Optional[Decimal] = None
    remarks: Optional[str] = None

    delivery_status: str
    installation_status: str
    priority: str

    hp_440_g9_serial: Optional[str] = None
    hp_keyboard_serial: Optional[str] = None
    hp_mouse_serial: Optional[str] = None
    updated_antivirus: Optional[str] = None
    updated_breakage_notes: Optional[str] = None

    updated_ir_receiver_name: Optional[str] = None
    updated_ir_receiver_designation: Optional[str] = None
    updated_installation_date: Optional[date] = None
    updated_remarks: Optional[str] = None
    hostname: Optional[str] = None
    updated_entity_vendor: Optional[str] = None
    updated_contact_number: Optional[str] = None

    assigned_technician: Optional[str] = None
    internal_notes: Optional[str] = None

    soft_copy_dc: bool
    soft_copy_ir: bool
    original_pod_received: bool
    original_dc_received: bool
    ir_original_copy_received: bool
    back_side_photo_taken: bool
    os_installation_photo_taken: bool
    belarc_report_generated: bool

    # slot -> stored key
    attachments: Dict[str, str] = Field(default_factory=dict)

    completion_percentage: int
    is_overdue: bool
    days_until_due: Optional[int] = None
    status_badge: Dict[str, str]

    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, inst: Installation, *, today: Optional[date] = None) -> "InstallationResponse":
        data = {c.key: getattr(inst, c.key) for c in Installation.__table__.columns}
        data.update(
            id=str(inst.id),
            attachments=inst.attachment_slots_present(),
            completion_percentage=inst.completion_percentage,
            is_overdue=inst.is_overdue(today),
            days_until_due=inst.days_until_due(today),
            status_badge=inst.status_badge,
        )
        return cls.model_validate(data)


class InstallationListResponse(_CamelModel):
    items: List[InstallationResponse]
    total: int
    page: int
    per_page: int
    pages: int
    regions: List[str] = Field(default_factory=list)
    districts: List[str] = Field(default_factory=list)


class ShareLinkResponse(_CamelModel):
    share_url: str
    token: str
    expires_at: datetime


class BundleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    installation_ids: List[str] = Field(..., min_length=1, max_length=500)


class AttachResult(_CamelModel):
    slot: str
    stored_key: Optional[str] = None
    error: Optional[str] = None


class AttachManyResponse(_CamelModel):
    installation_id: str
    results: List[AttachResult]


class StatusChangeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    on: Optional[date] = None


class AssignTechnicianRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    technician: Short
