from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog
from app.models.installation import Installation
from app.policies.export_policy import ExportScope
from app.services.audit_service import AuditFilters, AuditService
from app.services.installation_service import InstallationFilters, InstallationService

Columns = List[Tuple[str, str]]

ADMIN_INSTALLATION_COLUMNS: Columns = [
    ("sr_no", "SR No"),
    ("region_division", "Region/Division"),
    ("district", "District"),
    ("tahsil", "Tahsil"),
    ("pin_code", "PIN Code"),
    ("receiver_name", "Receiver Name"),
    ("contact_no", "Contact No"),
    ("location_address", "Location Address"),
    ("dc_ir_no", "DC/IR No"),
    ("delivery_status", "Delivery Status"),
    ("installation_status", "Installation Status"),
    ("priority", "Priority"),
    ("assigned_technician", "Assigned Technician"),
    ("dispatch_date", "Dispatch Date"),
    ("delivery_date", "Delivery Date"),
    ("installation_date", "Installation Date"),
    ("created_by", "Created By"),
    ("created_at", "Created At"),
]

CLIENT_INSTALLATION_COLUMNS: Columns = [
    ("sr_no", "SR No"),
    ("region_division", "Region/Division"),
    ("district", "District"),
    ("tahsil", "Tahsil"),
    ("pin_code", "PIN Code"),
    ("receiver_name", "Receiver Name"),
    ("contact_no", "Contact No"),
    ("location_address", "Location Address"),
    ("delivery_status", "Delivery Status"),
    ("installation_status", "Installation Status"),
    ("priority", "Priority"),
    ("completion_percentage", "Completion %"),
    ("delivery_date", "Delivery Date"),
    ("installation_date", "Installation Date"),
    ("created_at", "Created At"),
]

AUDIT_COLUMNS: Columns = [
    ("id", "ID"),
    ("created_at", "Date/Time"),
    ("user_name", "User Name"),
    ("user_email", "User Email"),
    ("user_type", "User Type"),
    ("action", "Action"),
    ("resource_type", "Resource Type"),
    ("resource_id", "Resource ID"),
    ("description", "Description"),
    ("severity", "Severity"),
    ("ip_address", "IP Address"),
    ("user_agent", "User Agent"),
    ("url", "URL"),
    ("method", "Method"),
    ("old_values", "Old Values"),
    ("new_values", "New Values"),
]

USER_AGENT_EXPORT_CHARS = 100


def _cell(value: Any) -> Any:
    # datetime first: it is also a date
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return value


class ExportInstallationsService:
    def columns(self, scope: ExportScope) -> Columns:
        return ADMIN_INSTALLATION_COLUMNS if scope.include_internal else CLIENT_INSTALLATION_COLUMNS

    def row(self, inst: Installation, scope: ExportScope) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, _ in self.columns(scope):
            if key == "completion_percentage":
                out[key] = f"{inst.completion_percentage}%"
            else:
                out[key] = _cell(getattr(inst, key))
        return out

    def iter_rows(
        self,
        db: Session,
        *,
        scope: ExportScope,
        filters: InstallationFilters,
        today: Optional[date] = None,
    ) -> Iterable[Dict[str, Any]]:
        for inst in InstallationService().iter_filtered(db, filters=filters, today=today):
            yield self.row(inst, scope)


class ExportAuditService:
    def row(self, entry: AuditLog) -> Dict[str, Any]:
        return {
            "id": str(entry.id),
            "created_at": _cell(entry.created_at),
            "user_name": entry.user_name,
            "user_email": entry.user_email,
            "user_type": entry.user_type,
            "action": entry.action,
            "resource_type": entry.resource_type,
            "resource_id": entry.resource_id,
            "description": entry.description,
            "severity": entry.severity,
            "ip_address": entry.ip_address,
            "user_agent": (entry.user_agent or "")[:USER_AGENT_EXPORT_CHARS],
            "url": entry.url,
            "method": entry.method,
            "old_values": json.dumps(entry.old_values) if entry.old_values else "",
            "new_values": json.dumps(entry.new_values) if entry.new_values else "",
        }

    def iter_rows(self, db: Session, *, filters: AuditFilters) -> Iterable[Dict[str, Any]]:
        for entry in AuditService().iter_entries(db, filters=filters):
            yield self.row(entry)

    def columns(self) -> Columns:
        return AUDIT_COLUMNS
