# app/api/v1/dashboard.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal, require_roles
from app.db.session import get_db
from app.models.enums import AuditSeverity, UserType
from app.models.installation import Installation
from app.policies.rbac import Principal
from app.schemas.installations import InstallationResponse
from app.services.audit_service import AuditAction, AuditResource, audit_event
from app.services.report_service import ReportService

router = APIRouter()

staff = require_roles(UserType.Admin, UserType.Client)
admin_only = require_roles(UserType.Admin)

# payload sections whose own keys are field names (not data, like region names)
_CAMEL_SECTIONS = {"stats", "performance_metrics"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, Installation):
        return InstallationResponse.from_model(value).model_dump(by_alias=True, mode="json")
    return value


def _render(payload: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in payload.items():
        if key in _CAMEL_SECTIONS and isinstance(value, dict):
            value = {to_camel(k): v for k, v in value.items()}
        elif key == "regional_data":
            value = [{to_camel(k): v for k, v in row.items()} for row in value]
        out[to_camel(key)] = _jsonable(value)
    return out


def _audit_view(db: Session, request: Request, principal: Principal, page: str, description: str, severity: str):
    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.VIEW,
        resource_type=AuditResource.SYSTEM,
        resource_id=page,
        description=description,
        severity=severity,
    )


@router.get("/dashboard")
def user_dashboard(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return _render(ReportService().user_dashboard(db, created_by=principal.name))


@router.get("/dashboard/stats")
def dashboard_stats(
    db: Session = Depends(get_db),
    _principal: Principal = Depends(staff),
):
    return _render(ReportService().quick_stats(db))


@router.get("/admin/dashboard")
def admin_dashboard(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(admin_only),
):
    _audit_view(db, request, principal, "admin_dashboard", "Admin dashboard accessed", AuditSeverity.low.value)
    return _render(ReportService().admin_dashboard(db))


@router.get("/admin/reports")
def admin_reports(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(admin_only),
):
    _audit_view(
        db, request, principal, "admin_reports", "Admin accessed reports and analytics", AuditSeverity.medium.value
    )
    return _render(ReportService().admin_reports(db))


@router.get("/admin/analytics")
def admin_analytics(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(admin_only),
):
    _audit_view(
        db, request, principal, "admin_analytics", "Admin accessed advanced analytics", AuditSeverity.medium.value
    )
    return _render(ReportService().admin_analytics(db))


@router.get("/client/dashboard")
def client_dashboard(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    _audit_view(db, request, principal, "client_dashboard", "Client dashboard accessed", AuditSeverity.low.value)
    return _render(ReportService().client_dashboard(db))


@router.get("/client/reports")
def client_reports(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    _audit_view(db, request, principal, "client_reports", "Client reports accessed", AuditSeverity.medium.value)
    return _render(ReportService().client_reports(db))
