from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.auth_deps import require_roles
from app.core.deps_params import audit_filters
from app.core.streaming import csv_stream
from app.db.session import get_db
from app.models.audit_log import AuditLog
from app.models.enums import AuditSeverity, UserType
from app.policies.rbac import Principal
from app.schemas.audit import AuditClearResponse, AuditLogListResponse, AuditLogResponse
from app.services.audit_service import (
    AUDIT_RETENTION_MAX_DAYS,
    AUDIT_RETENTION_MIN_DAYS,
    AuditAction,
    AuditFilters,
    AuditResource,
    AuditService,
    audit_event,
)
from app.services.export_service import ExportAuditService

router = APIRouter(prefix="/admin/audit")

admin_only = require_roles(UserType.Admin)


def _iso(dt):
    return dt.isoformat() if dt else None


def _resp(row: AuditLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=str(row.id),
        createdAtIso=_iso(row.created_at),
        requestId=row.request_id,
        userId=row.user_id,
        userName=row.user_name,
        userEmail=row.user_email,
        userType=row.user_type,
        action=row.action,
        resourceType=row.resource_type,
        resourceId=row.resource_id,
        description=row.description,
        severity=row.severity,
        oldValues=row.old_values,
        newValues=row.new_values,
        metadata=row.metadata_json,
        ipAddress=row.ip_address,
        userAgent=row.user_agent,
        url=row.url,
        method=row.method,
    )


@router.get("", response_model=AuditLogListResponse)
def list_audit_logs(
    filters: AuditFilters = Depends(audit_filters),
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    _principal: Principal = Depends(admin_only),
):
    svc = AuditService()
    rows, total, pages = svc.list_entries(db, filters=filters, page=page, per_page=per_page)
    return AuditLogListResponse(
        records=[_resp(r) for r in rows],
        total=total,
        page=page,
        perPage=per_page,
        pages=pages,
        filters=svc.filter_options(db),
    )


@router.get("/stats")
def audit_stats(
    db: Session = Depends(get_db),
    _principal: Principal = Depends(admin_only),
):
    return AuditService().stats(db)


@router.get("/export.csv")
def export_audit_csv(
    request: Request,
    filters: AuditFilters = Depends(audit_filters),
    db: Session = Depends(get_db),
    principal: Principal = Depends(admin_only),
):
    svc = ExportAuditService()
    rows = list(svc.iter_rows(db, filters=filters))

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.EXPORT,
        resource_type=AuditResource.SYSTEM,
        resource_id="audit_logs",
        description=f"Exported {len(rows)} audit log entries",
        severity=AuditSeverity.high.value,
        metadata={"filters": filters.as_dict(), "count": len(rows)},
    )

    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
    return StreamingResponse(
        csv_stream(rows, svc.columns()),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="audit_logs_{stamp}.csv"'},
    )


@router.delete("", response_model=AuditClearResponse)
def clear_audit_logs(
    request: Request,
    days: int = Query(..., ge=AUDIT_RETENTION_MIN_DAYS, le=AUDIT_RETENTION_MAX_DAYS),
    db: Session = Depends(get_db),
    principal: Principal = Depends(admin_only),
):
    deleted = AuditService().clear_older_than(db, days=days)

    # written after the purge so it survives it
    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.DELETE,
        resource_type=AuditResource.SYSTEM,
        resource_id="audit_logs",
        description=f"Cleared {deleted} audit log entries older than {days} days",
        severity=AuditSeverity.critical.value,
        metadata={"days": days, "deleted": deleted},
    )
    return AuditClearResponse(deleted=deleted, olderThanDays=days)
