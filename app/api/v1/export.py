from __future__ import annotations

from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.auth_deps import require_roles
from app.core.deps_params import installation_filters
from app.core.streaming import csv_stream
from app.db.session import get_db
from app.models.enums import AuditSeverity, UserType
from app.policies.export_policy import export_scope
from app.policies.rbac import Principal
from app.services.audit_service import AuditAction, AuditResource, audit_event
from app.services.export_service import ExportInstallationsService
from app.services.installation_service import InstallationFilters

router = APIRouter(prefix="/export")


@router.get("/installations.csv")
def export_installations_csv(
    request: Request,
    filters: InstallationFilters = Depends(installation_filters),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles(UserType.Admin, UserType.Client)),
):
    scope = export_scope(principal)
    svc = ExportInstallationsService()

    # rows are materialized so the session is not needed while streaming
    rows = list(svc.iter_rows(db, scope=scope, filters=filters, today=date.today()))

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.EXPORT,
        resource_type=AuditResource.INSTALLATION,
        resource_id="csv_export",
        description=f"Exported {len(rows)} DC installations to CSV",
        severity=AuditSeverity.medium.value,
        metadata={"filters": {k: v for k, v in vars(filters).items() if v is not None}, "count": len(rows)},
    )

    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
    return StreamingResponse(
        csv_stream(rows, svc.columns(scope)),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="dc_installations_{stamp}.csv"'},
    )
