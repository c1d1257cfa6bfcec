# app/api/v1/installations.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal, require_roles
from app.core.deps_params import installation_filters
from app.db.session import get_db
from app.models.enums import AuditSeverity, UserType
from app.policies.rbac import Principal, can_view_installation
from app.schemas.installations import (
    AssignTechnicianRequest,
    InstallationCreate,
    InstallationListResponse,
    InstallationResponse,
    InstallationUpdate,
    ShareLinkResponse,
    StatusChangeRequest,
)
from app.services.attachment_service import AttachmentService
from app.services.audit_service import (
    AuditAction,
    AuditResource,
    audit_event,
    installation_severity,
)
from app.services.installation_service import (
    InstallationFilters,
    InstallationService,
    UpdateResult,
)
from app.services.share_service import ShareService
from app.services.storage import LocalBlobStorage, get_storage

router = APIRouter(prefix="/installations")

staff = require_roles(UserType.Admin, UserType.Client)
admin_only = require_roles(UserType.Admin)


def _audit_update(
    db: Session,
    request: Request,
    principal: Principal,
    result: UpdateResult,
    *,
    action: str,
    description: str,
) -> None:
    if not result.audit_worthy:
        return
    inst = result.installation
    audit_event(
        db,
        request=request,
        principal=principal,
        action=action,
        resource_type=AuditResource.INSTALLATION,
        resource_id=inst.audit_identifier,
        description=description,
        severity=installation_severity(AuditAction.UPDATE, inst.priority),
        old_values=result.old_values,
        new_values=result.new_values,
    )


@router.post("", response_model=InstallationResponse, status_code=201)
def create_installation(
    request: Request,
    body: InstallationCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    inst = InstallationService().create(
        db, fields=body.model_dump(exclude_unset=True), actor=principal.name
    )

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.CREATE,
        resource_type=AuditResource.INSTALLATION,
        resource_id=inst.audit_identifier,
        description=f"Created DC Installation #{inst.sr_no}",
        severity=installation_severity(AuditAction.CREATE, inst.priority),
        new_values={"sr_no": inst.sr_no, "region_division": inst.region_division, "district": inst.district},
    )
    return InstallationResponse.from_model(inst)


@router.get("", response_model=InstallationListResponse)
def list_installations(
    filters: InstallationFilters = Depends(installation_filters),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
    _principal: Principal = Depends(staff),
):
    result = InstallationService().list(db, filters=filters, page=page, per_page=per_page)
    return InstallationListResponse(
        items=[InstallationResponse.from_model(i) for i in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        pages=result.pages,
        regions=result.regions,
        districts=result.districts,
    )


@router.get("/shared/{token}", response_model=InstallationResponse, name="view_shared_installation")
def view_shared_installation(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    inst = ShareService().resolve(db, token=token)

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.VIEW,
        resource_type=AuditResource.INSTALLATION,
        resource_id=inst.audit_identifier,
        description=f"Shared link access to DC Installation #{inst.sr_no} by user: {principal.name}",
        metadata={"shared": True},
    )
    return InstallationResponse.from_model(inst)


@router.get("/{installation_id}", response_model=InstallationResponse)
def get_installation(
    installation_id: str,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    inst = InstallationService().get(db, installation_id=installation_id)
    if not can_view_installation(principal, inst.created_by):
        raise HTTPException(status_code=403, detail="You do not have permission to view this installation.")

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.VIEW,
        resource_type=AuditResource.INSTALLATION,
        resource_id=inst.audit_identifier,
        description=f"Viewed DC Installation #{inst.sr_no}",
    )
    return InstallationResponse.from_model(inst)


@router.put("/{installation_id}", response_model=InstallationResponse)
def update_installation(
    installation_id: str,
    request: Request,
    body: InstallationUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    result = InstallationService().update(
        db,
        installation_id=installation_id,
        fields=body.model_dump(exclude_unset=True),
        actor=principal.name,
    )
    _audit_update(
        db,
        request,
        principal,
        result,
        action=AuditAction.UPDATE,
        description=f"Updated DC Installation #{result.installation.sr_no}",
    )
    return InstallationResponse.from_model(result.installation)


@router.delete("/{installation_id}")
def delete_installation(
    installation_id: str,
    request: Request,
    db: Session = Depends(get_db),
    storage: LocalBlobStorage = Depends(get_storage),
    principal: Principal = Depends(admin_only),
):
    inst = InstallationService().soft_delete(
        db,
        installation_id=installation_id,
        actor=principal.name,
        attachments=AttachmentService(storage),
    )

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.DELETE,
        resource_type=AuditResource.INSTALLATION,
        resource_id=inst.audit_identifier,
        description=f"Deleted DC Installation #{inst.sr_no}",
        severity=installation_severity(AuditAction.DELETE, inst.priority),
        old_values={"sr_no": inst.sr_no, "receiver_name": inst.receiver_name, "district": inst.district},
    )
    return {"status": "deleted", "id": str(inst.id), "srNo": inst.sr_no}


@router.post("/{installation_id}/share", response_model=ShareLinkResponse)
def share_installation(
    installation_id: str,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    link = ShareService().create_link(db, installation_id=installation_id)
    inst = link.installation

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.SHARE,
        resource_type=AuditResource.INSTALLATION,
        resource_id=inst.audit_identifier,
        description=f"Generated shareable link for DC Installation #{inst.sr_no}",
        severity=AuditSeverity.medium.value,
        metadata={"expires_at": link.expires_at},
    )
    return ShareLinkResponse(
        share_url=str(request.url_for("view_shared_installation", token=link.token)),
        token=link.token,
        expires_at=link.expires_at,
    )


# ---------------------------
# Status helpers
# ---------------------------


@router.post("/{installation_id}/mark-delivered", response_model=InstallationResponse)
def mark_delivered(
    installation_id: str,
    request: Request,
    body: Optional[StatusChangeRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    result = InstallationService().mark_delivered(
        db, installation_id=installation_id, actor=principal.name, on=body.on if body else None
    )
    _audit_update(
        db,
        request,
        principal,
        result,
        action=AuditAction.STATUS_CHANGE,
        description=f"Marked DC Installation #{result.installation.sr_no} as delivered",
    )
    return InstallationResponse.from_model(result.installation)


@router.post("/{installation_id}/mark-installed", response_model=InstallationResponse)
def mark_installed(
    installation_id: str,
    request: Request,
    body: Optional[StatusChangeRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    result = InstallationService().mark_installed(
        db, installation_id=installation_id, actor=principal.name, on=body.on if body else None
    )
    _audit_update(
        db,
        request,
        principal,
        result,
        action=AuditAction.STATUS_CHANGE,
        description=f"Marked DC Installation #{result.installation.sr_no} as installed",
    )
    return InstallationResponse.from_model(result.installation)


@router.post("/{installation_id}/assign-technician", response_model=InstallationResponse)
def assign_technician(
    installation_id: str,
    request: Request,
    body: AssignTechnicianRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    result = InstallationService().assign_technician(
        db, installation_id=installation_id, technician=body.technician, actor=principal.name
    )
    _audit_update(
        db,
        request,
        principal,
        result,
        action=AuditAction.UPDATE,
        description=f"Assigned technician {body.technician} to DC Installation #{result.installation.sr_no}",
    )
    return InstallationResponse.from_model(result.installation)
