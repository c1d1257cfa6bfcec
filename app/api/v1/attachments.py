# app/api/v1/attachments.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask

from app.core.auth_deps import get_current_principal, require_roles
from app.core.config import get_settings
from app.db.session import get_db
from app.models.enums import UserType
from app.policies.rbac import Principal, can_view_installation
from app.schemas.installations import (
    AttachManyResponse,
    AttachResult,
    BundleRequest,
    InstallationResponse,
)
from app.services.attachment_service import AttachmentService, Bundle, Upload
from app.services.audit_service import AuditAction, AuditResource, audit_event
from app.services.installation_service import InstallationService
from app.services.storage import LocalBlobStorage, get_storage

router = APIRouter(prefix="/installations")

staff = require_roles(UserType.Admin, UserType.Client)


def get_attachment_service(storage: LocalBlobStorage = Depends(get_storage)) -> AttachmentService:
    return AttachmentService(storage)


def _read_upload(file: UploadFile) -> Upload:
    # one byte past the limit is enough to reject
    limit = get_settings().max_upload_bytes
    return Upload(
        filename=file.filename or "",
        content=file.file.read(limit + 1),
    )


def _check_owner(db: Session, principal: Principal, installation_id: str) -> None:
    inst = InstallationService().get(db, installation_id=installation_id)
    if not can_view_installation(principal, inst.created_by):
        raise HTTPException(status_code=403, detail="You do not have permission to modify this installation.")


@contextmanager
def _discard_on_error(bundle: Bundle) -> Iterator[None]:
    try:
        yield
    except BaseException:
        bundle.path.unlink(missing_ok=True)
        raise


def _zip_response(bundle: Bundle) -> FileResponse:
    return FileResponse(
        bundle.path,
        media_type="application/zip",
        filename=bundle.download_name,
        background=BackgroundTask(bundle.path.unlink, missing_ok=True),
    )


@router.post("/bundle")
def bundle_many(
    request: Request,
    body: BundleRequest,
    db: Session = Depends(get_db),
    svc: AttachmentService = Depends(get_attachment_service),
    principal: Principal = Depends(staff),
):
    bundle = svc.bundle_many(db, installation_ids=body.installation_ids, downloaded_by=principal.name)

    with _discard_on_error(bundle):
        audit_event(
            db,
            request=request,
            principal=principal,
            action=AuditAction.DOWNLOAD,
            resource_type=AuditResource.INSTALLATION,
            resource_id="bulk_download",
            description=f"Bulk downloaded files for {len(bundle.sr_nos)} installations",
            metadata={"sr_nos": bundle.sr_nos, "file_count": bundle.file_count},
        )
    return _zip_response(bundle)


@router.post("/{installation_id}/attachments/{slot}", response_model=InstallationResponse)
def upload_attachment(
    installation_id: str,
    slot: str,
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    svc: AttachmentService = Depends(get_attachment_service),
    principal: Principal = Depends(get_current_principal),
):
    _check_owner(db, principal, installation_id)
    inst = svc.attach(
        db,
        installation_id=installation_id,
        slot=slot,
        upload=_read_upload(file),
        actor=principal.name,
    )

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.UPDATE,
        resource_type=AuditResource.INSTALLATION,
        resource_id=inst.audit_identifier,
        description=f"Uploaded {slot} for DC Installation #{inst.sr_no}",
        new_values={slot: getattr(inst, slot)},
    )
    return InstallationResponse.from_model(inst)


@router.post("/{installation_id}/attachments", response_model=AttachManyResponse)
def upload_attachments(
    installation_id: str,
    request: Request,
    delivery_report_file: Optional[UploadFile] = File(None),
    installation_report_file: Optional[UploadFile] = File(None),
    belarc_report_file: Optional[UploadFile] = File(None),
    back_side_photo_file: Optional[UploadFile] = File(None),
    os_installation_photo_file: Optional[UploadFile] = File(None),
    keyboard_photo_file: Optional[UploadFile] = File(None),
    mouse_photo_file: Optional[UploadFile] = File(None),
    screenshot_file: Optional[UploadFile] = File(None),
    evidence_file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    svc: AttachmentService = Depends(get_attachment_service),
    principal: Principal = Depends(get_current_principal),
):
    _check_owner(db, principal, installation_id)

    given = {
        "delivery_report_file": delivery_report_file,
        "installation_report_file": installation_report_file,
        "belarc_report_file": belarc_report_file,
        "back_side_photo_file": back_side_photo_file,
        "os_installation_photo_file": os_installation_photo_file,
        "keyboard_photo_file": keyboard_photo_file,
        "mouse_photo_file": mouse_photo_file,
        "screenshot_file": screenshot_file,
        "evidence_file": evidence_file,
    }
    uploads: Dict[str, Upload] = {slot: _read_upload(f) for slot, f in given.items() if f is not None}
    if not uploads:
        raise HTTPException(status_code=422, detail="No files were uploaded.")

    results = svc.attach_many(
        db, installation_id=installation_id, uploads=uploads, actor=principal.name
    )

    stored = {r["slot"]: r["stored_key"] for r in results if r["stored_key"]}
    if stored:
        inst = InstallationService().get(db, installation_id=installation_id)
        audit_event(
            db,
            request=request,
            principal=principal,
            action=AuditAction.UPDATE,
            resource_type=AuditResource.INSTALLATION,
            resource_id=inst.audit_identifier,
            description=f"Uploaded {len(stored)} file(s) for DC Installation #{inst.sr_no}",
            new_values=stored,
            metadata={"failed": [r["slot"] for r in results if r["error"]]},
        )

    return AttachManyResponse(
        installation_id=installation_id,
        results=[AttachResult(**r) for r in results],
    )


@router.get("/{installation_id}/attachments/{slot}")
def download_attachment(
    installation_id: str,
    slot: str,
    request: Request,
    db: Session = Depends(get_db),
    svc: AttachmentService = Depends(get_attachment_service),
    principal: Principal = Depends(staff),
):
    stored = svc.download(db, installation_id=installation_id, slot=slot)

    inst = InstallationService().get(db, installation_id=installation_id)
    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.DOWNLOAD,
        resource_type=AuditResource.INSTALLATION,
        resource_id=inst.audit_identifier,
        description=f"Downloaded {slot} for DC Installation #{inst.sr_no}",
        metadata={"file": stored.download_name},
    )
    return FileResponse(stored.path, filename=stored.download_name)


@router.get("/{installation_id}/bundle")
def bundle_installation(
    installation_id: str,
    request: Request,
    db: Session = Depends(get_db),
    svc: AttachmentService = Depends(get_attachment_service),
    principal: Principal = Depends(staff),
):
    bundle = svc.bundle(db, installation_id=installation_id)

    with _discard_on_error(bundle):
        audit_event(
            db,
            request=request,
            principal=principal,
            action=AuditAction.DOWNLOAD,
            resource_type=AuditResource.INSTALLATION,
            resource_id=bundle.sr_nos[0],
            description=f"Downloaded all files for DC Installation #{bundle.sr_nos[0]}",
            metadata={"file_count": bundle.file_count},
        )
    return _zip_response(bundle)
