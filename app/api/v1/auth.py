#app/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.models.enums import AuditSeverity
from app.policies.rbac import Principal
from app.schemas.auth import LoginRequest, MeResponse, TokenResponse
from app.services.audit_service import AuditAction, AuditResource, audit_event
from app.services.auth_service import (
    InactiveAccountError,
    authenticate,
    issue_token,
    principal_for,
)

router = APIRouter(prefix="/auth")


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, request: Request, db: Session = Depends(get_db)):
    try:
        user = authenticate(db, req.email, req.password)
    except InactiveAccountError as exc:
        audit_event(
            db,
            request=request,
            principal=None,
            action=AuditAction.LOGIN_FAILED,
            resource_type=AuditResource.USER,
            resource_id=str(exc.user.id),
            description=f"Login attempt blocked - account inactive: {exc.user.name} ({exc.user.email})",
            severity=AuditSeverity.medium.value,
        )
        raise HTTPException(
            status_code=403,
            detail="Your account has been deactivated. Please contact administrator.",
        )

    if not user:
        audit_event(
            db,
            request=request,
            principal=None,
            action=AuditAction.LOGIN_FAILED,
            resource_type=AuditResource.USER,
            resource_id="unknown",
            description=f"Failed login attempt for email: {req.email}",
            severity=AuditSeverity.medium.value,
            metadata={"attempted_email": req.email},
        )
        raise HTTPException(status_code=401, detail="Invalid credentials.")

    principal = principal_for(user)
    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.LOGIN,
        resource_type=AuditResource.USER,
        resource_id=principal.user_id,
        description=f"User logged in: {user.name} ({user.email})",
    )
    return TokenResponse(access_token=issue_token(user))


@router.get("/me", response_model=MeResponse)
def get_me(principal: Principal = Depends(get_current_principal)):
    return MeResponse(
        userId=principal.user_id,
        name=principal.name,
        email=principal.email,
        userType=principal.user_type.value,
    )
