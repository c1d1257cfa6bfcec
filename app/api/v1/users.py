# app/api/v1/users.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import require_roles
from app.db.session import get_db
from app.models.enums import AuditSeverity, UserType
from app.models.user import User
from app.policies.rbac import Principal
from app.schemas.users import UserCreate, UserResponse
from app.services import auth_service
from app.services.audit_service import AuditAction, AuditResource, audit_event

router = APIRouter(prefix="/admin/users")

admin_only = require_roles(UserType.Admin)


def _resp(u: User) -> UserResponse:
    return UserResponse(
        id=str(u.id),
        name=u.name,
        email=u.email,
        userType=u.user_type,
        isActive=bool(u.is_active),
        createdAtIso=u.created_at.isoformat(),
    )


@router.get("", response_model=List[UserResponse])
def list_users(
    user_type: Optional[UserType] = Query(None),
    db: Session = Depends(get_db),
    _principal: Principal = Depends(admin_only),
):
    return [_resp(u) for u in auth_service.list_users(db, user_type=user_type)]


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(admin_only),
):
    user = auth_service.create_user(db, payload=body)

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.CREATE,
        resource_type=AuditResource.USER,
        resource_id=str(user.id),
        description=f"Admin created user: {user.name} ({user.email})",
        severity=AuditSeverity.medium.value,
        new_values={"name": user.name, "email": user.email, "user_type": user.user_type},
    )
    return _resp(user)


@router.patch("/{user_id}/toggle-status", response_model=UserResponse)
def toggle_user_status(
    user_id: str,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(admin_only),
):
    user = auth_service.toggle_status(db, user_id=user_id, actor=principal)

    audit_event(
        db,
        request=request,
        principal=principal,
        action=AuditAction.STATUS_CHANGE,
        resource_type=AuditResource.USER,
        resource_id=str(user.id),
        description=f"User {'activated' if user.is_active else 'deactivated'}: {user.name}",
        severity=AuditSeverity.medium.value,
        old_values={"is_active": not user.is_active},
        new_values={"is_active": user.is_active},
    )
    return _resp(user)
