# app/services/auth_service.py
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.security import create_access_token, hash_password, verify_password
from app.models.enums import UserType
from app.models.user import User
from app.policies.rbac import Principal
from app.schemas.users import UserCreate

logger = logging.getLogger(__name__)


class InactiveAccountError(Exception):
    """Credentials matched, but the account is switched off."""

    def __init__(self, user: User):
        super().__init__(f"account inactive: {user.email}")
        self.user = user


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(
        select(User).where(func.lower(User.email) == _normalize_email(email))
    ).scalar_one_or_none()


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    """
    Returns the user on a password match, None otherwise.
    Raises InactiveAccountError when the password matches a deactivated account.
    """
    user = find_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        raise InactiveAccountError(user)
    return user


def principal_for(user: User) -> Principal:
    return Principal(
        user_id=str(user.id),
        name=user.name,
        email=user.email,
        user_type=UserType(user.user_type),
    )


def issue_token(user: User) -> str:
    return create_access_token(
        subject=str(user.id),
        claims={
            "user_id": str(user.id),
            "user_type": user.user_type,
            "name": user.name,
            "email": user.email,
        },
    )


def create_user(db: Session, *, payload: UserCreate) -> User:
    email = _normalize_email(payload.email)
    if find_by_email(db, email):
        raise ConflictError("The email has already been taken.")

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        user_type=UserType(payload.user_type).value,
        is_active=payload.is_active,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("The email has already been taken.")
    db.refresh(user)

    logger.info("user created", extra={"user_id": str(user.id), "user_type": user.user_type})
    return user


def list_users(db: Session, *, user_type: Optional[UserType] = None) -> List[User]:
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if user_type:
        stmt = stmt.where(User.user_type == UserType(user_type).value)
    return list(db.execute(stmt).scalars())


def toggle_status(db: Session, *, user_id: str, actor: Principal) -> User:
    try:
        user = db.get(User, uuid.UUID(str(user_id)))
    except ValueError:
        user = None
    if not user:
        raise NotFoundError("User not found.")
    if str(user.id) == actor.user_id:
        raise ValidationError.for_field("user_id", "You cannot change your own status.")

    user.is_active = not user.is_active
    db.commit()
    db.refresh(user)
    return user
