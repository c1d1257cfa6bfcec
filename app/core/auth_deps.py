#app/core/auth_deps.py
from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.core.security import decode_token
from app.models.enums import UserType
from app.policies.rbac import Principal

bearer = HTTPBearer(auto_error=True)


def get_current_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Principal:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid and not expired
    - user_id and user_type are present
    - user_type is a valid UserType
    - scoped tokens (share links) are never accepted as logins
    """

    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    if payload.get("scope"):
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    user_id = payload.get("user_id")
    user_type = payload.get("user_type")

    if not user_id or not user_type:
        raise HTTPException(status_code=401, detail="Token missing required claims.")

    try:
        role = UserType(user_type)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid role in token.")

    principal = Principal(
        user_id=str(user_id),
        name=str(payload.get("name") or "Unknown"),
        email=str(payload.get("email") or ""),
        user_type=role,
    )

    # Make principal available to downstream middleware / handlers
    request.state.principal = principal

    return principal


def require_roles(*roles: UserType) -> Callable[..., Principal]:
    allowed = set(roles)

    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.user_type not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions.")
        return principal

    return _dep
