#app/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable

from app.core.errors import PermissionDeniedError
from app.models.enums import UserType


@dataclass(frozen=True)
class Principal:
    user_id: str
    name: str
    email: str
    user_type: UserType

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.Admin

    @property
    def is_client(self) -> bool:
        return self.user_type == UserType.Client


# Role sets used by the routes
STAFF_ROLES = frozenset({UserType.Admin, UserType.Client})
ADMIN_ONLY = frozenset({UserType.Admin})
CLIENT_ONLY = frozenset({UserType.Client})


def require_role(principal: Principal, allowed: Iterable[UserType]) -> None:
    if principal.user_type not in set(allowed):
        raise PermissionDeniedError(
            f"Role {principal.user_type.value} not permitted for this action."
        )


def can_view_installation(principal: Principal, created_by: str | None) -> bool:
    """
    Admin and Client see every record; a plain User only what they submitted.
    created_by holds the display name captured at creation.
    """
    if principal.user_type in STAFF_ROLES:
        return True
    return created_by is not None and created_by == principal.name
