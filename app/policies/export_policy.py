from __future__ import annotations
from dataclasses import dataclass
from app.policies.rbac import Principal


@dataclass(frozen=True)
class ExportScope:
    # internal columns (DC/IR No, technician, dispatch date, created by)
    include_internal: bool
    user_id: str


def export_scope(principal: Principal) -> ExportScope:
    return ExportScope(include_internal=principal.is_admin, user_id=principal.user_id)
