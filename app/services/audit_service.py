from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session
from starlette.requests import Request

from app.core.errors import ValidationError
from app.models.audit_log import AuditLog
from app.models.enums import AuditSeverity, Priority
from app.policies.rbac import Principal

logger = logging.getLogger(__name__)


class AuditAction:
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"
    DOWNLOAD = "DOWNLOAD"
    EXPORT = "EXPORT"
    SHARE = "SHARE"
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    STATUS_CHANGE = "STATUS_CHANGE"


class AuditResource:
    INSTALLATION = "DCInstallation"
    USER = "User"
    SYSTEM = "System"


# An installation update is only worth an audit row when one of these changed.
AUDITED_UPDATE_FIELDS = (
    "installation_status",
    "delivery_status",
    "priority",
    "assigned_technician",
    "installation_date",
    "delivery_date",
    "receiver_name",
    "location_address",
    "district",
    "region_division",
)

_DEFAULT_SEVERITY = {
    AuditAction.CREATE: AuditSeverity.low.value,
    AuditAction.UPDATE: AuditSeverity.low.value,
    AuditAction.DELETE: AuditSeverity.high.value,
}

AUDIT_RETENTION_MIN_DAYS = 30
AUDIT_RETENTION_MAX_DAYS = 365


def installation_severity(action: str, priority: Optional[str]) -> str:
    if priority == Priority.high.value:
        return AuditSeverity.critical.value if action == AuditAction.DELETE else AuditSeverity.medium.value
    return _DEFAULT_SEVERITY.get(action, AuditSeverity.low.value)


def audit_event(
    db: Session,
    *,
    request: Optional[Request],
    principal: Optional[Principal],
    action: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    description: Optional[str] = None,
    severity: str = AuditSeverity.low.value,
    old_values: Optional[Mapping[str, Any]] = None,
    new_values: Optional[Mapping[str, Any]] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> AuditLog:
    """
    Append-only audit record insert.

    Actor identity is copied from the principal; request metadata
    (ip, user agent, url, method, request id) from the request when present.
    """
    row = AuditLog(
        request_id=getattr(request.state, "request_id", None) if request is not None else None,
        user_id=principal.user_id if principal else None,
        user_name=principal.name if principal else None,
        user_email=principal.email if principal else None,
        user_type=principal.user_type.value if principal else None,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        description=description,
        severity=severity,
        old_values=jsonable_encoder(dict(old_values)) if old_values is not None else None,
        new_values=jsonable_encoder(dict(new_values)) if new_values is not None else None,
        metadata_json=jsonable_encoder(dict(metadata)) if metadata is not None else None,
    )
    if request is not None:
        row.ip_address = request.client.host if request.client else None
        row.user_agent = request.headers.get("user-agent")
        row.url = str(request.url)
        row.method = request.method

    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@dataclass(frozen=True)
class AuditFilters:
    action: Optional[str] = None
    resource: Optional[str] = None
    severity: Optional[str] = None
    user: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in jsonable_encoder(asdict(self)).items() if v not in (None, "")}


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


class AuditService:
    def _filtered(self, f: AuditFilters):
        stmt = select(AuditLog)
        if f.action:
            stmt = stmt.where(AuditLog.action == f.action)
        if f.resource:
            stmt = stmt.where(AuditLog.resource_type == f.resource)
        if f.severity:
            stmt = stmt.where(AuditLog.severity == f.severity)
        if f.user:
            stmt = stmt.where(AuditLog.user_id == f.user)
        if f.date_from:
            stmt = stmt.where(AuditLog.created_at >= _day_start(f.date_from))
        if f.date_to:
            stmt = stmt.where(AuditLog.created_at < _day_start(f.date_to + timedelta(days=1)))
        if f.search:
            like = f"%{f.search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(AuditLog.description).like(like),
                    func.lower(AuditLog.resource_id).like(like),
                    func.lower(AuditLog.user_name).like(like),
                    func.lower(AuditLog.user_email).like(like),
                )
            )
        return stmt

    def list_entries(
        self,
        db: Session,
        *,
        filters: AuditFilters,
        page: int = 1,
        per_page: int = 25,
    ) -> Tuple[List[AuditLog], int, int]:
        base = self._filtered(filters)
        total = db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
        rows = (
            db.execute(
                base.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
            .scalars()
            .all()
        )
        pages = max(1, math.ceil(total / per_page)) if per_page else 1
        return list(rows), total, pages

    def iter_entries(self, db: Session, *, filters: AuditFilters) -> Iterable[AuditLog]:
        stmt = self._filtered(filters).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        yield from db.execute(stmt).scalars().yield_per(1000)

    def count(self, db: Session, *, filters: AuditFilters) -> int:
        return db.execute(
            select(func.count()).select_from(self._filtered(filters).subquery())
        ).scalar_one()

    def stats(self, db: Session, *, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)

        def _count(*conds) -> int:
            return db.execute(select(func.count(AuditLog.id)).where(*conds)).scalar_one()

        def _breakdown(col, limit: Optional[int] = None) -> Dict[str, int]:
            cnt = func.count(AuditLog.id)
            stmt = select(col, cnt).where(col.is_not(None)).group_by(col)
            if limit:
                stmt = stmt.order_by(cnt.desc()).limit(limit)
            return {k: v for k, v in db.execute(stmt).all()}

        return {
            "total_entries": _count(),
            "today_entries": _count(AuditLog.created_at >= _day_start(now.date())),
            "week_entries": _count(AuditLog.created_at >= now - timedelta(weeks=1)),
            "month_entries": _count(AuditLog.created_at >= now - timedelta(days=30)),
            "critical_entries": _count(AuditLog.severity == AuditSeverity.critical.value),
            "high_entries": _count(AuditLog.severity == AuditSeverity.high.value),
            "actions_breakdown": _breakdown(AuditLog.action),
            "resources_breakdown": _breakdown(AuditLog.resource_type),
            "top_users": _breakdown(AuditLog.user_name, limit=10),
        }

    def clear_older_than(self, db: Session, *, days: int, now: Optional[datetime] = None) -> int:
        if not AUDIT_RETENTION_MIN_DAYS <= days <= AUDIT_RETENTION_MAX_DAYS:
            raise ValidationError.for_field(
                "days",
                f"days must be between {AUDIT_RETENTION_MIN_DAYS} and {AUDIT_RETENTION_MAX_DAYS}.",
            )
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        result = db.execute(delete(AuditLog).where(AuditLog.created_at < cutoff))
        db.commit()
        logger.info("audit log cleared", extra={"deleted": result.rowcount, "days": days})
        return result.rowcount or 0

    def filter_options(self, db: Session) -> Dict[str, List[str]]:
        """Distinct values for the audit list filter menus."""

        def _distinct(col) -> List[str]:
            stmt = select(col).where(col.is_not(None)).distinct().order_by(col)
            return [v for v in db.execute(stmt).scalars() if v]

        return {
            "actions": _distinct(AuditLog.action),
            "resources": _distinct(AuditLog.resource_type),
            "severities": [s.value for s in AuditSeverity],
        }
