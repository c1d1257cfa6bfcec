from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, or_, select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.enums import (
    DeliveryStatus,
    InstallationStatus,
    RecordState,
    StatusFilter,
)
from app.models.installation import OVERDUE_AFTER_DAYS, Installation
from app.schemas.installations import InstallationCreate, InstallationUpdate
from app.services.audit_service import AUDITED_UPDATE_FIELDS
from app.services.serial_allocator import next_sr_no

if TYPE_CHECKING:
    from app.services.attachment_service import AttachmentService

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def validate_fields(schema: Type[M], fields: Mapping[str, Any]) -> M:
    """Pydantic validation, re-raised as a field-level domain ValidationError."""
    try:
        return schema.model_validate(dict(fields))
    except PydanticValidationError as exc:
        errors: Dict[str, List[str]] = {}
        for err in exc.errors():
            name = ".".join(str(p) for p in err["loc"]) or "__root__"
            errors.setdefault(name, []).append(err["msg"])
        raise ValidationError("The given data was invalid.", errors=errors) from exc


def coerce_id(raw: Any) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise NotFoundError("Installation not found.")


def live_only():
    return Installation.record_state == RecordState.active.value


def overdue_clause(today: Optional[date] = None):
    today = today or date.today()
    return and_(
        Installation.installation_status == InstallationStatus.pending.value,
        Installation.delivery_date.is_not(None),
        Installation.delivery_date <= today - timedelta(days=OVERDUE_AFTER_DAYS),
    )


@dataclass(frozen=True)
class InstallationFilters:
    status: Optional[StatusFilter] = None
    delivery_status: Optional[DeliveryStatus] = None
    region: Optional[str] = None
    district: Optional[str] = None
    priority: Optional[str] = None
    created_by: Optional[str] = None
    search: Optional[str] = None
    # created_at range, inclusive calendar days
    date_from: Optional[date] = None
    date_to: Optional[date] = None


@dataclass
class InstallationPage:
    items: List[Installation]
    total: int
    page: int
    per_page: int
    pages: int
    regions: List[str] = field(default_factory=list)
    districts: List[str] = field(default_factory=list)


@dataclass
class UpdateResult:
    installation: Installation
    # audited fields that actually changed
    old_values: Dict[str, Any]
    new_values: Dict[str, Any]

    @property
    def audit_worthy(self) -> bool:
        return bool(self.new_values)


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _audited_snapshot(inst: Installation) -> Dict[str, Any]:
    return {f: getattr(inst, f) for f in AUDITED_UPDATE_FIELDS}


class InstallationService:
    # ---------------------------
    # Reads
    # ---------------------------

    def get(self, db: Session, *, installation_id: Any) -> Installation:
        inst = db.get(Installation, coerce_id(installation_id))
        if not inst or inst.is_deleted:
            raise NotFoundError("Installation not found.")
        return inst

    def list(
        self,
        db: Session,
        *,
        filters: InstallationFilters,
        page: int = 1,
        per_page: Optional[int] = None,
        today: Optional[date] = None,
    ) -> InstallationPage:
        per_page = per_page or get_settings().default_page_size
        page = max(1, page)
        conds = self.conditions(filters, today)

        total = db.execute(select(func.count(Installation.id)).where(*conds)).scalar_one()
        items = (
            db.execute(
                select(Installation)
                .where(*conds)
                .order_by(Installation.created_at.desc(), Installation.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
            .scalars()
            .all()
        )

        return InstallationPage(
            items=list(items),
            total=total,
            page=page,
            per_page=per_page,
            pages=max(1, math.ceil(total / per_page)),
            regions=self._distinct(db, Installation.region_division),
            districts=self._distinct(db, Installation.district),
        )

    def iter_filtered(
        self, db: Session, *, filters: InstallationFilters, today: Optional[date] = None
    ) -> Iterator[Installation]:
        stmt = (
            select(Installation)
            .where(*self.conditions(filters, today))
            .order_by(Installation.created_at.desc(), Installation.id.desc())
        )
        yield from db.execute(stmt).scalars().yield_per(500)

    def conditions(self, filters: InstallationFilters, today: Optional[date] = None) -> list:
        conds = [live_only()]

        if filters.status == StatusFilter.completed:
            conds.append(Installation.installation_status == InstallationStatus.installed.value)
        elif filters.status == StatusFilter.pending:
            conds.append(Installation.installation_status == InstallationStatus.pending.value)
        elif filters.status == StatusFilter.in_progress:
            conds.append(Installation.installation_status == InstallationStatus.in_progress.value)
        elif filters.status == StatusFilter.overdue:
            conds.append(overdue_clause(today))

        if filters.delivery_status:
            conds.append(Installation.delivery_status == DeliveryStatus(filters.delivery_status).value)
        if filters.region:
            conds.append(Installation.region_division == filters.region)
        if filters.district:
            conds.append(Installation.district == filters.district)
        if filters.priority:
            conds.append(Installation.priority == filters.priority)
        if filters.created_by:
            conds.append(Installation.created_by == filters.created_by)

        term = (filters.search or "").strip()
        if term:
            conds.append(
                or_(
                    Installation.sr_no.icontains(term, autoescape=True),
                    Installation.receiver_name.icontains(term, autoescape=True),
                    Installation.location_address.icontains(term, autoescape=True),
                    Installation.district.icontains(term, autoescape=True),
                )
            )

        if filters.date_from:
            conds.append(Installation.created_at >= _day_start(filters.date_from))
        if filters.date_to:
            conds.append(Installation.created_at < _day_start(filters.date_to + timedelta(days=1)))

        return conds

    def _distinct(self, db: Session, col) -> List[str]:
        stmt = select(col).where(live_only(), col.is_not(None)).distinct().order_by(col)
        return [v for v in db.execute(stmt).scalars() if v]

    # ---------------------------
    # Writes
    # ---------------------------

    def create(
        self,
        db: Session,
        *,
        fields: Mapping[str, Any],
        actor: str,
        year: Optional[int] = None,
    ) -> Installation:
        payload = validate_fields(InstallationCreate, fields)
        data = payload.model_dump(exclude={"sr_no"})
        supplied = payload.sr_no

        if supplied:
            exists = db.execute(
                select(Installation.id).where(Installation.sr_no == supplied)
            ).first()
            if exists:
                raise ConflictError(f"SR No {supplied} already exists.")

        attempts = 1 if supplied else max(1, get_settings().sr_allocation_attempts)

        for attempt in range(1, attempts + 1):
            sr_no = supplied or next_sr_no(db, year)
            inst = Installation(**data, sr_no=sr_no, created_by=actor, updated_by=actor)
            db.add(inst)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                if supplied:
                    raise ConflictError(f"SR No {supplied} already exists.")
                logger.warning(
                    "sr_no collision on insert",
                    extra={"sr_no": sr_no, "attempt": attempt, "max_attempts": attempts},
                )
                continue

            db.refresh(inst)
            logger.info("installation created", extra={"sr_no": inst.sr_no, "id": str(inst.id)})
            return inst

        raise ConflictError("Could not allocate a unique SR No. Please retry.")

    def update(
        self,
        db: Session,
        *,
        installation_id: Any,
        fields: Mapping[str, Any],
        actor: str,
    ) -> UpdateResult:
        if "sr_no" in fields:
            raise ValidationError.for_field("sr_no", "SR No cannot be changed after creation.")

        inst = self.get(db, installation_id=installation_id)
        payload = validate_fields(InstallationUpdate, fields)
        return self._apply(db, inst, payload.model_dump(exclude_unset=True), actor)

    def soft_delete(
        self,
        db: Session,
        *,
        installation_id: Any,
        actor: str,
        attachments: "AttachmentService",
    ) -> Installation:
        inst = self.get(db, installation_id=installation_id)

        # blobs go first; a blob that will not delete never blocks the delete
        attachments.remove_all(inst)

        inst.record_state = RecordState.deleted.value
        inst.deleted_at = datetime.now(timezone.utc)
        inst.updated_by = actor
        db.commit()
        db.refresh(inst)

        logger.info("installation deleted", extra={"sr_no": inst.sr_no, "id": str(inst.id)})
        return inst

    # ---------------------------
    # Status helpers
    # ---------------------------

    def mark_delivered(
        self, db: Session, *, installation_id: Any, actor: str, on: Optional[date] = None
    ) -> UpdateResult:
        inst = self.get(db, installation_id=installation_id)
        return self._apply(
            db,
            inst,
            {"delivery_status": DeliveryStatus.delivered.value, "delivery_date": on or date.today()},
            actor,
        )

    def mark_installed(
        self, db: Session, *, installation_id: Any, actor: str, on: Optional[date] = None
    ) -> UpdateResult:
        inst = self.get(db, installation_id=installation_id)
        return self._apply(
            db,
            inst,
            {
                "installation_status": InstallationStatus.installed.value,
                "installation_date": on or date.today(),
            },
            actor,
        )

    def assign_technician(
        self, db: Session, *, installation_id: Any, technician: str, actor: str
    ) -> UpdateResult:
        inst = self.get(db, installation_id=installation_id)
        return self._apply(db, inst, {"assigned_technician": technician}, actor)

    def _apply(
        self, db: Session, inst: Installation, changes: Dict[str, Any], actor: str
    ) -> UpdateResult:
        before = _audited_snapshot(inst)

        for key, value in changes.items():
            setattr(inst, key, value)
        inst.updated_by = actor

        db.commit()
        db.refresh(inst)

        after = _audited_snapshot(inst)
        changed = [k for k in AUDITED_UPDATE_FIELDS if before[k] != after[k]]
        return UpdateResult(
            installation=inst,
            old_values={k: before[k] for k in changed},
            new_values={k: after[k] for k in changed},
        )
