from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from app.core.attachment_slots import SLOT_KEYS
from app.models.enums import DeliveryStatus, InstallationStatus, Priority, UserType
from app.models.installation import Installation
from app.models.user import User
from app.services.installation_service import live_only, overdue_clause

logger = logging.getLogger(__name__)


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total else 0


def _year_bounds(year: int) -> tuple[datetime, datetime]:
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


def with_files_clause():
    return or_(*[getattr(Installation, slot).is_not(None) for slot in SLOT_KEYS])


class ReportService:
    """
    Read-only aggregation over live installation records for the
    dashboards and report pages. Nothing here writes.
    """

    def _count(self, db: Session, *conds) -> int:
        return db.execute(
            select(func.count(Installation.id)).where(live_only(), *conds)
        ).scalar_one()

    def _by(self, db: Session, col) -> Dict[str, int]:
        stmt = (
            select(col, func.count(Installation.id))
            .where(live_only(), col.is_not(None))
            .group_by(col)
            .order_by(col)
        )
        return {k: v for k, v in db.execute(stmt).all()}

    def _latest(self, db: Session, *conds, limit: int) -> List[Installation]:
        stmt = (
            select(Installation)
            .where(live_only(), *conds)
            .order_by(Installation.created_at.desc(), Installation.id.desc())
            .limit(limit)
        )
        return list(db.execute(stmt).scalars())

    # ---------------------------
    # Building blocks
    # ---------------------------

    def summary(
        self,
        db: Session,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
        conds: tuple = (),
    ) -> Dict[str, int]:
        now = now or datetime.now(timezone.utc)
        today = today or now.date()
        status = Installation.installation_status

        return {
            "total": self._count(db, *conds),
            "completed": self._count(db, status == InstallationStatus.installed.value, *conds),
            "pending": self._count(db, status == InstallationStatus.pending.value, *conds),
            "in_progress": self._count(db, status == InstallationStatus.in_progress.value, *conds),
            "overdue": self._count(db, overdue_clause(today), *conds),
            "high_priority": self._count(db, Installation.priority == Priority.high.value, *conds),
            "this_week": self._count(db, Installation.created_at >= now - timedelta(days=7), *conds),
            "this_month": self._count(db, Installation.created_at >= now - timedelta(days=30), *conds),
        }

    def status_distribution(self, db: Session, *, conds: tuple = ()) -> Dict[str, int]:
        status = Installation.installation_status
        return {
            "completed": self._count(db, status == InstallationStatus.installed.value, *conds),
            "pending": self._count(db, status == InstallationStatus.pending.value, *conds),
            "in_progress": self._count(db, status == InstallationStatus.in_progress.value, *conds),
        }

    def region_distribution(self, db: Session) -> Dict[str, int]:
        return self._by(db, Installation.region_division)

    def monthly_trends(self, db: Session, *, year: int) -> Dict[int, int]:
        """Records created per month (1..12) of the given year; months with none are 0."""
        start, end = _year_bounds(year)
        stmt = select(Installation.created_at).where(
            live_only(),
            Installation.created_at >= start,
            Installation.created_at < end,
        )
        counts = Counter(ts.month for ts in db.execute(stmt).scalars())
        return {m: counts.get(m, 0) for m in range(1, 13)}

    def regional_data(self, db: Session) -> List[Dict[str, Any]]:
        completed = func.sum(
            case((Installation.installation_status == InstallationStatus.installed.value, 1), else_=0)
        )
        stmt = (
            select(Installation.region_division, func.count(Installation.id), completed)
            .where(live_only(), Installation.region_division.is_not(None))
            .group_by(Installation.region_division)
            .order_by(Installation.region_division)
        )
        out = []
        for region, total, done in db.execute(stmt).all():
            done = int(done or 0)
            out.append(
                {
                    "region_division": region,
                    "total": total,
                    "completed": done,
                    "completion_rate": _rate(done, total),
                }
            )
        return out

    def status_by_region(self, db: Session) -> Dict[str, Dict[str, int]]:
        stmt = (
            select(
                Installation.region_division,
                Installation.installation_status,
                func.count(Installation.id),
            )
            .where(live_only(), Installation.region_division.is_not(None))
            .group_by(Installation.region_division, Installation.installation_status)
        )
        grouped: Dict[str, Dict[str, int]] = defaultdict(dict)
        for region, status, n in db.execute(stmt).all():
            grouped[region][status] = n
        return dict(sorted(grouped.items()))

    def recent_activity(self, db: Session, *, now: Optional[datetime] = None, days: int = 30) -> Dict[str, int]:
        now = now or datetime.now(timezone.utc)
        stmt = select(Installation.created_at).where(
            live_only(), Installation.created_at >= now - timedelta(days=days)
        )
        counts = Counter(ts.date().isoformat() for ts in db.execute(stmt).scalars())
        return dict(sorted(counts.items()))

    def average_completion_days(self, db: Session) -> float:
        stmt = select(Installation.delivery_date, Installation.installation_date).where(
            live_only(),
            Installation.delivery_date.is_not(None),
            Installation.installation_date.is_not(None),
        )
        spans = [(installed - delivered).days for delivered, installed in db.execute(stmt).all()]
        return round(sum(spans) / len(spans), 1) if spans else 0

    # ---------------------------
    # Pages
    # ---------------------------

    def admin_dashboard(
        self, db: Session, *, today: Optional[date] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        today = today or now.date()

        stats: Dict[str, Any] = self.summary(db, today=today, now=now)
        stats["total_installations"] = stats.pop("total")
        stats.update(
            total_users=db.execute(select(func.count(User.id))).scalar_one(),
            active_users=db.execute(select(func.count(User.id)).where(User.is_active.is_(True))).scalar_one(),
            admin_users=db.execute(
                select(func.count(User.id)).where(User.user_type == UserType.Admin.value)
            ).scalar_one(),
            client_users=db.execute(
                select(func.count(User.id)).where(User.user_type == UserType.Client.value)
            ).scalar_one(),
        )

        return {
            "stats": stats,
            "recent_installations": self._latest(db, limit=10),
            "overdue_installations": self._latest(db, overdue_clause(today), limit=5),
            "high_priority_installations": self._latest(
                db,
                Installation.priority == Priority.high.value,
                Installation.installation_status != InstallationStatus.installed.value,
                limit=5,
            ),
            "status_distribution": self.status_distribution(db),
            "region_distribution": self.region_distribution(db),
        }

    def admin_reports(
        self, db: Session, *, today: Optional[date] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        today = today or now.date()

        full = self.summary(db, today=today, now=now)
        stats = {k: full[k] for k in ("total", "completed", "pending", "overdue", "high_priority")}
        total = stats["total"]

        return {
            "stats": stats,
            "monthly_trends": self.monthly_trends(db, year=today.year),
            "regional_data": self.regional_data(db),
            "performance_metrics": {
                "completion_rate": _rate(stats["completed"], total),
                "overdue_rate": _rate(stats["overdue"], total),
                "high_priority_rate": _rate(stats["high_priority"], total),
            },
            "recent_activity": self.recent_activity(db, now=now),
            "status_by_region": self.status_by_region(db),
        }

    def admin_analytics(self, db: Session, *, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        total = self._count(db)
        return {
            "completion_rate": _rate(
                self._count(db, Installation.installation_status == InstallationStatus.installed.value),
                total,
            ),
            "avg_completion_time": self.average_completion_days(db),
            "overdue_percentage": _rate(self._count(db, overdue_clause(today)), total),
            "high_priority_percentage": _rate(
                self._count(db, Installation.priority == Priority.high.value), total
            ),
        }

    def client_dashboard(
        self, db: Session, *, today: Optional[date] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        today = today or now.date()

        stats: Dict[str, Any] = self.summary(db, today=today, now=now)
        stats["total_installations"] = stats.pop("total")

        return {
            "stats": stats,
            "recent_installations": self._latest(db, limit=8),
            "overdue_installations": self._latest(db, overdue_clause(today), limit=5),
            "status_distribution": self.status_distribution(db),
            "region_distribution": self.region_distribution(db),
        }

    def client_reports(
        self, db: Session, *, today: Optional[date] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        today = today or now.date()

        full = self.summary(db, today=today, now=now)
        stats = {k: full[k] for k in ("total", "completed", "pending", "overdue", "high_priority")}
        stats["with_files"] = self._count(db, with_files_clause())

        return {
            "stats": stats,
            "monthly_trends": self.monthly_trends(db, year=today.year),
            "regional_data": self.regional_data(db),
            "priority_data": self._by(db, Installation.priority),
        }

    def quick_stats(
        self, db: Session, *, today: Optional[date] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        today = today or now.date()

        base = self.summary(db, today=today, now=now)
        return {
            "total": base["total"],
            "delivered": self._count(db, Installation.delivery_status == DeliveryStatus.delivered.value),
            "installed": base["completed"],
            "pending_delivery": self._count(db, Installation.delivery_status == DeliveryStatus.pending.value),
            "pending_installation": base["pending"],
            "in_progress": base["in_progress"],
            "overdue": base["overdue"],
            "high_priority": base["high_priority"],
            "this_week": base["this_week"],
            "this_month": base["this_month"],
            "completion_rate": _rate(base["completed"], base["total"]),
        }

    def user_dashboard(
        self,
        db: Session,
        *,
        created_by: str,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Same counters as the client dashboard, restricted to the caller's own submissions."""
        now = now or datetime.now(timezone.utc)
        today = today or now.date()
        own = (Installation.created_by == created_by,)

        return {
            "stats": self.summary(db, today=today, now=now, conds=own),
            "recent_installations": self._latest(db, *own, limit=10),
            "status_distribution": self.status_distribution(db, conds=own),
        }
