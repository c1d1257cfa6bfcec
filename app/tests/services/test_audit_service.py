from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.errors import ValidationError
from app.models.enums import UserType
from app.policies.rbac import Principal
from app.services.audit_service import (
    AuditAction,
    AuditFilters,
    AuditResource,
    AuditService,
    audit_event,
    installation_severity,
)

ADMIN = Principal(user_id="u-1", name="Admin Tester", email="admin@example.com", user_type=UserType.Admin)
CLIENT = Principal(user_id="u-2", name="Client Tester", email="client@example.com", user_type=UserType.Client)


def _event(db, principal=ADMIN, **kw):
    kw.setdefault("action", AuditAction.VIEW)
    kw.setdefault("resource_type", AuditResource.INSTALLATION)
    return audit_event(db, request=None, principal=principal, **kw)


def test_event_copies_actor_and_serializes_values(db):
    row = _event(
        db,
        action=AuditAction.UPDATE,
        resource_id="DC-2025-0001",
        old_values={"delivery_date": None},
        new_values={"delivery_date": date(2025, 5, 1)},
    )

    assert row.user_name == "Admin Tester"
    assert row.user_type == "Admin"
    assert row.new_values == {"delivery_date": "2025-05-01"}
    assert row.ip_address is None
    assert row.severity == "low"


def test_event_without_principal(db):
    row = _event(db, principal=None, action=AuditAction.LOGIN_FAILED, resource_type=AuditResource.USER)
    assert row.user_id is None


@pytest.mark.parametrize(
    "action, priority, expected",
    [
        (AuditAction.CREATE, "Medium", "low"),
        (AuditAction.CREATE, "High", "medium"),
        (AuditAction.DELETE, "Low", "high"),
        (AuditAction.DELETE, "High", "critical"),
        (AuditAction.UPDATE, "High", "medium"),
    ],
)
def test_installation_severity(action, priority, expected):
    assert installation_severity(action, priority) == expected


def test_filters(db):
    _event(db, action=AuditAction.VIEW, description="Viewed DC-2025-0001")
    _event(db, CLIENT, action=AuditAction.EXPORT, severity="medium", description="Exported installations")
    _event(db, CLIENT, action=AuditAction.LOGIN, resource_type=AuditResource.USER)
    svc = AuditService()

    assert svc.count(db, filters=AuditFilters()) == 3
    assert svc.count(db, filters=AuditFilters(action="EXPORT")) == 1
    assert svc.count(db, filters=AuditFilters(user="u-2")) == 2
    assert svc.count(db, filters=AuditFilters(resource="User")) == 1
    assert svc.count(db, filters=AuditFilters(severity="medium")) == 1
    assert svc.count(db, filters=AuditFilters(search="dc-2025")) == 1
    assert svc.count(db, filters=AuditFilters(search="client@")) == 2

    today = datetime.now(timezone.utc).date()
    assert svc.count(db, filters=AuditFilters(date_from=today, date_to=today)) == 3
    assert svc.count(db, filters=AuditFilters(date_to=today - timedelta(days=1))) == 0


def test_list_paginates_newest_first(db):
    for i in range(5):
        _event(db, description=f"event {i}")

    rows, total, pages = AuditService().list_entries(db, filters=AuditFilters(), page=1, per_page=2)

    assert total == 5
    assert pages == 3
    assert [r.description for r in rows] == ["event 4", "event 3"]


@pytest.mark.parametrize("days", [0, 29, 366])
def test_clear_rejects_out_of_range(db, days):
    with pytest.raises(ValidationError) as exc:
        AuditService().clear_older_than(db, days=days)
    assert "days" in exc.value.errors


def test_clear_removes_only_older_entries(db):
    old = _event(db, description="old")
    _event(db, description="recent")
    old.created_at = datetime.now(timezone.utc) - timedelta(days=100)
    db.commit()

    deleted = AuditService().clear_older_than(db, days=90)

    assert deleted == 1
    remaining, total, _ = AuditService().list_entries(db, filters=AuditFilters())
    assert total == 1
    assert remaining[0].description == "recent"


def test_stats(db):
    _event(db, action=AuditAction.DELETE, severity="critical")
    _event(db, action=AuditAction.VIEW)
    _event(db, CLIENT, action=AuditAction.VIEW, severity="high")

    stats = AuditService().stats(db)

    assert stats["total_entries"] == 3
    assert stats["today_entries"] == 3
    assert stats["critical_entries"] == 1
    assert stats["high_entries"] == 1
    assert stats["actions_breakdown"] == {"DELETE": 1, "VIEW": 2}
    assert stats["top_users"] == {"Admin Tester": 2, "Client Tester": 1}


def test_filter_options(db):
    _event(db, action=AuditAction.VIEW)
    _event(db, action=AuditAction.LOGIN, resource_type=AuditResource.USER)

    options = AuditService().filter_options(db)

    assert options["actions"] == ["LOGIN", "VIEW"]
    assert options["resources"] == ["DCInstallation", "User"]
    assert options["severities"] == ["low", "medium", "high", "critical"]
