from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from app.core.attachment_slots import ATTACHMENT_SLOTS
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.enums import StatusFilter
from app.models.installation import Installation
from app.services.attachment_service import AttachmentService
from app.services.installation_service import InstallationFilters, InstallationService


def _count(db):
    return db.execute(select(func.count(Installation.id))).scalar_one()


def test_create_persists_and_tracks_actor(db, fields):
    inst = InstallationService().create(db, fields=fields(), actor="Field User")

    assert inst.sr_no.startswith("DC-")
    assert inst.created_by == "Field User"
    assert inst.updated_by == "Field User"
    assert inst.record_state == "active"
    assert inst.soft_copy_dc is False


@pytest.mark.parametrize(
    "override, field",
    [
        ({"pin_code": "41100"}, "pin_code"),
        ({"pin_code": "41100a"}, "pin_code"),
        ({"contact_no": "98765"}, "contact_no"),
        ({"contact_no_two": "12345678901"}, "contact_no_two"),
        ({"priority": "Urgent"}, "priority"),
        ({"delivery_status": "Lost"}, "delivery_status"),
        ({"total_boxes": 0}, "total_boxes"),
        ({"charges": "-1"}, "charges"),
    ],
)
def test_create_rejects_bad_formats(db, fields, override, field):
    with pytest.raises(ValidationError) as exc:
        InstallationService().create(db, fields=fields(**override), actor="Admin")

    assert field in exc.value.errors
    assert _count(db) == 0


def test_create_requires_core_fields(db, fields):
    data = fields()
    del data["receiver_name"]
    del data["tahsil"]

    with pytest.raises(ValidationError) as exc:
        InstallationService().create(db, fields=data, actor="Admin")

    assert {"receiver_name", "tahsil"} <= set(exc.value.errors)
    assert _count(db) == 0


def test_create_rejects_unknown_keys(db, fields):
    with pytest.raises(ValidationError) as exc:
        InstallationService().create(db, fields=fields(is_admin=True), actor="Admin")

    assert "is_admin" in exc.value.errors
    assert _count(db) == 0


def test_create_rejects_path_like_sr_no(db, fields):
    with pytest.raises(ValidationError):
        InstallationService().create(db, fields=fields(sr_no="../etc"), actor="Admin")


def test_duplicate_supplied_sr_no_conflicts(db, make_installation, fields):
    make_installation(sr_no="DC-2025-0001")

    with pytest.raises(ConflictError):
        InstallationService().create(db, fields=fields(sr_no="DC-2025-0001"), actor="Admin")
    assert _count(db) == 1


def test_update_rejects_sr_no(db, make_installation, fields):
    inst = make_installation()

    with pytest.raises(ValidationError) as exc:
        InstallationService().update(
            db, installation_id=inst.id, fields=fields(sr_no="DC-2099-0001"), actor="Admin"
        )
    assert "sr_no" in exc.value.errors


def test_update_reports_only_changed_audited_fields(db, make_installation, fields):
    inst = make_installation()

    result = InstallationService().update(
        db,
        installation_id=inst.id,
        fields=fields(installation_status="In Progress", remarks="waiting for UPS"),
        actor="Client",
    )

    assert result.audit_worthy
    assert result.old_values == {"installation_status": "Pending"}
    assert result.new_values == {"installation_status": "In Progress"}
    assert result.installation.remarks == "waiting for UPS"
    assert result.installation.updated_by == "Client"


def test_update_without_audited_change_is_not_audit_worthy(db, make_installation, fields):
    inst = make_installation()

    result = InstallationService().update(
        db, installation_id=inst.id, fields=fields(remarks="note"), actor="Admin"
    )
    assert not result.audit_worthy


def test_get_unknown_or_malformed_id(db):
    svc = InstallationService()
    with pytest.raises(NotFoundError):
        svc.get(db, installation_id="not-a-uuid")
    with pytest.raises(NotFoundError):
        svc.get(db, installation_id="00000000-0000-0000-0000-000000000000")


def test_soft_delete_hides_record_and_keeps_row(db, make_installation, storage):
    inst = make_installation()
    svc = InstallationService()

    svc.soft_delete(db, installation_id=inst.id, actor="Admin", attachments=AttachmentService(storage))

    with pytest.raises(NotFoundError):
        svc.get(db, installation_id=inst.id)
    with pytest.raises(NotFoundError):
        svc.soft_delete(db, installation_id=inst.id, actor="Admin", attachments=AttachmentService(storage))

    row = db.get(Installation, inst.id)
    assert row.record_state == "deleted"
    assert row.deleted_at is not None
    assert svc.list(db, filters=InstallationFilters()).total == 0


def test_soft_delete_removes_blobs(db, make_installation, storage):
    inst = make_installation()
    storage.put("dc-installations/x/evidence_file_1.pdf", b"%PDF-1.4")
    inst.evidence_file = "dc-installations/x/evidence_file_1.pdf"
    # dangling key: must not block the delete
    inst.screenshot_file = "dc-installations/x/screenshot_file_1.png"
    db.commit()

    InstallationService().soft_delete(
        db, installation_id=inst.id, actor="Admin", attachments=AttachmentService(storage)
    )

    assert not storage.exists("dc-installations/x/evidence_file_1.pdf")
    row = db.get(Installation, inst.id)
    assert row.evidence_file is None
    assert row.screenshot_file is None

    svc = AttachmentService(storage)
    for slot in ATTACHMENT_SLOTS:
        with pytest.raises(NotFoundError):
            svc.download(db, installation_id=inst.id, slot=slot)


def test_list_filters_and_search(db, make_installation):
    make_installation(district="Pune", receiver_name="Asha Patil", priority="High")
    make_installation(district="Nashik", region_division="Nashik", receiver_name="Ravi Kale")
    make_installation(
        district="Nagpur",
        region_division="Nagpur",
        receiver_name="Meena 100%",
        installation_status="Installed",
    )
    svc = InstallationService()

    assert svc.list(db, filters=InstallationFilters(district="Nashik")).total == 1
    assert svc.list(db, filters=InstallationFilters(priority="High")).total == 1
    assert svc.list(db, filters=InstallationFilters(status=StatusFilter.completed)).total == 1
    assert svc.list(db, filters=InstallationFilters(status=StatusFilter.pending)).total == 2

    # case-insensitive, across receiver / address / district / sr_no
    assert svc.list(db, filters=InstallationFilters(search="ravi")).total == 1
    assert svc.list(db, filters=InstallationFilters(search="NAGPUR")).total == 1
    assert svc.list(db, filters=InstallationFilters(search="DC-")).total == 3
    # LIKE wildcards are literal
    assert svc.list(db, filters=InstallationFilters(search="100%")).total == 1
    assert svc.list(db, filters=InstallationFilters(search="%")).total == 1

    page = svc.list(db, filters=InstallationFilters())
    assert page.regions == ["Nagpur", "Nashik", "Pune"]
    assert page.districts == ["Nagpur", "Nashik", "Pune"]


def test_list_orders_newest_first_and_paginates(db, make_installation):
    created = [make_installation(sr_no=f"DC-2025-{i:04d}") for i in range(1, 6)]
    svc = InstallationService()

    first = svc.list(db, filters=InstallationFilters(), page=1, per_page=2)
    assert first.total == 5
    assert first.pages == 3
    assert [i.sr_no for i in first.items] == [created[4].sr_no, created[3].sr_no]

    last = svc.list(db, filters=InstallationFilters(), page=3, per_page=2)
    assert [i.sr_no for i in last.items] == [created[0].sr_no]


def test_overdue_filter(db, make_installation):
    today = date(2025, 6, 30)
    make_installation(delivery_date=today - timedelta(days=7))
    make_installation(delivery_date=today - timedelta(days=6))
    make_installation(delivery_date=today - timedelta(days=30), installation_status="Installed")
    make_installation()

    page = InstallationService().list(
        db, filters=InstallationFilters(status=StatusFilter.overdue), today=today
    )
    assert page.total == 1
    assert page.items[0].delivery_date == today - timedelta(days=7)


def test_status_helpers(db, make_installation):
    inst = make_installation()
    svc = InstallationService()

    delivered = svc.mark_delivered(db, installation_id=inst.id, actor="Client", on=date(2025, 5, 1))
    assert delivered.installation.delivery_status == "Delivered"
    assert delivered.new_values == {"delivery_status": "Delivered", "delivery_date": date(2025, 5, 1)}

    installed = svc.mark_installed(db, installation_id=inst.id, actor="Client", on=date(2025, 5, 3))
    assert installed.installation.installation_status == "Installed"
    assert installed.installation.installation_date == date(2025, 5, 3)

    assigned = svc.assign_technician(db, installation_id=inst.id, technician="Sunil", actor="Admin")
    assert assigned.installation.assigned_technician == "Sunil"
    assert assigned.old_values == {"assigned_technician": None}
