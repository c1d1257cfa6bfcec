from datetime import date, datetime, timedelta, timezone

from app.services.attachment_service import AttachmentService
from app.services.installation_service import InstallationService
from app.services.report_service import ReportService

TODAY = date(2025, 6, 30)


def test_summary_counts(db, make_installation):
    make_installation(region_division="Pune", installation_status="Installed", priority="High")
    make_installation(region_division="Pune", delivery_date=TODAY - timedelta(days=10))
    make_installation(region_division="Nashik", installation_status="In Progress")
    make_installation(region_division="Nashik", priority="High")

    stats = ReportService().summary(db, today=TODAY)

    assert stats["total"] == 4
    assert stats["completed"] == 1
    assert stats["pending"] == 2
    assert stats["in_progress"] == 1
    assert stats["overdue"] == 1
    assert stats["high_priority"] == 2
    assert stats["this_week"] == 4
    assert stats["this_month"] == 4


def test_deleted_records_are_not_counted(db, make_installation, storage):
    keep = make_installation()
    gone = make_installation()
    InstallationService().soft_delete(
        db, installation_id=gone.id, actor="Admin", attachments=AttachmentService(storage)
    )

    assert ReportService().summary(db, today=TODAY)["total"] == 1
    assert keep.record_state == "active"


def test_regional_data_and_rates(db, make_installation):
    make_installation(region_division="Pune", installation_status="Installed")
    make_installation(region_division="Pune")
    make_installation(region_division="Pune")
    make_installation(region_division="Nashik", installation_status="Installed")

    regions = {r["region_division"]: r for r in ReportService().regional_data(db)}

    assert regions["Pune"] == {"region_division": "Pune", "total": 3, "completed": 1, "completion_rate": 33.33}
    assert regions["Nashik"]["completion_rate"] == 100.0


def test_status_by_region(db, make_installation):
    make_installation(region_division="Pune", installation_status="Installed")
    make_installation(region_division="Pune")
    make_installation(region_division="Nagpur")

    grouped = ReportService().status_by_region(db)

    assert list(grouped) == ["Nagpur", "Pune"]
    assert grouped["Pune"] == {"Installed": 1, "Pending": 1}


def test_monthly_trends_cover_all_months(db, make_installation):
    make_installation()
    make_installation()
    now = datetime.now(timezone.utc)

    trends = ReportService().monthly_trends(db, year=now.year)

    assert list(trends) == list(range(1, 13))
    assert trends[now.month] == 2
    assert sum(trends.values()) == 2
    assert sum(ReportService().monthly_trends(db, year=now.year - 1).values()) == 0


def test_recent_activity_keys_are_days(db, make_installation):
    make_installation()
    now = datetime.now(timezone.utc)

    activity = ReportService().recent_activity(db, now=now)

    assert activity == {now.date().isoformat(): 1}


def test_average_completion_days(db, make_installation):
    make_installation(delivery_date=date(2025, 5, 1), installation_date=date(2025, 5, 4))
    make_installation(delivery_date=date(2025, 5, 1), installation_date=date(2025, 5, 2))
    make_installation(delivery_date=date(2025, 5, 1))

    assert ReportService().average_completion_days(db) == 2.0


def test_empty_database_rates_are_zero(db):
    svc = ReportService()

    analytics = svc.admin_analytics(db, today=TODAY)
    assert analytics == {
        "completion_rate": 0,
        "avg_completion_time": 0,
        "overdue_percentage": 0,
        "high_priority_percentage": 0,
    }
    assert svc.quick_stats(db, today=TODAY)["completion_rate"] == 0


def test_admin_dashboard_lists(db, make_installation):
    for _ in range(12):
        make_installation()
    make_installation(priority="High", installation_status="Installed")
    make_installation(priority="High")

    page = ReportService().admin_dashboard(db, today=TODAY)

    assert page["stats"]["total_installations"] == 14
    assert page["stats"]["total_users"] == 0
    assert len(page["recent_installations"]) == 10
    assert [i.priority for i in page["high_priority_installations"]] == ["High"]
    assert page["status_distribution"] == {"completed": 1, "pending": 13, "in_progress": 0}


def test_client_reports_counts_records_with_files(db, make_installation):
    with_file = make_installation()
    make_installation(priority="Low")
    with_file.evidence_file = "dc-installations/x/evidence_file_1.pdf"
    db.commit()

    page = ReportService().client_reports(db, today=TODAY)

    assert page["stats"]["with_files"] == 1
    assert page["priority_data"] == {"Low": 1, "Medium": 1}


def test_user_dashboard_only_counts_own_records(db, make_installation):
    make_installation(actor="Field One")
    make_installation(actor="Field One", installation_status="Installed")
    make_installation(actor="Someone Else")

    page = ReportService().user_dashboard(db, created_by="Field One", today=TODAY)

    assert page["stats"]["total"] == 2
    assert page["stats"]["completed"] == 1
    assert {i.created_by for i in page["recent_installations"]} == {"Field One"}
