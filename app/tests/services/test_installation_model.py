from datetime import date, timedelta

import pytest

from app.models.installation import Installation

TODAY = date(2025, 6, 30)


def _inst(**kw):
    base = dict(
        sr_no="DC-2025-0001",
        delivery_status="Pending",
        installation_status="Pending",
        priority="Medium",
        soft_copy_dc=False,
        soft_copy_ir=False,
        original_pod_received=False,
        original_dc_received=False,
        ir_original_copy_received=False,
        back_side_photo_taken=False,
        os_installation_photo_taken=False,
        belarc_report_generated=False,
    )
    base.update(kw)
    return Installation(**base)


@pytest.mark.parametrize(
    "days_ago, status, expected",
    [
        (7, "Pending", True),
        (30, "Pending", True),
        (6, "Pending", False),
        (0, "Pending", False),
        (30, "Installed", False),
        (30, "In Progress", False),
    ],
)
def test_overdue_threshold(days_ago, status, expected):
    inst = _inst(delivery_date=TODAY - timedelta(days=days_ago), installation_status=status)
    assert inst.is_overdue(TODAY) is expected


def test_no_delivery_date_is_never_overdue():
    inst = _inst(delivery_date=None)
    assert inst.is_overdue(TODAY) is False
    assert inst.days_until_due(TODAY) is None


def test_days_until_due():
    assert _inst(delivery_date=TODAY - timedelta(days=2)).days_until_due(TODAY) == 5
    assert _inst(delivery_date=TODAY - timedelta(days=10)).days_until_due(TODAY) == -3
    installed = _inst(delivery_date=TODAY, installation_status="Installed")
    assert installed.days_until_due(TODAY) is None


def test_completion_percentage():
    assert _inst().completion_percentage == 0

    half = _inst(
        delivery_status="Delivered",
        installation_status="Installed",
        soft_copy_dc=True,
        soft_copy_ir=True,
        original_pod_received=True,
    )
    assert half.completion_percentage == 50

    full = _inst(
        delivery_status="Delivered",
        installation_status="Installed",
        soft_copy_dc=True,
        soft_copy_ir=True,
        original_pod_received=True,
        original_dc_received=True,
        ir_original_copy_received=True,
        back_side_photo_taken=True,
        os_installation_photo_taken=True,
        belarc_report_generated=True,
    )
    assert full.completion_percentage == 100


@pytest.mark.parametrize(
    "delivery, installation, text",
    [
        ("Delivered", "Installed", "Completed"),
        ("Delivered", "Pending", "Ready for Installation"),
        ("Pending", "Pending", "Pending Delivery"),
        ("In Transit", "Pending", "In Transit"),
        ("Delivered", "In Progress", "Installation in Progress"),
    ],
)
def test_status_badge(delivery, installation, text):
    assert _inst(delivery_status=delivery, installation_status=installation).status_badge["text"] == text


def test_flags_and_attachments_are_independent():
    inst = _inst(back_side_photo_taken=True)
    assert inst.attachment_slots_present() == {}

    inst = _inst(back_side_photo_file="dc-installations/DC-2025-0001/back_side_photo_file_1.jpg")
    assert inst.back_side_photo_taken is False
    assert list(inst.attachment_slots_present()) == ["back_side_photo_file"]
