# app/core/deps_params.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import Query

from app.models.enums import AuditSeverity, DeliveryStatus, Priority, StatusFilter
from app.services.audit_service import AuditFilters
from app.services.installation_service import InstallationFilters


def installation_filters(
    status: Optional[StatusFilter] = Query(None),
    delivery_status: Optional[DeliveryStatus] = Query(None),
    region: Optional[str] = Query(None, max_length=255),
    district: Optional[str] = Query(None, max_length=255),
    priority: Optional[Priority] = Query(None),
    created_by: Optional[str] = Query(None, max_length=255),
    search: Optional[str] = Query(None, max_length=255),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
) -> InstallationFilters:
    """
    Query-string filters shared by the installation list and the CSV export.
    Empty strings from HTML forms count as "not set".
    """
    return InstallationFilters(
        status=status,
        delivery_status=delivery_status,
        region=region or None,
        district=district or None,
        priority=priority.value if priority else None,
        created_by=created_by or None,
        search=search or None,
        date_from=date_from,
        date_to=date_to,
    )


def audit_filters(
    action: Optional[str] = Query(None, max_length=64),
    resource: Optional[str] = Query(None, max_length=64),
    severity: Optional[AuditSeverity] = Query(None),
    user: Optional[str] = Query(None, max_length=64),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, max_length=255),
) -> AuditFilters:
    return AuditFilters(
        action=action or None,
        resource=resource or None,
        severity=severity.value if severity else None,
        user=user or None,
        date_from=date_from,
        date_to=date_to,
        search=search or None,
    )
