#app/models/enums.py
from __future__ import annotations
from enum import Enum


class UserType(str, Enum):
    Admin = "Admin"
    Client = "Client"
    User = "User"


class DeliveryStatus(str, Enum):
    delivered = "Delivered"
    pending = "Pending"
    in_transit = "In Transit"


class InstallationStatus(str, Enum):
    installed = "Installed"
    pending = "Pending"
    in_progress = "In Progress"


class Priority(str, Enum):
    high = "High"
    medium = "Medium"
    low = "Low"


class RecordState(str, Enum):
    # soft delete is a state transition, rows are never erased
    active = "active"
    deleted = "deleted"


class StatusFilter(str, Enum):
    completed = "completed"
    pending = "pending"
    in_progress = "in_progress"
    overdue = "overdue"


class AuditSeverity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"
