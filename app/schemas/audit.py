from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class AuditLogResponse(BaseModel):
    id: str
    createdAtIso: str
    requestId: Optional[str] = None

    userId: Optional[str] = None
    userName: Optional[str] = None
    userEmail: Optional[str] = None
    userType: Optional[str] = None

    action: str
    resourceType: Optional[str] = None
    resourceId: Optional[str] = None
    description: Optional[str] = None
    severity: str

    oldValues: Optional[Dict[str, Any]] = None
    newValues: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None

    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
    url: Optional[str] = None
    method: Optional[str] = None


class AuditLogListResponse(BaseModel):
    records: List[AuditLogResponse]
    total: int
    page: int
    perPage: int
    pages: int
    filters: Dict[str, List[str]] = Field(default_factory=dict)


class AuditClearResponse(BaseModel):
    deleted: int
    olderThanDays: int
