from app.schemas.auth import LoginRequest, TokenResponse, MeResponse
from app.schemas.users import UserCreate, UserResponse
from app.schemas.installations import (
    InstallationCreate,
    InstallationUpdate,
    InstallationResponse,
    InstallationListResponse,
)
from app.schemas.audit import AuditLogResponse, AuditLogListResponse, AuditClearResponse
