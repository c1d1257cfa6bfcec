from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.auth import router as auth_router
from app.api.v1.users import router as users_router
from app.api.v1.audit import router as audit_router

from app.api.v1.attachments import router as attachments_router
from app.api.v1.installations import router as installations_router
from app.api.v1.export import router as export_router
from app.api.v1.dashboard import router as dashboard_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(auth_router, tags=["auth"])

# ------------------------------------------------------------------
# INSTALLATIONS
# ------------------------------------------------------------------
v1_router.include_router(attachments_router, tags=["attachments"])
v1_router.include_router(installations_router, tags=["installations"])
v1_router.include_router(export_router, tags=["export"])

# ------------------------------------------------------------------
# DASHBOARDS / REPORTS
# ------------------------------------------------------------------
v1_router.include_router(dashboard_router, tags=["dashboard"])

# ------------------------------------------------------------------
# ADMIN
# ------------------------------------------------------------------
v1_router.include_router(users_router, tags=["admin"])
v1_router.include_router(audit_router, tags=["audit"])
