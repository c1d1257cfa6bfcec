# Importing the package registers every table on Base.metadata.
from app.models.audit_log import AuditLog
from app.models.installation import Installation
from app.models.user import User

__all__ = ["AuditLog", "Installation", "User"]
