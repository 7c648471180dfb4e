"""Models package: import all models so metadata.create_all can discover them."""

from roster.models.role import Role, Permission, role_permissions
from roster.models.user import User
from roster.models.session_metadata import SessionMetadata
from roster.models.audit_log import AuditLog

__all__ = [
    "Role", "Permission", "role_permissions",
    "User", "SessionMetadata", "AuditLog",
]
