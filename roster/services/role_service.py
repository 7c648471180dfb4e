"""Role/permission resolution and administration."""

import logging
from typing import Optional, List, Iterable

from sqlalchemy.orm import Session

from roster.core.config import settings
from roster.core.exceptions import (
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from roster.db.session import transaction
from roster.models.role import Role, Permission
from roster.models.user import User
from roster.services.cache_service import CacheService, cache_service

logger = logging.getLogger("roster.roles")

STUDENT_ROLE = "student"
INSTRUCTOR_ROLE = "instructor"
ADMIN_ROLE = "admin"


class PermissionCache:
    """Process-wide role -> permission-name cache.

    Entries expire after ``ttl_seconds``; every role or permission mutation
    must call :meth:`invalidate`. When disabled every lookup is a miss.
    """

    KEY_PREFIX = "role_permissions:"

    def __init__(self, cache: CacheService, ttl_seconds: int = 300, enabled: bool = True):
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled

    def get(self, role_id: int) -> Optional[List[str]]:
        if not self.enabled:
            return None
        return self.cache.get_json(f"{self.KEY_PREFIX}{role_id}")

    def put(self, role_id: int, names: Iterable[str]) -> None:
        if self.enabled:
            self.cache.set_json(f"{self.KEY_PREFIX}{role_id}", sorted(names), self.ttl_seconds)

    def invalidate(self, role_id: Optional[int] = None) -> None:
        """Drop one role's entry, or every entry when ``role_id`` is None."""
        if not self.enabled:
            return
        if role_id is None:
            self.cache.invalidate_pattern(f"{self.KEY_PREFIX}*")
        else:
            self.cache.delete(f"{self.KEY_PREFIX}{role_id}")


permission_cache = PermissionCache(
    cache_service,
    ttl_seconds=settings.PERMISSION_CACHE_TTL_SECONDS,
    enabled=settings.PERMISSION_CACHE_ENABLED,
)


class RoleService:
    """Resolves user -> role -> permissions and manages roles/permissions."""

    def __init__(self, cache: PermissionCache):
        self.cache = cache

    # ---- Resolution ----

    def permissions_for(self, db: Session, role: Role) -> set:
        cached = self.cache.get(role.id)
        if cached is not None:
            return set(cached)
        names = role.permission_names
        self.cache.put(role.id, names)
        return set(names)

    def role_by_name(self, db: Session, name: str) -> Optional[Role]:
        return db.query(Role).filter(Role.name == name).first()

    # ---- Permissions ----

    def list_permissions(self, db: Session) -> List[Permission]:
        return db.query(Permission).order_by(Permission.name).all()

    def get_permission(self, db: Session, permission_id: int) -> Permission:
        permission = db.query(Permission).filter(Permission.id == permission_id).first()
        if not permission:
            raise ResourceNotFoundError("Permission not found")
        return permission

    def create_permission(self, db: Session, name: str, description: str = "") -> Permission:
        if db.query(Permission).filter(Permission.name == name).first():
            raise ResourceConflictError(f"Permission '{name}' already exists")
        permission = Permission(name=name, description=description or "")
        with transaction(db):
            db.add(permission)
        db.refresh(permission)
        return permission

    def update_permission(
        self,
        db: Session,
        permission_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Permission:
        permission = self.get_permission(db, permission_id)
        if name and name != permission.name:
            if db.query(Permission).filter(Permission.name == name).first():
                raise ResourceConflictError(f"Permission '{name}' already exists")
        with transaction(db):
            if name:
                permission.name = name
            if description is not None:
                permission.description = description
        self.cache.invalidate()
        db.refresh(permission)
        return permission

    def delete_permission(self, db: Session, permission_id: int) -> None:
        permission = self.get_permission(db, permission_id)
        with transaction(db):
            db.delete(permission)
        self.cache.invalidate()

    # ---- Roles ----

    def _resolve_permissions(self, db: Session, names: Iterable[str]) -> List[Permission]:
        wanted = set(names)
        if not wanted:
            return []
        found = db.query(Permission).filter(Permission.name.in_(wanted)).all()
        missing = wanted - {p.name for p in found}
        if missing:
            raise ValidationError(f"Unknown permissions: {', '.join(sorted(missing))}")
        return found

    def list_roles(self, db: Session) -> List[Role]:
        return db.query(Role).order_by(Role.name).all()

    def get_role(self, db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise ResourceNotFoundError("Role not found")
        return role

    def create_role(
        self,
        db: Session,
        name: str,
        description: str = "",
        permission_names: Iterable[str] = (),
    ) -> Role:
        if self.role_by_name(db, name):
            raise ResourceConflictError(f"Role '{name}' already exists")
        role = Role(
            name=name,
            description=description or "",
            permissions=self._resolve_permissions(db, permission_names),
        )
        with transaction(db):
            db.add(role)
        db.refresh(role)
        logger.info("Created role %s", name)
        return role

    def update_role(
        self,
        db: Session,
        role_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        permission_names: Optional[Iterable[str]] = None,
    ) -> Role:
        role = self.get_role(db, role_id)
        if name and name != role.name:
            if self.role_by_name(db, name):
                raise ResourceConflictError(f"Role '{name}' already exists")
        with transaction(db):
            if name:
                role.name = name
            if description is not None:
                role.description = description
            if permission_names is not None:
                role.permissions = self._resolve_permissions(db, permission_names)
        self.cache.invalidate(role.id)
        db.refresh(role)
        return role

    def delete_role(self, db: Session, role_id: int) -> None:
        role = self.get_role(db, role_id)
        in_use = db.query(User).filter(User.role_id == role.id).count()
        if in_use:
            raise ValidationError(f"Role '{role.name}' is assigned to {in_use} user(s)")
        name = role.name
        with transaction(db):
            db.delete(role)
        self.cache.invalidate(role_id)
        logger.info("Deleted role %s", name)


role_service = RoleService(permission_cache)
