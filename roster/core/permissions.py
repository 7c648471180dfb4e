"""Route-level authorization dependency.

Every protected router depends on :class:`Authorize`. Each request goes
token -> user -> role -> permissions -> policy, and every refusal is a 403
whose message names the policy that failed.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from roster.core.exceptions import AuthorizationError, InvalidTokenError
from roster.core.security import security_scheme, token_codec
from roster.db.session import get_db
from roster.models.user import User
from roster.services.role_service import (
    ADMIN_ROLE,
    INSTRUCTOR_ROLE,
    STUDENT_ROLE,
    role_service,
)

logger = logging.getLogger("roster.authz")


@dataclass
class Principal:
    """Verified identity attached to ``request.state.principal``."""
    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    def to_dict(self) -> dict:
        return asdict(self)


class Authorize:
    """Dependency factory enforcing a per-route policy.

    Args:
        permission: permission name the caller's role must hold.
        restrict_students: refuse callers with the student role.
        restrict_instructors: refuse callers with the instructor role.
        self_access_only: the path parameter ``owner_param`` must equal the
            caller's id (admins bypass this check).
    """

    def __init__(
        self,
        permission: str = "read",
        restrict_students: bool = False,
        restrict_instructors: bool = False,
        self_access_only: bool = False,
        owner_param: str = "id",
    ):
        self.permission = permission
        self.restrict_students = restrict_students
        self.restrict_instructors = restrict_instructors
        self.self_access_only = self_access_only
        self.owner_param = owner_param

    def __call__(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
        db: Session = Depends(get_db),
    ) -> Principal:
        if credentials is None:
            raise AuthorizationError("Authorization token required")
        try:
            claims = token_codec.verify_access_token(credentials.credentials)
        except InvalidTokenError:
            raise AuthorizationError("Invalid or expired token")

        # Identity comes from the verified claims; role and permissions are
        # always looked up fresh rather than trusted from the token.
        user = db.query(User).filter(User.id == claims["id"]).first()
        if user is None or user.role is None:
            raise AuthorizationError("User not found")
        role_name = user.role.name
        permissions = role_service.permissions_for(db, user.role)

        if self.permission not in permissions:
            self._deny(user, f"Missing required permission '{self.permission}'")
        if self.restrict_students and role_name == STUDENT_ROLE:
            self._deny(user, "Students are not allowed to access this resource")
        if self.restrict_instructors and role_name == INSTRUCTOR_ROLE:
            self._deny(user, "Instructors are not allowed to access this resource")
        if self.self_access_only and role_name != ADMIN_ROLE:
            owner = request.path_params.get(self.owner_param)
            if owner is None or str(owner) != str(user.id):
                self._deny(user, "You can only access your own data")

        principal = Principal(id=user.id, email=claims.get("email") or user.email, role=role_name)
        request.state.principal = principal
        return principal

    def _deny(self, user: User, reason: str) -> None:
        logger.info("Denied user %s on %s: %s", user.id, self.permission, reason)
        raise AuthorizationError(reason)


# Convenience dependencies
require_read = Authorize("read")
require_admin_read = Authorize("read", restrict_students=True, restrict_instructors=True)
require_admin_create = Authorize("create", restrict_students=True, restrict_instructors=True)
require_admin_update = Authorize("update", restrict_students=True, restrict_instructors=True)
require_admin_delete = Authorize("delete", restrict_students=True, restrict_instructors=True)
