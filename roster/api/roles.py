"""Roles and permissions API routers."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from roster.core.permissions import (
    Principal, require_admin_create, require_admin_delete, require_admin_update, require_read,
)
from roster.db.session import get_db
from roster.models.role import Role
from roster.schemas.schemas import (
    MessageResponse, PermissionCreate, PermissionOut, PermissionUpdate, RoleCreate, RoleOut, RoleUpdate,
)
from roster.services.role_service import role_service

router = APIRouter(prefix="/roles", tags=["roles"])
permissions_router = APIRouter(prefix="/permissions", tags=["permissions"])


def _role_out(role: Role) -> RoleOut:
    return RoleOut(
        id=role.id,
        name=role.name,
        description=role.description or "",
        permissions=role.permission_names,
    )


# ---- Roles ----

@router.get("", response_model=List[RoleOut])
def list_roles(db: Session = Depends(get_db), principal: Principal = Depends(require_read)):
    return [_role_out(r) for r in role_service.list_roles(db)]


@router.get("/{id}", response_model=RoleOut)
def get_role(id: int, db: Session = Depends(get_db), principal: Principal = Depends(require_read)):
    return _role_out(role_service.get_role(db, id))


@router.post("", status_code=201, response_model=RoleOut)
def create_role(
    body: RoleCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_create),
):
    """Create a role from a list of permission names (admin only)."""
    role = role_service.create_role(db, body.name, body.description, body.permissions)
    return _role_out(role)


@router.put("/{id}", response_model=RoleOut)
def update_role(
    id: int,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_update),
):
    """Rename a role or replace its permission set (admin only)."""
    role = role_service.update_role(db, id, body.name, body.description, body.permissions)
    return _role_out(role)


@router.delete("/{id}", response_model=MessageResponse)
def delete_role(id: int, db: Session = Depends(get_db), principal: Principal = Depends(require_admin_delete)):
    role_service.delete_role(db, id)
    return MessageResponse(message="Role deleted successfully")


# ---- Permissions ----

@permissions_router.get("", response_model=List[PermissionOut])
def list_permissions(db: Session = Depends(get_db), principal: Principal = Depends(require_read)):
    return [PermissionOut.model_validate(p) for p in role_service.list_permissions(db)]


@permissions_router.get("/{id}", response_model=PermissionOut)
def get_permission(id: int, db: Session = Depends(get_db), principal: Principal = Depends(require_read)):
    return PermissionOut.model_validate(role_service.get_permission(db, id))


@permissions_router.post("", status_code=201, response_model=PermissionOut)
def create_permission(
    body: PermissionCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_create),
):
    return PermissionOut.model_validate(role_service.create_permission(db, body.name, body.description))


@permissions_router.put("/{id}", response_model=PermissionOut)
def update_permission(
    id: int,
    body: PermissionUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_update),
):
    permission = role_service.update_permission(db, id, body.name, body.description)
    return PermissionOut.model_validate(permission)


@permissions_router.delete("/{id}", response_model=MessageResponse)
def delete_permission(id: int, db: Session = Depends(get_db), principal: Principal = Depends(require_admin_delete)):
    role_service.delete_permission(db, id)
    return MessageResponse(message="Permission deleted successfully")
