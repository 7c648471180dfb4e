"""Users API router: listing, profile reads/updates, deletion, sessions."""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from roster.core.exceptions import AuthorizationError
from roster.core.permissions import (
    Authorize, Principal, require_admin_delete, require_admin_read, require_admin_update,
)
from roster.db.session import get_db
from roster.models.user import User
from roster.schemas.schemas import (
    MessageResponse, RevokeResponse, SessionMetadataOut, UserListResponse, UserOut, UserUpdateRequest,
)
from roster.services.auth_service import auth_service

router = APIRouter(prefix="/users", tags=["users"])

PROFILE_FIELDS = ("first_name", "last_name", "phone", "avatar_url", "ward_id", "password")


def _user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        role=user.role_name,
        phone=user.phone,
        avatar_url=user.avatar_url,
        ward_id=user.ward_id,
        created_at=user.created_at,
    )


@router.get("", response_model=UserListResponse)
def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_read),
):
    """List all users (admin only)."""
    result = auth_service.list_users(db, page, page_size)
    return UserListResponse(
        users=[_user_out(u) for u in result["users"]],
        total=result["total"],
        page=result["page"],
    )


@router.get("/{id}", response_model=UserOut)
def get_user(
    id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(Authorize("read", self_access_only=True)),
):
    """Get a user; non-admins may only read themselves."""
    return _user_out(auth_service.get_user(db, id))


@router.put("/{id}", response_model=UserOut)
def update_user(
    id: int,
    body: UserUpdateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(Authorize("update", self_access_only=True)),
):
    """Update profile fields; only admins may change a role."""
    if body.role is not None and not principal.is_admin:
        raise AuthorizationError("Only administrators can change roles")
    fields = {
        key: value
        for key, value in body.model_dump(exclude_unset=True).items()
        if key in PROFILE_FIELDS and value is not None
    }
    user = auth_service.update_user(db, id, fields, role_name=body.role)
    return _user_out(user)


@router.delete("/{id}", response_model=MessageResponse)
def delete_user(
    id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_delete),
):
    """Delete a user and all of its sessions (admin only)."""
    auth_service.delete_user(db, id, actor_id=principal.id)
    return MessageResponse(message="User deleted successfully")


@router.get("/{id}/sessions", response_model=List[SessionMetadataOut])
def list_user_sessions(
    id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_read),
):
    """List a user's sessions (admin only). Token hashes are never returned."""
    auth_service.get_user(db, id)
    return [SessionMetadataOut.model_validate(s) for s in auth_service.list_sessions(db, id)]


@router.post("/{id}/sessions/revoke", response_model=RevokeResponse)
def revoke_user_sessions(
    id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin_update),
):
    """Revoke every session of a user (admin only)."""
    count = auth_service.revoke_sessions(db, id, actor_id=principal.id)
    return RevokeResponse(message="Sessions revoked", revoked=count)
