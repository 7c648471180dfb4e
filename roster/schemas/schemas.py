"""Pydantic schemas for API request/response serialization.

JSON bodies use camelCase (``firstName``, ``accessToken``); snake_case names
are accepted on input as well.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ---- Auth ----
class RegisterRequest(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=256)
    role: Optional[str] = Field(None, max_length=50)

class LoginRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)

class AuthResponse(CamelModel):
    message: str
    access_token: str
    refresh_token: Optional[str] = None

class PrincipalOut(CamelModel):
    id: int
    email: str
    role: str

class ProfileResponse(CamelModel):
    message: str
    user: PrincipalOut

class MessageResponse(CamelModel):
    message: str


# ---- User ----
class UserOut(CamelModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    role: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    ward_id: Optional[int] = None
    created_at: Optional[datetime] = None

class UserListResponse(CamelModel):
    users: List[UserOut]
    total: int
    page: int

class UserUpdateRequest(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    avatar_url: Optional[str] = Field(None, max_length=500)
    ward_id: Optional[int] = None
    password: Optional[str] = Field(None, min_length=8, max_length=256)
    role: Optional[str] = Field(None, max_length=50)


# ---- Roles & permissions ----
class PermissionCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = ""

class PermissionUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None

class PermissionOut(CamelModel):
    id: int
    name: str
    description: str = ""

class RoleCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = ""
    permissions: List[str] = []

class RoleUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    permissions: Optional[List[str]] = None

class RoleOut(CamelModel):
    id: int
    name: str
    description: str = ""
    permissions: List[str] = []


# ---- Sessions & audit ----
class SessionMetadataOut(CamelModel):
    id: int
    user_id: int
    device_id: str
    ip_address: str
    user_agent: str
    is_revoked: bool
    expires_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class RevokeResponse(CamelModel):
    message: str
    revoked: int

class AuditLogOut(CamelModel):
    id: int
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None
