from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from app.schemas.role import RoleSummary

# Input schemas are allow-lists. tenant_id, is_super_admin, is_active and
# suspended_* never appear in them, so pydantic drops such keys from a
# request body before it reaches a service.


class UserProfileUpdate(BaseModel):
    """Fields a user may change on their own account."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)


class UserAdminUpdate(UserProfileUpdate):
    """Fields an operator with users.edit may change on another account."""
    email: Optional[EmailStr] = None
    role_id: Optional[int] = None


class UserSuspendRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class UserResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: Optional[str] = None
    tenant_id: Optional[int] = None
    is_active: bool
    is_super_admin: bool
    suspended_at: Optional[datetime] = None
    suspended_reason: Optional[str] = None
    role: Optional[RoleSummary] = None

    model_config = ConfigDict(from_attributes=True)


class MyPermissionsResponse(BaseModel):
    role: Optional[RoleSummary] = None
    permissions: List[str]
    is_super_admin: bool
