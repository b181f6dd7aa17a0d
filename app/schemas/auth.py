from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from app.schemas.user import UserResponse
from app.schemas.tenant import TenantResponse
from app.schemas.role import RoleSummary


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    tenant_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    password: str = Field(..., min_length=8, max_length=128)


class AuthResponse(BaseModel):
    user: UserResponse
    tenant: Optional[TenantResponse] = None
    permissions: List[str]
    tokens: TokenResponse


class InvitationSummary(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    tenant_name: str
    role: RoleSummary
    inviter_name: Optional[str] = None
    expires_at: str


class AcceptInvitationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)


class MeResponse(BaseModel):
    user: UserResponse
    tenant: Optional[TenantResponse] = None
    permissions: List[str]
