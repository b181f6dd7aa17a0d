from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime
from app.models.invitation import InvitationStatus
from app.schemas.role import RoleSummary


class InvitationCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=255)
    role_id: int


class InvitationResponse(BaseModel):
    id: int
    email: EmailStr
    name: Optional[str] = None
    role: RoleSummary
    invited_by: Optional[int] = None
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    status: InvitationStatus

    model_config = ConfigDict(from_attributes=True)


class InvitationCreatedResponse(InvitationResponse):
    """Returned to the inviter once, so the link can be delivered."""
    token: str
    invitation_url: str
