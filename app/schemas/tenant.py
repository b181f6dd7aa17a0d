from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

class TenantResponse(BaseModel):
    id: int
    name: str
    slug: str
    is_active: bool
    is_suspended: bool
    suspended_at: Optional[datetime] = None
    suspended_reason: Optional[str] = None
    billing_timezone: str

    model_config = ConfigDict(from_attributes=True)

class TenantSuspendRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
