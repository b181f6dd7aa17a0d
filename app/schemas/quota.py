from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Optional
from datetime import datetime
from decimal import Decimal
from app.models.subscription import SubscriptionStatus


class QuotaConsumeRequest(BaseModel):
    feature: str = Field(..., min_length=1, max_length=50)
    tokens: int = Field(..., ge=0)


class WindowUsage(BaseModel):
    used: int
    limit: int
    remaining: int
    percentage: float


class QuotaAdmissionResponse(BaseModel):
    admitted: bool = True
    feature: str
    tokens: int
    minute: WindowUsage
    daily: WindowUsage
    monthly: WindowUsage


class PlanResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    monthly_token_limit: int
    daily_token_limit: int
    request_limit_per_minute: int
    price_monthly: Decimal
    features: Dict[str, bool]


class UsageStatsResponse(BaseModel):
    plan: PlanResponse
    subscription_status: SubscriptionStatus
    ends_at: Optional[datetime] = None
    minute: WindowUsage
    daily: WindowUsage
    monthly: WindowUsage


class SubscriptionCreate(BaseModel):
    plan_slug: str
    status: SubscriptionStatus = SubscriptionStatus.active
    ends_at: Optional[datetime] = None
    custom_monthly_token_limit: Optional[int] = Field(None, ge=0)
    custom_daily_token_limit: Optional[int] = Field(None, ge=0)


class SubscriptionResponse(BaseModel):
    id: int
    tenant_id: int
    plan_id: int
    status: SubscriptionStatus
    starts_at: datetime
    ends_at: Optional[datetime] = None
    custom_monthly_token_limit: Optional[int] = None
    custom_daily_token_limit: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)
