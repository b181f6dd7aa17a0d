from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from app.database import get_db
from app.dependencies import (
    get_current_user,
    get_tenant_context,
    require_permission,
    require_writable_tenant,
)
from app.models.user import User
from app.schemas.quota import (
    PlanResponse,
    QuotaAdmissionResponse,
    QuotaConsumeRequest,
    UsageStatsResponse,
)
from app.services import quota_service
from app.core.tenant_context import TenantContext

router = APIRouter()


@router.get("/plans", response_model=List[PlanResponse])
def list_plans(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user)
):
    """Active plans with their limits and features."""
    return quota_service.list_plans(db)


@router.get("/usage", response_model=UsageStatsResponse)
def get_usage(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("ai_agent.view"))
):
    """
    Current AI usage of your tenant per window.

    Raises:
        NoSubscriptionError 429: No subscription in force
    """
    return quota_service.usage_stats(db, ctx.require_tenant_id())


@router.post("/quota/consume", response_model=QuotaAdmissionResponse)
def consume_quota(
    data: QuotaConsumeRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("ai_agent.view")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Admit a metered AI operation and record its cost.

    Called by AI features before doing any billable work. Either every
    window is charged or none is.

    Args:
        data: Feature name and token cost
        db: Database session
        ctx: Tenant context (from the access token)

    Returns:
        Admission with post-charge usage per window

    Raises:
        NoSubscriptionError 429: No subscription in force
        FeatureDisabledError 429: Feature not in the plan
        MinuteRateExceededError / DailyBudgetExceededError /
        MonthlyBudgetExceededError 429: Window exhausted (see Retry-After)
    """
    admission = quota_service.check_and_consume(db, ctx.require_tenant_id(), data.feature, data.tokens)
    return admission.as_dict()
