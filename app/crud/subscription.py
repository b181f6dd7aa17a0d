from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select, update
from app.models.plan import Plan
from app.models.subscription import LIVE_STATUSES, Subscription, SubscriptionStatus
from app.core.logging_config import logger


class CRUDSubscription:
    """
    CRUD operations for Subscription model.

    Subscriptions are always addressed by an explicit tenant_id coming from
    a TenantContext or an operator path parameter.
    """

    def __init__(self):
        self.model = Subscription

    def get_live(self, db: Session, tenant_id: int) -> Optional[Subscription]:
        """The tenant's trial/active row, if any, regardless of its dates."""
        stmt = (
            select(Subscription)
            .where(Subscription.tenant_id == tenant_id, Subscription.status.in_(LIVE_STATUSES))
            .options(selectinload(Subscription.plan))
        )
        return db.execute(stmt).scalars().first()

    def get_current(self, db: Session, tenant_id: int, now: datetime) -> Optional[Subscription]:
        """
        The subscription in force at ``now``: trial/active status and inside
        its validity window.
        """
        subscription = self.get_live(db, tenant_id)
        if subscription is None or not subscription.is_current(now):
            return None
        return subscription

    def replace(
        self,
        db: Session,
        *,
        tenant_id: int,
        plan: Plan,
        status: SubscriptionStatus,
        starts_at: datetime,
        ends_at: Optional[datetime] = None,
        custom_monthly_token_limit: Optional[int] = None,
        custom_daily_token_limit: Optional[int] = None,
        commit: bool = True
    ) -> Subscription:
        """
        Bind the tenant to a plan, cancelling any live subscription first so
        at most one trial/active row exists per tenant.
        """
        db.execute(
            update(Subscription)
            .where(Subscription.tenant_id == tenant_id, Subscription.status.in_(LIVE_STATUSES))
            .values(status=SubscriptionStatus.cancelled, cancelled_at=starts_at)
            .execution_options(synchronize_session=False)
        )
        subscription = Subscription(
            tenant_id=tenant_id,
            plan_id=plan.id,
            status=status,
            starts_at=starts_at,
            ends_at=ends_at,
            custom_monthly_token_limit=custom_monthly_token_limit,
            custom_daily_token_limit=custom_daily_token_limit,
        )
        db.add(subscription)
        if commit:
            db.commit()
            db.refresh(subscription)
        else:
            db.flush()
        logger.info(f"Subscription set: tenant_id={tenant_id}, plan={plan.slug}, status={status.value}")
        return subscription


# Create singleton instance
subscription = CRUDSubscription()
