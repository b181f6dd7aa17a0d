import enum
from datetime import datetime
from typing import Optional
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.orm import relationship
from app.database import Base, TimestampMixin
from app.core.security import as_utc, utcnow


class SubscriptionStatus(str, enum.Enum):
    trial = "trial"
    active = "active"
    past_due = "past_due"
    cancelled = "cancelled"
    expired = "expired"


LIVE_STATUSES = (SubscriptionStatus.trial, SubscriptionStatus.active)


class Subscription(Base, TimestampMixin):
    __tablename__ = "subscription"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenant.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plan.id"), nullable=False)
    status = Column(Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.trial)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=True)  # NULL = open-ended
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Per-tenant overrides of the plan budgets
    custom_monthly_token_limit = Column(Integer, nullable=True)
    custom_daily_token_limit = Column(Integer, nullable=True)

    tenant = relationship("Tenant", back_populates="subscriptions")
    plan = relationship("Plan")

    __table_args__ = (
        # One live subscription per tenant
        Index(
            "uix_subscription_live_tenant", "tenant_id", unique=True,
            postgresql_where=text("status IN ('trial', 'active')"),
            sqlite_where=text("status IN ('trial', 'active')"),
        ),
    )

    def is_current(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        if self.status not in LIVE_STATUSES:
            return False
        if as_utc(self.starts_at) > now:
            return False
        return self.ends_at is None or now < as_utc(self.ends_at)

    @property
    def monthly_token_limit(self) -> int:
        if self.custom_monthly_token_limit is not None:
            return self.custom_monthly_token_limit
        return self.plan.monthly_token_limit

    @property
    def daily_token_limit(self) -> int:
        if self.custom_daily_token_limit is not None:
            return self.custom_daily_token_limit
        return self.plan.daily_token_limit
