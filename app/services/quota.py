import math
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Type
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from app.crud.plan import plan as plan_crud
from app.crud.subscription import subscription as subscription_crud
from app.crud.usage_counter import usage_counter as usage_counter_crud
from app.models.plan import Plan
from app.models.subscription import Subscription
from app.models.tenant import Tenant
from app.models.usage_counter import QuotaWindow
from app.core.exceptions import (
    DailyBudgetExceededError,
    FeatureDisabledError,
    MinuteRateExceededError,
    MonthlyBudgetExceededError,
    NoSubscriptionError,
    NotFoundError,
    QuotaError,
    ValidationFailedError,
)
from app.core.security import utcnow
from app.core.logging_config import logger

WINDOW_KEY_FORMATS = {
    QuotaWindow.minute: "%Y-%m-%dT%H:%M",
    QuotaWindow.day: "%Y-%m-%d",
    QuotaWindow.month: "%Y-%m",
}


def _zone(name: Optional[str]):
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown billing timezone '{name}', falling back to UTC")
        return timezone.utc


@dataclass(frozen=True)
class WindowBucket:
    """The bucket of one window that ``now`` falls into."""
    window: QuotaWindow
    key: str
    resets_at: datetime  # aware UTC

    def retry_after(self, now: datetime) -> int:
        return max(1, math.ceil((self.resets_at - now).total_seconds()))


def _start_of_day(day, tz) -> datetime:
    """First instant of the local ``day``, in UTC, also when DST skips its midnight."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def current_buckets(now: datetime, billing_timezone: Optional[str]) -> Dict[QuotaWindow, WindowBucket]:
    """
    Compute the minute/day/month buckets for ``now``.

    Keys and boundaries follow the tenant's billing timezone, so a "day"
    is the tenant's local calendar day.
    """
    tz = _zone(billing_timezone)
    local = now.astimezone(tz)

    next_minute = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
    next_day = _start_of_day(local.date() + timedelta(days=1), tz)
    if local.month == 12:
        first_of_next_month = local.date().replace(year=local.year + 1, month=1, day=1)
    else:
        first_of_next_month = local.date().replace(month=local.month + 1, day=1)
    next_month = _start_of_day(first_of_next_month, tz)

    resets = {
        QuotaWindow.minute: next_minute,
        QuotaWindow.day: next_day,
        QuotaWindow.month: next_month,
    }
    return {
        window: WindowBucket(window=window, key=local.strftime(fmt), resets_at=resets[window])
        for window, fmt in WINDOW_KEY_FORMATS.items()
    }


@dataclass(frozen=True)
class WindowLimit:
    """One layer of a multi-window limit."""
    window: QuotaWindow
    ceiling: int
    amount: int
    error: Type[QuotaError]


@dataclass(frozen=True)
class WindowUsage:
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    @property
    def percentage(self) -> float:
        if self.limit <= 0:
            return 100.0
        return round(min(100.0, self.used * 100.0 / self.limit), 1)

    def as_dict(self) -> dict:
        return {
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class QuotaAdmission:
    """Result of an admitted metered operation."""
    tenant_id: int
    feature: str
    tokens: int
    usage: Dict[QuotaWindow, WindowUsage] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "admitted": True,
            "feature": self.feature,
            "tokens": self.tokens,
            "minute": self.usage[QuotaWindow.minute].as_dict(),
            "daily": self.usage[QuotaWindow.day].as_dict(),
            "monthly": self.usage[QuotaWindow.month].as_dict(),
        }


class MultiWindowLimiter:
    """
    Layered counters checked in order, each with its own ceiling.

    Every layer is one conditional increment, so concurrent callers can
    never push a counter past its ceiling. The limiter never commits or
    rolls back: the caller owns the transaction and must roll back when a
    layer rejects, so earlier layers' increments are discarded too.
    """

    def __init__(self, limits: Sequence[WindowLimit]):
        self.limits = list(limits)

    def consume(
        self,
        db: Session,
        *,
        tenant_id: int,
        buckets: Dict[QuotaWindow, WindowBucket],
        now: datetime
    ) -> None:
        for limit in self.limits:
            bucket = buckets[limit.window]
            usage_counter_crud.ensure_bucket(
                db, tenant_id=tenant_id, window=limit.window, window_key=bucket.key
            )
            admitted = usage_counter_crud.increment_within(
                db,
                tenant_id=tenant_id,
                window=limit.window,
                window_key=bucket.key,
                amount=limit.amount,
                ceiling=limit.ceiling,
            )
            if not admitted:
                raise limit.error(
                    retry_after=bucket.retry_after(now),
                    context={"window": limit.window.value, "limit": limit.ceiling},
                )


class QuotaService:
    """
    Service layer for plan quotas on metered AI operations.

    Admission is all-or-nothing across the minute, day and month windows:
    either every counter is incremented and committed, or none is.
    """

    def _current_subscription(self, db: Session, tenant_id: int, now: datetime) -> Subscription:
        subscription = subscription_crud.get_current(db, tenant_id, now)
        if subscription is None:
            raise NoSubscriptionError()
        return subscription

    def _ceilings(self, subscription: Subscription) -> Dict[QuotaWindow, int]:
        return {
            QuotaWindow.minute: subscription.plan.request_limit_per_minute,
            QuotaWindow.day: subscription.daily_token_limit,
            QuotaWindow.month: subscription.monthly_token_limit,
        }

    def _tenant(self, db: Session, tenant_id: int) -> Tenant:
        tenant = db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")
        return tenant

    def _usage(
        self,
        db: Session,
        tenant_id: int,
        buckets: Dict[QuotaWindow, WindowBucket],
        ceilings: Dict[QuotaWindow, int]
    ) -> Dict[QuotaWindow, WindowUsage]:
        used = usage_counter_crud.get_used(
            db, tenant_id=tenant_id, keys={window: bucket.key for window, bucket in buckets.items()}
        )
        return {window: WindowUsage(used=used[window], limit=ceilings[window]) for window in buckets}

    def check_and_consume(
        self,
        db: Session,
        tenant_id: int,
        feature: str,
        cost_tokens: int,
        now: Optional[datetime] = None
    ) -> QuotaAdmission:
        """
        Admit a metered operation and record its usage, or reject it.

        Checks run in order: subscription, feature flag, then the minute
        (one request), day and month (``cost_tokens`` each) windows.

        Args:
            db: Database session
            tenant_id: Tenant the operation is billed to
            feature: Feature name, e.g. "chat" or "summarize"
            cost_tokens: Token cost of the operation (0 admits without counting)
            now: Evaluation time, defaults to now

        Returns:
            QuotaAdmission with post-admission usage

        Raises:
            NoSubscriptionError: No trial/active subscription in force
            FeatureDisabledError: Feature off for the plan or a ceiling is zero
            MinuteRateExceededError / DailyBudgetExceededError /
            MonthlyBudgetExceededError: A window would be exceeded
        """
        if cost_tokens < 0:
            raise ValidationFailedError("tokens", "Token cost cannot be negative")

        now = now or utcnow()
        subscription = self._current_subscription(db, tenant_id, now)
        ceilings = self._ceilings(subscription)

        if not subscription.plan.is_feature_enabled(feature) or 0 in ceilings.values():
            logger.info(f"Quota rejected: tenant_id={tenant_id}, feature={feature}, reason=feature_disabled")
            raise FeatureDisabledError(context={"feature": feature})

        buckets = current_buckets(now, self._tenant(db, tenant_id).billing_timezone)

        if cost_tokens == 0:
            return QuotaAdmission(
                tenant_id=tenant_id,
                feature=feature,
                tokens=0,
                usage=self._usage(db, tenant_id, buckets, ceilings),
            )

        limiter = MultiWindowLimiter([
            WindowLimit(QuotaWindow.minute, ceilings[QuotaWindow.minute], 1, MinuteRateExceededError),
            WindowLimit(QuotaWindow.day, ceilings[QuotaWindow.day], cost_tokens, DailyBudgetExceededError),
            WindowLimit(QuotaWindow.month, ceilings[QuotaWindow.month], cost_tokens, MonthlyBudgetExceededError),
        ])

        # A concurrent request may create the same bucket row first; the
        # second attempt then finds it and only increments.
        for attempt in range(2):
            try:
                limiter.consume(db, tenant_id=tenant_id, buckets=buckets, now=now)
                db.commit()
                break
            except QuotaError as e:
                db.rollback()
                logger.info(
                    f"Quota rejected: tenant_id={tenant_id}, feature={feature}, "
                    f"tokens={cost_tokens}, reason={e.code}, retry_after={e.retry_after}"
                )
                raise
            except IntegrityError:
                db.rollback()
                if attempt == 1:
                    raise
                logger.info(f"Usage bucket creation raced for tenant_id={tenant_id}, retrying")

        logger.info(f"Quota admitted: tenant_id={tenant_id}, feature={feature}, tokens={cost_tokens}")
        return QuotaAdmission(
            tenant_id=tenant_id,
            feature=feature,
            tokens=cost_tokens,
            usage=self._usage(db, tenant_id, buckets, ceilings),
        )

    def usage_stats(self, db: Session, tenant_id: int, now: Optional[datetime] = None) -> dict:
        """
        Current usage of every window for the tenant's subscription.

        Raises:
            NoSubscriptionError: If no subscription is in force
        """
        now = now or utcnow()
        subscription = self._current_subscription(db, tenant_id, now)
        ceilings = self._ceilings(subscription)
        buckets = current_buckets(now, self._tenant(db, tenant_id).billing_timezone)
        usage = self._usage(db, tenant_id, buckets, ceilings)
        return {
            "plan": plan_to_dict(subscription.plan),
            "subscription_status": subscription.status,
            "ends_at": subscription.ends_at,
            "minute": usage[QuotaWindow.minute].as_dict(),
            "daily": usage[QuotaWindow.day].as_dict(),
            "monthly": usage[QuotaWindow.month].as_dict(),
        }

    def list_plans(self, db: Session) -> List[dict]:
        return [plan_to_dict(plan) for plan in plan_crud.get_active_multi(db)]


def plan_to_dict(plan: Plan) -> dict:
    return {
        "id": plan.id,
        "name": plan.name,
        "slug": plan.slug,
        "description": plan.description,
        "monthly_token_limit": plan.monthly_token_limit,
        "daily_token_limit": plan.daily_token_limit,
        "request_limit_per_minute": plan.request_limit_per_minute,
        "price_monthly": plan.price_monthly,
        "features": plan.features(),
    }


# Create a singleton instance
quota_service = QuotaService()
