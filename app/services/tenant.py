from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from app.crud.tenant import tenant as tenant_crud
from app.crud.plan import plan as plan_crud
from app.crud.subscription import subscription as subscription_crud
from app.models.subscription import Subscription
from app.models.tenant import Tenant
from app.schemas.quota import SubscriptionCreate
from app.core.exceptions import NotFoundError
from app.core.security import utcnow
from app.core.logging_config import logger


class TenantService:
    """
    Operator-side tenant administration.

    Every method here is reached only through the cross-tenant admin
    endpoints, which are restricted to super-admins.
    """

    def __init__(self):
        self.crud = tenant_crud

    def get_tenant(self, db: Session, tenant_id: int) -> Tenant:
        tenant = self.crud.get(db, tenant_id)
        if not tenant:
            raise NotFoundError("Tenant not found")
        return tenant

    def get_tenants(self, db: Session, skip: int = 0, limit: int = 100) -> List[Tenant]:
        return self.crud.get_multi(db, skip=skip, limit=limit)

    def suspend_tenant(self, db: Session, tenant_id: int, reason: Optional[str] = None) -> Tenant:
        """
        Suspend a tenant. Its data stays intact and readable; writes are
        refused until it is reactivated.
        """
        tenant = self.crud.suspend(db, tenant=self.get_tenant(db, tenant_id), reason=reason)
        logger.warning(f"Tenant suspended: id={tenant.id}, reason={reason}")
        return tenant

    def activate_tenant(self, db: Session, tenant_id: int) -> Tenant:
        tenant = self.crud.activate(db, tenant=self.get_tenant(db, tenant_id))
        logger.info(f"Tenant reactivated: id={tenant.id}")
        return tenant

    def assign_subscription(
        self,
        db: Session,
        tenant_id: int,
        data: SubscriptionCreate,
        now: Optional[datetime] = None
    ) -> Subscription:
        """
        Put a tenant on a plan, replacing its live subscription.

        Raises:
            NotFoundError: Unknown tenant or plan
        """
        tenant = self.get_tenant(db, tenant_id)
        plan = plan_crud.get_by_slug(db, data.plan_slug)
        if plan is None:
            raise NotFoundError("Plan not found")
        return subscription_crud.replace(
            db,
            tenant_id=tenant.id,
            plan=plan,
            status=data.status,
            starts_at=now or utcnow(),
            ends_at=data.ends_at,
            custom_monthly_token_limit=data.custom_monthly_token_limit,
            custom_daily_token_limit=data.custom_daily_token_limit,
        )


# Create a singleton instance
tenant_service = TenantService()
