import re
import secrets
from datetime import timedelta
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from app.models.tenant import Tenant
from app.models.user import User
from app.models.subscription import SubscriptionStatus
from app.crud.user import user as user_crud
from app.crud.role import role as role_crud
from app.crud.plan import plan as plan_crud
from app.crud.subscription import subscription as subscription_crud
from app.core.config import settings
from app.core.security import utcnow
from app.core.logging_config import logger


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "tenant"


class CRUDTenant:
    """
    CRUD operations for Tenant model.

    Note: Tenant model doesn't have tenant_id (it IS the tenant),
    so we don't inherit from CRUDBase.
    """

    def __init__(self):
        self.model = Tenant

    def get(self, db: Session, tenant_id: int) -> Optional[Tenant]:
        return db.get(Tenant, tenant_id)

    def get_multi(self, db: Session, *, skip: int = 0, limit: int = 100) -> List[Tenant]:
        stmt = select(Tenant).order_by(Tenant.id).offset(skip).limit(limit)
        return list(db.execute(stmt).scalars().all())

    def create_with_user(
        self,
        db: Session,
        *,
        business_name: str,
        name: str,
        email: str,
        password: str
    ) -> Tuple[Tenant, User]:
        """
        Create a tenant and its initial admin user atomically.

        The user gets the system ``admin`` role. If the trial plan is
        seeded, the tenant also starts on a trial subscription.

        Args:
            db: Database session
            business_name: Tenant business name
            name: Admin user display name
            email: Admin user email
            password: Admin user password (will be hashed)

        Returns:
            Tuple of (created Tenant, created User)

        Raises:
            ValueError: If user with this email already exists
        """
        try:
            tenant = Tenant(
                name=business_name,
                slug=f"{slugify(business_name)[:40]}-{secrets.token_hex(3)}",
                is_active=True,
            )
            db.add(tenant)
            db.flush()  # Get tenant.id without committing

            admin_role = role_crud.get_system(db, "admin")
            user = user_crud.create(
                db=db,
                name=name,
                email=email,
                password=password,
                tenant_id=tenant.id,
                role_id=admin_role.id if admin_role else None,
                commit=False  # Don't commit yet - we'll commit everything together
            )

            trial_plan = plan_crud.get_by_slug(db, settings.TRIAL_PLAN_SLUG) if settings.TRIAL_PLAN_SLUG else None
            if trial_plan is not None:
                now = utcnow()
                subscription_crud.replace(
                    db,
                    tenant_id=tenant.id,
                    plan=trial_plan,
                    status=SubscriptionStatus.trial,
                    starts_at=now,
                    ends_at=now + timedelta(days=settings.TRIAL_DAYS),
                    commit=False,
                )
            else:
                logger.warning(f"Trial plan '{settings.TRIAL_PLAN_SLUG}' not found, tenant {tenant.id} has no subscription")

            db.commit()
            db.refresh(tenant)
            db.refresh(user)

            return tenant, user

        except IntegrityError as e:
            db.rollback()
            # Check if error is due to duplicate email
            if "user_email_key" in str(e) or "user.email" in str(e) or "unique constraint" in str(e).lower():
                raise ValueError(f"User with email {email} already exists")
            raise e

    def suspend(self, db: Session, *, tenant: Tenant, reason: Optional[str] = None) -> Tenant:
        tenant.is_active = False
        tenant.suspended_at = utcnow()
        tenant.suspended_reason = reason
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    def activate(self, db: Session, *, tenant: Tenant) -> Tenant:
        tenant.is_active = True
        tenant.suspended_at = None
        tenant.suspended_reason = None
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant


# Create singleton instance
tenant = CRUDTenant()
