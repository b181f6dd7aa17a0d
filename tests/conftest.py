"""Pytest configuration and fixtures."""

import itertools
import os
from datetime import datetime, timedelta, timezone
from typing import Dict

# Settings and the engine are built at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-access-secret-0123456789abcdef")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret-0123456789abcdef")
os.environ["TRIAL_PLAN_SLUG"] = "business"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import app.models  # noqa: F401  registers every table on Base.metadata
from app.database import Base, SessionLocal, engine, get_db
from app.crud.subscription import subscription as subscription_crud
from app.crud.user import user as user_crud
from app.models.plan import Plan
from app.models.role import Role
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.tenant import Tenant
from app.models.user import User
from app.seed import seed_plans, seed_system_roles
from app.services.token import token_service
from main import app as api

PASSWORD = "correct-horse-battery"
FIXED_NOW = datetime(2026, 10, 19, 14, 5, 10, tzinfo=timezone.utc)


@pytest.fixture
def db() -> Session:
    """Fresh in-memory schema and session for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def roles(db: Session) -> Dict[str, Role]:
    """Seeded system roles by slug."""
    return {role.slug: role for role in seed_system_roles(db)}


@pytest.fixture
def plans(db: Session) -> Dict[str, Plan]:
    """Seeded default plans by slug."""
    return {plan.slug: plan for plan in seed_plans(db)}


@pytest.fixture
def make_tenant(db: Session):
    counter = itertools.count(1)

    def _make(name: str = None, billing_timezone: str = "UTC") -> Tenant:
        n = next(counter)
        tenant = Tenant(
            name=name or f"Tenant {n}",
            slug=f"tenant-{n}",
            is_active=True,
            billing_timezone=billing_timezone,
        )
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def make_user(db: Session, roles: Dict[str, Role]):
    counter = itertools.count(1)

    def _make(
        tenant: Tenant = None,
        role: str = "admin",
        role_obj: Role = None,
        email: str = None,
        password: str = PASSWORD,
        is_super_admin: bool = False,
    ) -> User:
        n = next(counter)
        if role_obj is not None:
            role_id = role_obj.id
        else:
            role_id = roles[role].id if role else None
        return user_crud.create(
            db,
            name=f"User {n}",
            email=email or f"user{n}@acme.com",
            password=password,
            tenant_id=tenant.id if tenant else None,
            role_id=role_id,
            is_super_admin=is_super_admin,
        )

    return _make


@pytest.fixture
def make_plan(db: Session):
    counter = itertools.count(1)

    def _make(**overrides) -> Plan:
        n = next(counter)
        fields = {
            "name": f"Plan {n}",
            "slug": f"plan-{n}",
            "monthly_token_limit": 5000,
            "daily_token_limit": 500,
            "request_limit_per_minute": 5,
            "ai_chat_enabled": True,
            "price_monthly": 0,
            "is_active": True,
        }
        fields.update(overrides)
        plan = Plan(**fields)
        db.add(plan)
        db.commit()
        db.refresh(plan)
        return plan

    return _make


@pytest.fixture
def subscribe(db: Session):
    def _subscribe(
        tenant: Tenant,
        plan: Plan,
        status: SubscriptionStatus = SubscriptionStatus.active,
        starts_at: datetime = None,
        ends_at: datetime = None,
        **overrides
    ) -> Subscription:
        return subscription_crud.replace(
            db,
            tenant_id=tenant.id,
            plan=plan,
            status=status,
            starts_at=starts_at or FIXED_NOW - timedelta(days=30),
            ends_at=ends_at,
            **overrides
        )

    return _subscribe


@pytest.fixture
def client(db: Session):
    """TestClient sharing the test session."""

    def override_get_db():
        try:
            yield db
        finally:
            pass  # The db fixture closes it

    api.dependency_overrides[get_db] = override_get_db
    client = TestClient(api)
    yield client
    api.dependency_overrides.clear()


def auth_headers(user: User, tenant_id: int = None) -> Dict[str, str]:
    headers = {"Authorization": f"Bearer {token_service.issue(user).access_token}"}
    if tenant_id is not None:
        headers["X-Tenant-ID"] = str(tenant_id)
    return headers
