from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from app.database import get_db
from app.dependencies import get_cross_tenant_context
from app.schemas.quota import SubscriptionCreate, SubscriptionResponse
from app.schemas.tenant import TenantResponse, TenantSuspendRequest
from app.schemas.user import UserResponse
from app.services import tenant_service, user_service
from app.core.tenant_context import TenantContext

router = APIRouter()


@router.get("/tenants", response_model=List[TenantResponse])
def list_tenants(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    _ctx: TenantContext = Depends(get_cross_tenant_context)
):
    """All tenants of the deployment (super-admin only)."""
    return tenant_service.get_tenants(db, skip=skip, limit=limit)


@router.post("/tenants/{tenant_id}/suspend", response_model=TenantResponse)
def suspend_tenant(
    tenant_id: int,
    data: Optional[TenantSuspendRequest] = None,
    db: Session = Depends(get_db),
    _ctx: TenantContext = Depends(get_cross_tenant_context)
):
    """
    Suspend a tenant.

    Args:
        tenant_id: Tenant to suspend
        data: Optional reason shown to the tenant's users

    Raises:
        NotFoundError 404: Unknown tenant
    """
    return tenant_service.suspend_tenant(db, tenant_id, reason=data.reason if data else None)


@router.post("/tenants/{tenant_id}/activate", response_model=TenantResponse)
def activate_tenant(
    tenant_id: int,
    db: Session = Depends(get_db),
    _ctx: TenantContext = Depends(get_cross_tenant_context)
):
    """Lift a tenant's suspension."""
    return tenant_service.activate_tenant(db, tenant_id)


@router.get("/tenants/{tenant_id}/users", response_model=List[UserResponse])
def list_tenant_users(
    tenant_id: int,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    _ctx: TenantContext = Depends(get_cross_tenant_context)
):
    """Users of one tenant, addressed by path parameter."""
    tenant = tenant_service.get_tenant(db, tenant_id)
    ctx = TenantContext.for_tenant(tenant.id, is_super_admin=True)
    return user_service.get_users(db, ctx, skip=skip, limit=limit)


@router.post(
    "/tenants/{tenant_id}/subscription",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED
)
def assign_subscription(
    tenant_id: int,
    data: SubscriptionCreate,
    db: Session = Depends(get_db),
    _ctx: TenantContext = Depends(get_cross_tenant_context)
):
    """
    Put a tenant on a plan. Any live subscription is cancelled first.

    Raises:
        NotFoundError 404: Unknown tenant or plan
    """
    return tenant_service.assign_subscription(db, tenant_id, data)
