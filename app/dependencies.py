from typing import Callable, Optional
from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select
from app.database import get_db
from app.models.tenant import Tenant
from app.models.user import User
from app.core.exceptions import (
    MalformedTokenError,
    NotFoundError,
    PermissionDeniedError,
    TenantRequiredError,
    TenantSuspendedError,
    TokenInvalidatedError,
    UserNotActiveError,
)
from app.core.permissions import has_all, has_any
from app.core.tenant_context import ALL_TENANTS, TenantContext, resolve_tenant
from app.services.token import token_service


def get_bearer_token(request: Request) -> str:
    """Extract the bearer token from the Authorization header."""
    authorization = request.headers.get("Authorization")
    if not authorization or not authorization.startswith("Bearer "):
        raise MalformedTokenError("Bearer token not provided")
    return authorization[len("Bearer "):].strip()


def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db)
) -> User:
    """
    Validate the access token and return the authenticated User.

    The user and role are re-read on every request, so role permission
    changes and suspensions apply from the next request on, and a credential
    change invalidates outstanding access tokens.

    Args:
        token: Bearer access token
        db: Database session

    Returns:
        User object with tenant and role loaded

    Raises:
        AuthError: If the token is invalid, stale, or the user is inactive
    """
    identity = token_service.verify(token)

    stmt = (
        select(User)
        .where(User.id == identity.user_id)
        .options(selectinload(User.tenant), selectinload(User.role))
    )
    user = db.execute(stmt).scalar_one_or_none()

    if user is None or user.credential_version != identity.credential_version:
        raise TokenInvalidatedError()

    if user.is_suspended:
        raise UserNotActiveError()

    return user


def require_permission(*permissions: str) -> Callable[..., User]:
    """
    Dependency factory requiring every listed permission.

    Usage:
        current_user: User = Depends(require_permission("users.invite"))
    """
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_all(current_user, permissions):
            raise PermissionDeniedError(context={"required_permissions": list(permissions)})
        return current_user
    return checker


def require_any_permission(*permissions: str) -> Callable[..., User]:
    """Dependency factory requiring at least one of the listed permissions."""
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_any(current_user, permissions):
            raise PermissionDeniedError(context={"required_permissions": list(permissions)})
        return current_user
    return checker


def get_tenant_context(
    current_user: User = Depends(get_current_user),
    x_tenant_id: Optional[int] = Header(None),
) -> TenantContext:
    """
    Tenant context for tenant endpoints.

    Regular users are pinned to their own tenant and nothing the client sends
    can change that. Super-admins have no implicit tenant here and must name
    the target with the ``X-Tenant-ID`` header.
    """
    tenant = resolve_tenant(current_user)
    if tenant is ALL_TENANTS:
        if x_tenant_id is None:
            raise TenantRequiredError()
        return TenantContext.for_tenant(x_tenant_id, is_super_admin=True)
    return TenantContext.for_tenant(tenant)


def get_cross_tenant_context(
    current_user: User = Depends(get_current_user),
) -> TenantContext:
    """Context for endpoints explicitly marked cross-tenant (super-admin only)."""
    if not current_user.is_super_admin:
        raise PermissionDeniedError("Only system administrators can access this area")
    return TenantContext.cross_tenant()


def get_tenant(
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> Tenant:
    """The tenant the request is scoped to."""
    tenant = db.get(Tenant, ctx.require_tenant_id())
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return tenant


def require_writable_tenant(tenant: Tenant = Depends(get_tenant)) -> Tenant:
    """
    Write gate for mutating tenant endpoints.

    A suspended tenant keeps read access (so the suspension notice can be
    shown) but every write is rejected.
    """
    if tenant.is_suspended:
        raise TenantSuspendedError(context={"suspended_reason": tenant.suspended_reason})
    return tenant


def require_writable_account(current_user: User = Depends(get_current_user)) -> User:
    """Write gate for self-service endpoints, which carry no tenant context."""
    if current_user.tenant is not None and current_user.tenant.is_suspended:
        raise TenantSuspendedError(context={"suspended_reason": current_user.tenant.suspended_reason})
    return current_user
