from dataclasses import dataclass
from typing import Optional, Union
from app.core.exceptions import TenantRequiredError


class _AllTenants:
    """Sentinel returned for super-admins acting across tenants."""

    def __repr__(self):
        return "ALL_TENANTS"


ALL_TENANTS = _AllTenants()


@dataclass(frozen=True)
class TenantContext:
    """
    Tenant scope of one request.

    Built once per request (see ``app.dependencies.get_tenant_context``) and
    passed explicitly into services and CRUD so every query can be scoped
    without ambient state.

    Attributes:
        tenant_id: Pinned tenant, None only when ``all_tenants`` is set
        is_super_admin: Whether the acting identity is a super-admin
        all_tenants: Cross-tenant scope, only for super-admin endpoints
    """
    tenant_id: Optional[int]
    is_super_admin: bool = False
    all_tenants: bool = False

    @classmethod
    def for_tenant(cls, tenant_id: int, is_super_admin: bool = False) -> "TenantContext":
        return cls(tenant_id=tenant_id, is_super_admin=is_super_admin)

    @classmethod
    def cross_tenant(cls) -> "TenantContext":
        return cls(tenant_id=None, is_super_admin=True, all_tenants=True)

    def require_tenant_id(self) -> int:
        if self.tenant_id is None:
            raise TenantRequiredError()
        return self.tenant_id


def resolve_tenant(user) -> Union[int, _AllTenants]:
    """
    Tenant a verified identity is pinned to.

    Returns:
        The user's tenant id, or ALL_TENANTS for super-admins
    """
    if user.is_super_admin:
        return ALL_TENANTS
    if user.tenant_id is None:
        raise TenantRequiredError("User has no tenant. Contact support.")
    return user.tenant_id


def scope(stmt, model, ctx: TenantContext):
    """
    Restrict a SELECT/UPDATE/DELETE statement on a tenant-owned model to
    the context's tenant.

    Args:
        stmt: SQLAlchemy statement
        model: Mapped class with a ``tenant_id`` column
        ctx: Tenant context of the request

    Returns:
        The statement with the tenant filter applied
    """
    if ctx.all_tenants:
        return stmt
    return stmt.where(model.tenant_id == ctx.require_tenant_id())
