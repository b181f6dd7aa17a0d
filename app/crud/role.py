from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_, select
from app.crud.base import CRUDBase
from app.models.role import Role, RoleKind
from app.schemas.role import RoleCreate, RoleUpdate
from app.core.tenant_context import TenantContext


class CRUDRole(CRUDBase[Role, RoleCreate, RoleUpdate]):
    """
    CRUD operations for Role model.

    Custom roles are tenant-owned and go through the regular scoped
    methods. System roles have no tenant and are visible to every tenant,
    so lookups here use ``_visible()`` instead of plain ``scope()``.
    """

    def _visible(self, stmt, ctx: TenantContext):
        if ctx.all_tenants:
            return stmt
        return stmt.where(or_(Role.kind == RoleKind.system, Role.tenant_id == ctx.require_tenant_id()))

    def get_visible(self, db: Session, *, id: int, ctx: TenantContext) -> Optional[Role]:
        """
        Get a role the tenant may see or assign: any system role or one of
        its own custom roles.
        """
        stmt = self._visible(select(Role).where(Role.id == id), ctx)
        return db.execute(stmt).scalar_one_or_none()

    def get_multi_visible(self, db: Session, *, ctx: TenantContext) -> List[Role]:
        stmt = self._visible(select(Role), ctx).order_by(Role.kind, Role.name)
        return list(db.execute(stmt).scalars().all())

    def get_system(self, db: Session, slug: str) -> Optional[Role]:
        stmt = select(Role).where(Role.kind == RoleKind.system, Role.slug == slug)
        return db.execute(stmt).scalar_one_or_none()

    def slug_taken(self, db: Session, *, slug: str, ctx: TenantContext, exclude_id: Optional[int] = None) -> bool:
        """A slug clashes with any system role or a custom role of the same tenant."""
        stmt = self._visible(select(Role.id).where(Role.slug == slug), ctx)
        if exclude_id is not None:
            stmt = stmt.where(Role.id != exclude_id)
        return db.execute(stmt).first() is not None

    def create(
        self,
        db: Session,
        *,
        obj_in: RoleCreate,
        ctx: TenantContext,
        commit: bool = True
    ) -> Role:
        """Create a custom role owned by the context's tenant."""
        obj_data = obj_in.model_dump()
        obj_data["kind"] = RoleKind.custom
        return super().create(db=db, obj_in=obj_data, ctx=ctx, commit=commit)

    def upsert_system(
        self,
        db: Session,
        *,
        slug: str,
        name: str,
        description: str,
        permissions: List[str],
        overwrite: bool = False
    ) -> Role:
        """
        Seed a built-in role.

        Existing rows keep their (possibly operator-edited) permissions
        unless ``overwrite`` is set.
        """
        role = self.get_system(db, slug)
        if role is not None and not overwrite:
            return role
        if role is None:
            role = Role(kind=RoleKind.system, tenant_id=None, slug=slug)
        role.name = name
        role.description = description
        role.permissions = list(permissions)
        db.add(role)
        db.flush()
        return role


# Create singleton instance
role = CRUDRole(Role)
