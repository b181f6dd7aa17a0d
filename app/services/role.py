from collections import OrderedDict
from typing import List
from sqlalchemy.orm import Session
from app.crud.role import role as role_crud
from app.crud.user import user as user_crud
from app.models.role import Role
from app.models.user import User
from app.schemas.role import RoleCreate, RoleUpdate
from app.core.exceptions import (
    ImmutableRoleError,
    NotFoundError,
    PermissionDeniedError,
    RoleInUseError,
    ValidationFailedError,
)
from app.core.permissions import ALL_PERMISSIONS, effective_permissions, is_known_permission
from app.core.tenant_context import TenantContext
from app.core.logging_config import logger


class RoleService:
    """
    Service layer for role management.

    System roles are shared by every tenant: their name and slug are fixed
    and they can't be deleted. Only a super-admin may change their
    permission list, since that change reaches all tenants at once.
    """

    def __init__(self):
        self.crud = role_crud

    def _validate_permissions(self, permissions: List[str]) -> None:
        unknown = [p for p in permissions if not is_known_permission(p)]
        if unknown:
            raise ValidationFailedError("permissions", f"Unknown permissions: {', '.join(unknown)}")

    def get_role(self, db: Session, role_id: int, ctx: TenantContext) -> Role:
        """
        Get a role visible to the tenant (system or own custom role).

        Raises:
            NotFoundError: If the role doesn't exist or belongs to another tenant
        """
        role = self.crud.get_visible(db, id=role_id, ctx=ctx)
        if not role:
            raise NotFoundError("Role not found")
        return role

    def get_roles(self, db: Session, ctx: TenantContext) -> List[Role]:
        return self.crud.get_multi_visible(db, ctx=ctx)

    def create_role(self, db: Session, role_data: RoleCreate, ctx: TenantContext) -> Role:
        """
        Create a custom role for the tenant.

        Raises:
            ValidationFailedError: Unknown permission or slug already in use
        """
        self._validate_permissions(role_data.permissions)
        if self.crud.slug_taken(db, slug=role_data.slug, ctx=ctx):
            raise ValidationFailedError("slug", "A role with this slug already exists")

        role = self.crud.create(db, obj_in=role_data, ctx=ctx)
        logger.info(f"Role created: id={role.id}, slug={role.slug}, tenant_id={role.tenant_id}")
        return role

    def update_role(
        self,
        db: Session,
        role_id: int,
        role_data: RoleUpdate,
        ctx: TenantContext,
        actor: User
    ) -> Role:
        """
        Update a role.

        Raises:
            NotFoundError: If role not found
            ImmutableRoleError: Renaming or re-slugging a system role
            PermissionDeniedError: Changing system role permissions without being super-admin
            ValidationFailedError: Unknown permission or slug clash
        """
        role = self.get_role(db, role_id, ctx)
        update_data = role_data.model_dump(exclude_unset=True)

        if role.is_system:
            if ("name" in update_data and update_data["name"] != role.name) or (
                "slug" in update_data and update_data["slug"] != role.slug
            ):
                raise ImmutableRoleError()
            if "permissions" in update_data and not actor.is_super_admin:
                raise PermissionDeniedError("Only system administrators can change built-in role permissions")
            update_data.pop("name", None)
            update_data.pop("slug", None)

        if update_data.get("permissions") is not None:
            self._validate_permissions(update_data["permissions"])
        elif "permissions" in update_data:
            update_data.pop("permissions")

        if "slug" in update_data and self.crud.slug_taken(
            db, slug=update_data["slug"], ctx=ctx, exclude_id=role.id
        ):
            raise ValidationFailedError("slug", "A role with this slug already exists")

        role = self.crud.update(db, db_obj=role, obj_in=update_data)
        logger.info(f"Role updated: id={role.id}, fields={sorted(update_data)}")
        return role

    def delete_role(self, db: Session, role_id: int, ctx: TenantContext) -> None:
        """
        Delete a custom role.

        Raises:
            NotFoundError: If role not found
            ImmutableRoleError: If the role is a system role
            ValidationFailedError: If users are still assigned to the role
        """
        role = self.get_role(db, role_id, ctx)
        if role.is_system:
            raise ImmutableRoleError()

        in_use = user_crud.count_with_role(db, role.id)
        if in_use:
            raise RoleInUseError("role", f"Role is assigned to {in_use} user(s)")

        self.crud.delete(db, id=role.id, ctx=ctx)
        logger.info(f"Role deleted: id={role_id}, tenant_id={ctx.tenant_id}")

    def permission_catalog(self) -> List[dict]:
        """Catalog grouped by resource, for the role editor."""
        groups: "OrderedDict[str, List[dict]]" = OrderedDict()
        for key, label in ALL_PERMISSIONS.items():
            groups.setdefault(key.split(".")[0], []).append({"key": key, "label": label})
        return [{"module": module, "permissions": items} for module, items in groups.items()]


def role_to_dict(role: Role) -> dict:
    return {
        "id": role.id,
        "name": role.name,
        "slug": role.slug,
        "kind": role.kind,
        "is_system": role.is_system,
        "description": role.description,
        "permissions": list(role.permissions or []),
        "permissions_expanded": sorted(effective_permissions(role)),
    }


# Create a singleton instance
role_service = RoleService()
