from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List
from app.database import get_db
from app.dependencies import (
    get_tenant_context,
    require_any_permission,
    require_permission,
    require_writable_tenant,
)
from app.models.user import User
from app.schemas.role import PermissionGroup, RoleCreate, RoleResponse, RoleUpdate
from app.services import role_service
from app.services.role import role_to_dict
from app.core.tenant_context import TenantContext
from app.core.logging_config import logger

router = APIRouter()


@router.get("", response_model=List[RoleResponse])
def list_roles(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_any_permission("users.view", "users.roles"))
):
    """
    Roles your tenant can assign: the built-in system roles plus your own
    custom roles.
    """
    return [role_to_dict(role) for role in role_service.get_roles(db, ctx)]


@router.get("/permissions", response_model=List[PermissionGroup])
def list_permissions(_user: User = Depends(require_permission("users.roles"))):
    """Permission catalog grouped by module."""
    return role_service.permission_catalog()


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    role_data: RoleCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("users.roles")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Create a custom role for your tenant.

    Args:
        role_data: Name, slug, description and permission list
        db: Database session
        ctx: Tenant context (from the access token)

    Returns:
        Created role

    Raises:
        ValidationFailedError 422: Unknown permission or slug already used
    """
    try:
        logger.info(f"Creating role: slug={role_data.slug}, tenant_id={ctx.tenant_id}")
        return role_to_dict(role_service.create_role(db, role_data, ctx))
    except Exception as e:
        logger.error(f"Error creating role: {type(e).__name__}: {str(e)}")
        raise


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_any_permission("users.view", "users.roles"))
):
    """
    Retrieve a role.

    Raises:
        NotFoundError 404: Role doesn't exist or is another tenant's custom role
    """
    return role_to_dict(role_service.get_role(db, role_id, ctx))


@router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int,
    role_data: RoleUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    current_user: User = Depends(require_permission("users.roles")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Update a role.

    System roles keep their name and slug; only a system administrator can
    change their permissions.

    Raises:
        NotFoundError 404: Role not visible to your tenant
        ImmutableRoleError 403: Renaming a system role
        PermissionDeniedError 403: Editing system role permissions
        ValidationFailedError 422: Unknown permission or slug already used
    """
    return role_to_dict(role_service.update_role(db, role_id, role_data, ctx, current_user))


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("users.roles")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Delete a custom role.

    Raises:
        ImmutableRoleError 403: System roles can't be deleted
        RoleInUseError 422: Users are still assigned to it
    """
    role_service.delete_role(db, role_id, ctx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
