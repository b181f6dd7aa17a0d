from typing import List, Optional
from sqlalchemy.orm import Session
from app.crud.user import user as user_crud
from app.crud.role import role as role_crud
from app.models.user import User
from app.schemas.user import UserAdminUpdate, UserProfileUpdate
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from app.core.permissions import can_manage_user, outranks_or_equal
from app.core.tenant_context import TenantContext
from app.core.logging_config import logger


class UserService:
    """
    Service layer for user management inside a tenant.

    An actor can only manage users whose role does not outrank their own,
    and never their own account through the operator endpoints.
    """

    def __init__(self):
        self.crud = user_crud

    def get_user(self, db: Session, user_id: int, ctx: TenantContext) -> User:
        """
        Get a user of the request's tenant.

        Raises:
            NotFoundError: If user not found or in another tenant
        """
        user = self.crud.get_scoped(db, user_id, ctx)
        if not user:
            raise NotFoundError("User not found")
        return user

    def get_users(
        self,
        db: Session,
        ctx: TenantContext,
        skip: int = 0,
        limit: int = 100,
        search: Optional[str] = None
    ) -> List[User]:
        return self.crud.get_multi(db, ctx=ctx, skip=skip, limit=limit, search=search)

    def _get_manageable(self, db: Session, user_id: int, ctx: TenantContext, actor: User) -> User:
        target = self.get_user(db, user_id, ctx)
        if not can_manage_user(actor, target):
            raise PermissionDeniedError("You cannot manage this user")
        return target

    def update_profile(self, db: Session, user: User, profile_data: UserProfileUpdate) -> User:
        """Self-service update of the caller's own name and phone."""
        for field, value in profile_data.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Profile updated: user_id={user.id}")
        return user

    def update_user(
        self,
        db: Session,
        user_id: int,
        user_data: UserAdminUpdate,
        ctx: TenantContext,
        actor: User
    ) -> User:
        """
        Update another user of the tenant.

        Args:
            db: Database session
            user_id: Target user ID
            user_data: Allowed fields (name, phone, email, role_id)
            ctx: Tenant context for isolation
            actor: Authenticated user performing the change

        Returns:
            Updated User

        Raises:
            NotFoundError: If the user is not in the tenant
            PermissionDeniedError: If the actor can't manage the user or grant the role
            ValidationFailedError: Unknown role or email already registered
        """
        target = self._get_manageable(db, user_id, ctx, actor)
        update_data = user_data.model_dump(exclude_unset=True)

        if update_data.get("role_id") is not None and update_data["role_id"] != target.role_id:
            new_role = role_crud.get_visible(db, id=update_data["role_id"], ctx=ctx)
            if new_role is None:
                raise ValidationFailedError("role_id", "Role not found")
            if not actor.is_super_admin and not outranks_or_equal(actor.role, new_role):
                raise PermissionDeniedError("You cannot assign a role higher than your own")
        elif "role_id" in update_data:
            update_data.pop("role_id")

        if update_data.get("email"):
            email = update_data["email"].lower()
            existing = self.crud.get_by_email(db, email)
            if existing and existing.id != target.id:
                raise ValidationFailedError("email", "This email is already in use")
            update_data["email"] = email
        else:
            update_data.pop("email", None)

        for field, value in update_data.items():
            setattr(target, field, value)
        db.add(target)
        db.commit()
        db.refresh(target)
        logger.info(f"User updated: id={target.id}, by={actor.id}, fields={sorted(update_data)}")
        return target

    def suspend_user(
        self,
        db: Session,
        user_id: int,
        ctx: TenantContext,
        actor: User,
        reason: Optional[str] = None
    ) -> User:
        target = self._get_manageable(db, user_id, ctx, actor)
        target = self.crud.suspend(db, user=target, reason=reason)
        logger.info(f"User suspended: id={target.id}, by={actor.id}")
        return target

    def activate_user(self, db: Session, user_id: int, ctx: TenantContext, actor: User) -> User:
        target = self._get_manageable(db, user_id, ctx, actor)
        target = self.crud.activate(db, user=target)
        logger.info(f"User activated: id={target.id}, by={actor.id}")
        return target

    def delete_user(self, db: Session, user_id: int, ctx: TenantContext, actor: User) -> None:
        """
        Delete a user of the tenant.

        Raises:
            NotFoundError: If user not found
            PermissionDeniedError: Deleting yourself or a higher-ranked user
        """
        target = self._get_manageable(db, user_id, ctx, actor)
        db.delete(target)
        db.commit()
        logger.info(f"User deleted: id={user_id}, by={actor.id}, tenant_id={ctx.tenant_id}")


# Create a singleton instance
user_service = UserService()
