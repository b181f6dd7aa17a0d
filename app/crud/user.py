from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func, select
from app.models.user import User
from app.core.security import get_password_hash, utcnow
from app.core.tenant_context import TenantContext, scope


class CRUDUser:
    """
    CRUD operations for User model.

    Note: While User model has tenant_id, we don't inherit from CRUDBase
    because User operations often require custom handling (e.g. login,
    global email lookup, super-admins without tenant) that differs from the
    standard tenant-isolated pattern.
    """

    def __init__(self):
        self.model = User

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        """
        Retrieve user by email address (global, used for login).

        Args:
            db: Database session
            email: User email

        Returns:
            User instance or None if not found
        """
        stmt = select(User).where(func.lower(User.email) == email.lower())
        result = db.execute(stmt)
        return result.scalar_one_or_none()

    def get(self, db: Session, user_id: int) -> Optional[User]:
        """
        Retrieve user by ID without tenant filtering.

        Only for identity resolution; tenant endpoints use get_scoped().
        """
        stmt = select(User).where(User.id == user_id)
        result = db.execute(stmt)
        return result.scalar_one_or_none()

    def get_scoped(self, db: Session, user_id: int, ctx: TenantContext) -> Optional[User]:
        """
        Retrieve a user by ID within the request's tenant.

        Args:
            db: Database session
            user_id: User ID
            ctx: Tenant context for isolation

        Returns:
            User instance or None if not found or in another tenant
        """
        stmt = scope(
            select(User).where(User.id == user_id).options(selectinload(User.role)),
            User,
            ctx,
        )
        return db.execute(stmt).scalar_one_or_none()

    def get_multi(
        self,
        db: Session,
        *,
        ctx: TenantContext,
        skip: int = 0,
        limit: int = 100,
        search: Optional[str] = None
    ) -> List[User]:
        """List users of the request's tenant, optionally filtered by name/email."""
        stmt = scope(select(User).options(selectinload(User.role)), User, ctx)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                func.lower(User.name).like(pattern) | func.lower(User.email).like(pattern)
            )
        stmt = stmt.order_by(User.id).offset(skip).limit(limit)
        return list(db.execute(stmt).scalars().all())

    def count_with_role(self, db: Session, role_id: int) -> int:
        stmt = select(func.count()).select_from(User).where(User.role_id == role_id)
        return db.execute(stmt).scalar_one()

    def create(
        self,
        db: Session,
        *,
        name: str,
        email: str,
        password: str,
        tenant_id: Optional[int],
        role_id: Optional[int],
        is_super_admin: bool = False,
        commit: bool = True
    ) -> User:
        """
        Create a new user with hashed password.

        Args:
            db: Database session
            name: Display name
            email: User email
            password: Plain text password (will be hashed)
            tenant_id: Tenant ID the user belongs to (None only for super-admins)
            role_id: Role assigned to the user
            is_super_admin: Operator account spanning all tenants
            commit: Whether to commit immediately

        Returns:
            Created User instance

        Raises:
            ValueError: If a user with this email already exists
        """
        db_user = User(
            name=name,
            email=email.lower(),
            hashed_password=get_password_hash(password),
            tenant_id=tenant_id,
            role_id=role_id,
            is_active=True,
            is_super_admin=is_super_admin,
            credential_version=1,
        )
        db.add(db_user)

        try:
            if commit:
                db.commit()
                db.refresh(db_user)
            else:
                db.flush()  # Get ID without committing
        except IntegrityError as e:
            db.rollback()
            if "unique" in str(e).lower() or "user_email_key" in str(e):
                raise ValueError(f"User with email {email} already exists")
            raise e

        return db_user

    def set_password(self, db: Session, *, user: User, password: str) -> User:
        """Store a new password hash. Callers revoke outstanding tokens."""
        user.hashed_password = get_password_hash(password)
        db.add(user)
        db.flush()
        return user

    def suspend(self, db: Session, *, user: User, reason: Optional[str] = None) -> User:
        user.is_active = False
        user.suspended_at = utcnow()
        user.suspended_reason = reason
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    def activate(self, db: Session, *, user: User) -> User:
        user.is_active = True
        user.suspended_at = None
        user.suspended_reason = None
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    def touch_login(self, db: Session, *, user: User) -> None:
        user.last_login_at = utcnow()
        db.add(user)
        db.commit()


# Create singleton instance
user = CRUDUser()
