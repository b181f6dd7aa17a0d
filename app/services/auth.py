from typing import Tuple
from sqlalchemy.orm import Session
from app.crud.tenant import tenant as tenant_crud
from app.crud.user import user as user_crud
from app.models.tenant import Tenant
from app.models.user import User
from app.schemas.auth import RegisterRequest
from app.core.exceptions import (
    InvalidCredentialsError,
    UserNotActiveError,
    ValidationFailedError,
    WrongPasswordError,
)
from app.core.security import verify_password
from app.core.logging_config import logger
from app.services.token import TokenPair, token_service


class AuthService:
    """
    Registration, login and password changes.

    Token issuing and rotation live in the token service; this layer only
    decides when a user is allowed to receive a pair.
    """

    def register(self, db: Session, data: RegisterRequest) -> Tuple[Tenant, User, TokenPair]:
        """
        Create a tenant with its first admin user and sign the user in.

        Raises:
            ValidationFailedError: If the email is already registered
        """
        if user_crud.get_by_email(db, data.email):
            raise ValidationFailedError("email", "This email is already registered")
        try:
            tenant, user = tenant_crud.create_with_user(
                db,
                business_name=data.tenant_name,
                name=data.name,
                email=data.email,
                password=data.password,
            )
        except ValueError:
            raise ValidationFailedError("email", "This email is already registered")

        logger.info(f"Tenant registered: tenant_id={tenant.id}, user_id={user.id}")
        return tenant, user, token_service.issue(user)

    def login(self, db: Session, email: str, password: str) -> Tuple[User, TokenPair]:
        """
        Check credentials and issue a token pair.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
            UserNotActiveError: The account is suspended
        """
        user = user_crud.get_by_email(db, email)
        if not user or not verify_password(password, user.hashed_password):
            logger.info(f"Login failed for email={email.lower()}")
            raise InvalidCredentialsError()
        if user.is_suspended:
            raise UserNotActiveError()

        user_crud.touch_login(db, user=user)
        logger.info(f"Login: user_id={user.id}, tenant_id={user.tenant_id}")
        return user, token_service.issue(user)

    def change_password(self, db: Session, user: User, current_password: str, new_password: str) -> TokenPair:
        """
        Change a user's password and end every other session.

        All previously issued tokens (including the caller's) stop working;
        the returned pair is the only valid one.

        Raises:
            WrongPasswordError: If the current password doesn't match
        """
        if not verify_password(current_password, user.hashed_password):
            raise WrongPasswordError()

        user_crud.set_password(db, user=user, password=new_password)
        token_service.revoke_all(db, user)
        logger.info(f"Password changed: user_id={user.id}")
        return token_service.issue(user)


# Create a singleton instance
auth_service = AuthService()
