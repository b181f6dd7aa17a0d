from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from app.crud.invitation import invitation as invitation_crud
from app.crud.role import role as role_crud
from app.crud.user import user as user_crud
from app.models.invitation import UserInvitation
from app.models.user import User
from app.core.config import settings
from app.core.exceptions import (
    InvitationAlreadyConsumedError,
    InvitationExpiredError,
    InvitationNotFoundError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from app.core.permissions import has_permission, outranks_or_equal
from app.core.security import generate_invitation_token, utcnow
from app.core.tenant_context import TenantContext
from app.core.logging_config import logger
from app.services.token import TokenPair, token_service


class InvitationService:
    """
    Lifecycle of user invitations.

    An invitation is Pending until it is accepted (terminal) or its
    ``expires_at`` passes. Expiry is evaluated on read, never stored.
    Acceptance claims the row with a conditional update, so a token can be
    redeemed at most once even under concurrent requests.
    """

    def __init__(self):
        self.crud = invitation_crud

    def _new_expiry(self, now: datetime) -> datetime:
        return now + timedelta(days=settings.INVITATION_EXPIRE_DAYS)

    def invitation_url(self, invitation: UserInvitation) -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/invite/{invitation.token}"

    def get_invitation(self, db: Session, invitation_id: int, ctx: TenantContext) -> UserInvitation:
        invitation = self.crud.get(db, invitation_id, ctx)
        if not invitation:
            raise NotFoundError("Invitation not found")
        return invitation

    def list_pending(self, db: Session, ctx: TenantContext, now: Optional[datetime] = None) -> List[UserInvitation]:
        return self.crud.get_pending_multi(db, ctx=ctx, now=now or utcnow())

    def create(
        self,
        db: Session,
        ctx: TenantContext,
        inviter: User,
        email: str,
        role_id: int,
        name: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> UserInvitation:
        """
        Invite an email address to the tenant under a role.

        Args:
            db: Database session
            ctx: Tenant context of the inviter
            inviter: Authenticated user sending the invitation
            email: Address to invite
            role_id: Role granted on acceptance
            name: Optional display name suggestion
            now: Creation time, defaults to now

        Returns:
            Created UserInvitation (holding the token)

        Raises:
            PermissionDeniedError: Inviter lacks users.invite or the role outranks theirs
            ValidationFailedError: Unknown role, email already registered or already invited
        """
        now = now or utcnow()
        if not has_permission(inviter, "users.invite"):
            raise PermissionDeniedError(context={"required_permissions": ["users.invite"]})

        role = role_crud.get_visible(db, id=role_id, ctx=ctx)
        if role is None:
            raise ValidationFailedError("role_id", "Role not found")
        if not inviter.is_super_admin and not outranks_or_equal(inviter.role, role):
            raise PermissionDeniedError("You cannot invite users with a role higher than your own")

        email = email.lower()
        if user_crud.get_by_email(db, email):
            raise ValidationFailedError("email", "A user with this email already exists")
        if self.crud.get_pending_by_email(db, email=email, ctx=ctx, now=now):
            raise ValidationFailedError("email", "A pending invitation already exists for this email")

        invitation = self.crud.create(
            db,
            obj_in={
                "email": email,
                "name": name,
                "role_id": role.id,
                "invited_by": inviter.id,
                "token": generate_invitation_token(),
                "expires_at": self._new_expiry(now),
            },
            ctx=ctx,
        )
        logger.info(f"Invitation created: id={invitation.id}, tenant_id={invitation.tenant_id}, role={role.slug}")
        return invitation

    def resend(
        self,
        db: Session,
        invitation_id: int,
        ctx: TenantContext,
        now: Optional[datetime] = None
    ) -> UserInvitation:
        """
        Issue a fresh token and expiry for an invitation.

        The previous token stops working immediately.

        Raises:
            NotFoundError: If invitation not found in the tenant
            InvitationAlreadyConsumedError: If it was already accepted
        """
        now = now or utcnow()
        invitation = self.get_invitation(db, invitation_id, ctx)
        if invitation.is_accepted():
            raise InvitationAlreadyConsumedError()

        invitation = self.crud.rotate_token(
            db,
            invitation=invitation,
            token=generate_invitation_token(),
            expires_at=self._new_expiry(now),
        )
        logger.info(f"Invitation resent: id={invitation.id}, tenant_id={invitation.tenant_id}")
        return invitation

    def get_pending(self, db: Session, token: str, now: Optional[datetime] = None) -> UserInvitation:
        """
        Look up an invitation for the public acceptance page.

        Unknown, expired and accepted invitations are all reported as not
        found, so the page reveals nothing about them.
        """
        invitation = self.crud.get_by_token(db, token)
        if invitation is None or invitation.is_accepted() or invitation.is_expired(now or utcnow()):
            raise InvitationNotFoundError()
        return invitation

    def accept(
        self,
        db: Session,
        token: str,
        name: str,
        password: str,
        now: Optional[datetime] = None
    ) -> Tuple[User, TokenPair]:
        """
        Redeem an invitation: create the user and sign them in.

        Args:
            db: Database session
            token: Invitation token
            name: Display name of the new user
            password: Password of the new user
            now: Acceptance time, defaults to now

        Returns:
            Tuple of (created User, TokenPair)

        Raises:
            InvitationNotFoundError: Unknown token
            InvitationExpiredError: Past expires_at
            InvitationAlreadyConsumedError: Already accepted (possibly concurrently)
            ValidationFailedError: Email registered in the meantime
        """
        now = now or utcnow()
        invitation = self.crud.get_by_token(db, token)
        if invitation is None:
            raise InvitationNotFoundError("Invitation not found")
        if invitation.is_expired(now):
            raise InvitationExpiredError()
        if invitation.is_accepted():
            raise InvitationAlreadyConsumedError()

        if user_crud.get_by_email(db, invitation.email):
            raise ValidationFailedError("email", "A user with this email already exists")

        invitation_id = invitation.id
        if not self.crud.claim(db, invitation_id=invitation_id, now=now):
            db.rollback()
            logger.info(f"Invitation claim lost: id={invitation_id}")
            raise InvitationAlreadyConsumedError()

        try:
            user = user_crud.create(
                db,
                name=name,
                email=invitation.email,
                password=password,
                tenant_id=invitation.tenant_id,
                role_id=invitation.role_id,
                commit=False,
            )
        except ValueError:
            raise ValidationFailedError("email", "A user with this email already exists")

        db.commit()
        db.refresh(user)
        logger.info(f"Invitation accepted: id={invitation_id}, user_id={user.id}, tenant_id={user.tenant_id}")
        return user, token_service.issue(user)

    def delete(self, db: Session, invitation_id: int, ctx: TenantContext) -> None:
        """
        Remove a pending or expired invitation.

        Raises:
            NotFoundError: If invitation not found in the tenant
            InvitationAlreadyConsumedError: If it was already accepted
        """
        invitation = self.get_invitation(db, invitation_id, ctx)
        if invitation.is_accepted():
            raise InvitationAlreadyConsumedError()
        self.crud.delete(db, id=invitation.id, ctx=ctx)
        logger.info(f"Invitation deleted: id={invitation_id}, tenant_id={ctx.tenant_id}")


# Create a singleton instance
invitation_service = InvitationService()
