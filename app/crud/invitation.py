from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, select, update
from app.crud.base import CRUDBase
from app.models.invitation import UserInvitation
from app.schemas.invitation import InvitationCreate
from app.core.tenant_context import TenantContext, scope


class CRUDInvitation(CRUDBase[UserInvitation, InvitationCreate, InvitationCreate]):
    """
    CRUD operations for UserInvitation model.

    Inherits scoped get/create/delete from CRUDBase. Token lookups are
    global on purpose: the accepting person is not authenticated yet and the
    token itself is the credential.
    """

    def get_by_token(self, db: Session, token: str) -> Optional[UserInvitation]:
        stmt = (
            select(UserInvitation)
            .where(UserInvitation.token == token)
            .options(
                selectinload(UserInvitation.role),
                selectinload(UserInvitation.tenant),
                selectinload(UserInvitation.inviter),
            )
        )
        return db.execute(stmt).scalar_one_or_none()

    def get_pending_by_email(
        self,
        db: Session,
        *,
        email: str,
        ctx: TenantContext,
        now: datetime
    ) -> Optional[UserInvitation]:
        stmt = scope(
            select(UserInvitation).where(
                func.lower(UserInvitation.email) == email.lower(),
                UserInvitation.accepted_at.is_(None),
                UserInvitation.expires_at >= now,
            ),
            UserInvitation,
            ctx,
        )
        return db.execute(stmt).scalars().first()

    def get_pending_multi(self, db: Session, *, ctx: TenantContext, now: datetime) -> List[UserInvitation]:
        stmt = scope(
            select(UserInvitation)
            .where(UserInvitation.accepted_at.is_(None), UserInvitation.expires_at >= now)
            .options(selectinload(UserInvitation.role))
            .order_by(UserInvitation.created_at.desc(), UserInvitation.id.desc()),
            UserInvitation,
            ctx,
        )
        return list(db.execute(stmt).scalars().all())

    def claim(self, db: Session, *, invitation_id: int, now: datetime) -> bool:
        """
        Mark an invitation accepted if, and only if, it is still pending.

        This is a single conditional UPDATE: of several concurrent callers
        exactly one sees a matched row. Does not commit.

        Returns:
            True if this call consumed the invitation
        """
        result = db.execute(
            update(UserInvitation)
            .where(
                UserInvitation.id == invitation_id,
                UserInvitation.accepted_at.is_(None),
                UserInvitation.expires_at >= now,
            )
            .values(accepted_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def rotate_token(
        self,
        db: Session,
        *,
        invitation: UserInvitation,
        token: str,
        expires_at: datetime
    ) -> UserInvitation:
        invitation.token = token
        invitation.expires_at = expires_at
        db.add(invitation)
        db.commit()
        db.refresh(invitation)
        return invitation


# Create singleton instance
invitation = CRUDInvitation(UserInvitation)
