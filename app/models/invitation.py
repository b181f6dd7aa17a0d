import enum
from datetime import datetime
from typing import Optional
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base, TimestampMixin
from app.core.security import as_utc, utcnow


class InvitationStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    expired = "expired"


class UserInvitation(Base, TimestampMixin):
    """
    Single-use, time-boxed credential allowing an email to join a tenant
    under a given role.

    Expiry is not stored as a state: it is evaluated against ``expires_at``
    whenever the invitation is read.
    """
    __tablename__ = "user_invitation"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenant.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)
    role_id = Column(Integer, ForeignKey("role.id", ondelete="CASCADE"), nullable=False)
    invited_by = Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    token = Column(String, unique=True, index=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    tenant = relationship("Tenant")
    role = relationship("Role")
    inviter = relationship("User", foreign_keys=[invited_by])

    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > as_utc(self.expires_at)

    def status_at(self, now: Optional[datetime] = None) -> InvitationStatus:
        if self.is_accepted():
            return InvitationStatus.accepted
        if self.is_expired(now):
            return InvitationStatus.expired
        return InvitationStatus.pending

    @property
    def status(self) -> InvitationStatus:
        return self.status_at()
