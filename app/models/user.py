from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from app.database import Base, TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    # Bumped on every credential change; tokens embed the value they were issued with
    credential_version = Column(Integer, default=1, nullable=False)
    tenant_id = Column(Integer, ForeignKey("tenant.id", ondelete="CASCADE"), nullable=True, index=True)
    role_id = Column(Integer, ForeignKey("role.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    suspended_at = Column(DateTime(timezone=True), nullable=True)
    suspended_reason = Column(String, nullable=True)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    tenant = relationship("Tenant", back_populates="users")
    role = relationship("Role")

    __table_args__ = (
        CheckConstraint("tenant_id IS NOT NULL OR is_super_admin", name="ck_user_tenant_or_super_admin"),
    )

    @property
    def is_suspended(self) -> bool:
        return not self.is_active or self.suspended_at is not None

    @property
    def role_slug(self):
        return self.role.slug if self.role else None
