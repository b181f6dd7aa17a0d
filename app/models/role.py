import enum
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Enum, Index, UniqueConstraint, CheckConstraint, text
from sqlalchemy.orm import relationship
from app.database import Base, TimestampMixin, JSONType


class RoleKind(str, enum.Enum):
    """
    System roles are seeded once, shared by every tenant and carry no
    tenant_id. Custom roles belong to exactly one tenant.
    """
    system = "system"
    custom = "custom"


class Role(Base, TimestampMixin):
    __tablename__ = "role"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(Enum(RoleKind), nullable=False, default=RoleKind.custom)
    tenant_id = Column(Integer, ForeignKey("tenant.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    permissions = Column(JSONType, nullable=False, default=list)  # ["clients.view", "pipeline.*", "*"]

    tenant = relationship("Tenant")

    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uix_role_tenant_slug"),
        Index(
            "uix_role_system_slug", "slug", unique=True,
            postgresql_where=text("tenant_id IS NULL"),
            sqlite_where=text("tenant_id IS NULL"),
        ),
        CheckConstraint(
            "(kind = 'system' AND tenant_id IS NULL) OR (kind = 'custom' AND tenant_id IS NOT NULL)",
            name="ck_role_kind_owner",
        ),
    )

    @property
    def is_system(self) -> bool:
        return self.kind == RoleKind.system
