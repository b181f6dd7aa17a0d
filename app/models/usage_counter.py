import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, UniqueConstraint
from app.database import Base, TimestampMixin


class QuotaWindow(str, enum.Enum):
    minute = "minute"
    day = "day"
    month = "month"


class UsageCounter(Base, TimestampMixin):
    """
    Accumulator for one tenant and one window bucket.

    A new bucket key starts a fresh row at zero; rows of past buckets are
    never read again.
    """
    __tablename__ = "usage_counter"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenant.id", ondelete="CASCADE"), nullable=False)
    window = Column(Enum(QuotaWindow), nullable=False)
    window_key = Column(String, nullable=False)  # "2026-10-19T14:05", "2026-10-19", "2026-10"
    used = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", "window", "window_key", name="uix_usage_counter_bucket"),
    )
