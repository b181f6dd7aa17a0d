from sqlalchemy import Column, Integer, String, Boolean, Numeric, Text
from app.database import Base, TimestampMixin


# Feature name used by callers -> plan flag column
FEATURE_FLAGS = {
    "chat": "ai_chat_enabled",
    "autofill": "ai_autofill_enabled",
    "summarize": "ai_summarize_enabled",
    "lead_analysis": "ai_lead_analysis_enabled",
    "email_draft": "ai_email_draft_enabled",
    "knowledge_base": "knowledge_base_enabled",
}


class Plan(Base, TimestampMixin):
    """
    Subscription tier with hard AI usage ceilings and feature flags.

    A ceiling of zero disables metered operations entirely, whatever the
    feature flags say.
    """
    __tablename__ = "plan"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)

    monthly_token_limit = Column(Integer, nullable=False, default=10000)
    daily_token_limit = Column(Integer, nullable=False, default=1000)
    request_limit_per_minute = Column(Integer, nullable=False, default=10)

    ai_chat_enabled = Column(Boolean, nullable=False, default=True)
    ai_autofill_enabled = Column(Boolean, nullable=False, default=False)
    ai_summarize_enabled = Column(Boolean, nullable=False, default=False)
    ai_lead_analysis_enabled = Column(Boolean, nullable=False, default=False)
    ai_email_draft_enabled = Column(Boolean, nullable=False, default=False)
    knowledge_base_enabled = Column(Boolean, nullable=False, default=False)

    price_monthly = Column(Numeric(10, 2), nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    def is_feature_enabled(self, feature: str) -> bool:
        column = FEATURE_FLAGS.get(feature)
        return bool(getattr(self, column)) if column else False

    def features(self) -> dict:
        return {feature: bool(getattr(self, column)) for feature, column in FEATURE_FLAGS.items()}
