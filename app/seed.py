"""
Reference data every deployment needs: the built-in roles and the default
AI plans. Safe to run repeatedly.
"""
from decimal import Decimal
from typing import List
from sqlalchemy.orm import Session
from app.crud.plan import plan as plan_crud
from app.crud.role import role as role_crud
from app.models.plan import Plan
from app.models.role import Role
from app.core.permissions import SYSTEM_ROLES
from app.core.logging_config import logger

DEFAULT_PLANS = [
    {
        "name": "Free",
        "slug": "free",
        "description": "Basic AI features",
        "monthly_token_limit": 5000,
        "daily_token_limit": 500,
        "request_limit_per_minute": 5,
        "ai_chat_enabled": True,
        "ai_autofill_enabled": False,
        "ai_summarize_enabled": False,
        "ai_lead_analysis_enabled": False,
        "ai_email_draft_enabled": False,
        "knowledge_base_enabled": False,
        "price_monthly": Decimal("0"),
        "sort_order": 1,
    },
    {
        "name": "Business",
        "slug": "business",
        "description": "Growing companies with several teams",
        "monthly_token_limit": 500000,
        "daily_token_limit": 50000,
        "request_limit_per_minute": 30,
        "ai_chat_enabled": True,
        "ai_autofill_enabled": True,
        "ai_summarize_enabled": True,
        "ai_lead_analysis_enabled": True,
        "ai_email_draft_enabled": True,
        "knowledge_base_enabled": True,
        "price_monthly": Decimal("199.90"),
        "sort_order": 2,
    },
    {
        "name": "Enterprise",
        "slug": "enterprise",
        "description": "High-volume operations",
        "monthly_token_limit": 1000000,
        "daily_token_limit": 100000,
        "request_limit_per_minute": 60,
        "ai_chat_enabled": True,
        "ai_autofill_enabled": True,
        "ai_summarize_enabled": True,
        "ai_lead_analysis_enabled": True,
        "ai_email_draft_enabled": True,
        "knowledge_base_enabled": True,
        "price_monthly": Decimal("499.90"),
        "sort_order": 3,
    },
]


def seed_system_roles(db: Session, overwrite: bool = False) -> List[Role]:
    roles = [
        role_crud.upsert_system(
            db,
            slug=slug,
            name=definition["name"],
            description=definition["description"],
            permissions=definition["permissions"],
            overwrite=overwrite,
        )
        for slug, definition in SYSTEM_ROLES.items()
    ]
    db.commit()
    logger.info(f"System roles seeded: {[r.slug for r in roles]}")
    return roles


def seed_plans(db: Session) -> List[Plan]:
    plans = [plan_crud.upsert(db, is_active=True, **dict(data)) for data in DEFAULT_PLANS]
    db.commit()
    logger.info(f"Plans seeded: {[p.slug for p in plans]}")
    return plans
