from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select
from app.models.plan import Plan


class CRUDPlan:
    """
    CRUD operations for Plan model.

    Plans are global (not tenant-owned), so we don't inherit from CRUDBase.
    """

    def __init__(self):
        self.model = Plan

    def get(self, db: Session, plan_id: int) -> Optional[Plan]:
        return db.get(Plan, plan_id)

    def get_by_slug(self, db: Session, slug: str) -> Optional[Plan]:
        stmt = select(Plan).where(Plan.slug == slug)
        return db.execute(stmt).scalar_one_or_none()

    def get_active_multi(self, db: Session) -> List[Plan]:
        stmt = select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.sort_order, Plan.price_monthly)
        return list(db.execute(stmt).scalars().all())

    def upsert(self, db: Session, *, slug: str, **fields) -> Plan:
        """Seed helper: create the plan or refresh its fields."""
        plan = self.get_by_slug(db, slug)
        if plan is None:
            plan = Plan(slug=slug)
        for field, value in fields.items():
            setattr(plan, field, value)
        db.add(plan)
        db.flush()
        return plan


# Create singleton instance
plan = CRUDPlan()
