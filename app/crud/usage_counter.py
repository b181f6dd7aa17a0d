from typing import Dict
from sqlalchemy.orm import Session
from sqlalchemy import select, update
from app.models.usage_counter import QuotaWindow, UsageCounter


class CRUDUsageCounter:
    """
    Storage primitives for quota counters.

    Rows are keyed by (tenant_id, window, window_key). None of these methods
    commit: the quota engine runs them inside one transaction.
    """

    def __init__(self):
        self.model = UsageCounter

    def ensure_bucket(self, db: Session, *, tenant_id: int, window: QuotaWindow, window_key: str) -> None:
        """
        Create the bucket row at zero if it does not exist yet.

        A concurrent creator makes the flush fail with IntegrityError, which
        the caller handles by retrying the whole admission.
        """
        stmt = select(UsageCounter.id).where(
            UsageCounter.tenant_id == tenant_id,
            UsageCounter.window == window,
            UsageCounter.window_key == window_key,
        )
        if db.execute(stmt).first() is None:
            db.add(UsageCounter(tenant_id=tenant_id, window=window, window_key=window_key, used=0))
            db.flush()

    def increment_within(
        self,
        db: Session,
        *,
        tenant_id: int,
        window: QuotaWindow,
        window_key: str,
        amount: int,
        ceiling: int
    ) -> bool:
        """
        Atomically add ``amount`` unless that would exceed ``ceiling``.

        Returns:
            True if the row was incremented
        """
        result = db.execute(
            update(UsageCounter)
            .where(
                UsageCounter.tenant_id == tenant_id,
                UsageCounter.window == window,
                UsageCounter.window_key == window_key,
                UsageCounter.used + amount <= ceiling,
            )
            .values(used=UsageCounter.used + amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def get_used(self, db: Session, *, tenant_id: int, keys: Dict[QuotaWindow, str]) -> Dict[QuotaWindow, int]:
        """Current value of each requested bucket, zero for missing rows."""
        used = {window: 0 for window in keys}
        for window, window_key in keys.items():
            stmt = select(UsageCounter.used).where(
                UsageCounter.tenant_id == tenant_id,
                UsageCounter.window == window,
                UsageCounter.window_key == window_key,
            )
            value = db.execute(stmt).scalar_one_or_none()
            if value is not None:
                used[window] = value
        return used


# Create singleton instance
usage_counter = CRUDUsageCounter()
