from app.crud.base import CRUDBase
from app.crud.user import user
from app.crud.role import role
from .tenant import tenant
from .invitation import invitation
from .plan import plan
from .subscription import subscription
from .usage_counter import usage_counter

__all__ = ["CRUDBase", "user", "role", "tenant", "invitation", "plan", "subscription", "usage_counter"]
