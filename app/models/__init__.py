from .invitation import UserInvitation
from .plan import Plan
from .role import Role
from .subscription import Subscription
from .tenant import Tenant
from .usage_counter import UsageCounter
from .user import User
