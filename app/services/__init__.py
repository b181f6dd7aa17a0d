from app.services.token import token_service
from app.services.auth import auth_service
from .role import role_service
from .user import user_service
from .tenant import tenant_service
from .invitation import invitation_service
from .quota import quota_service

__all__ = [
    "token_service",
    "auth_service",
    "role_service",
    "user_service",
    "tenant_service",
    "invitation_service",
    "quota_service",
]
