"""
Error taxonomy of the authorization-and-quota core.

Every error carries a machine-readable ``code`` and the HTTP status it maps
to. Handlers registered in ``main.py`` turn them into JSON bodies, so
services raise these instead of ``HTTPException``.
"""
from typing import Any, Dict, Optional


class BackOfficeError(Exception):
    """Base class for all recoverable request-level errors."""

    status_code: int = 400
    code: str = "BAD_REQUEST"
    message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message or self.message
        self.context: Dict[str, Any] = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "error_code": self.code, "message": self.message}
        body.update(self.context)
        return body


class NotFoundError(BackOfficeError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class ValidationFailedError(BackOfficeError):
    """Business validation failure reported per field (422)."""

    status_code = 422
    code = "VALIDATION_FAILED"
    message = "Validation failed"

    def __init__(self, field: str, message: str):
        super().__init__(message, context={"errors": {field: [message]}})
        self.field = field


class RoleInUseError(ValidationFailedError):
    code = "ROLE_IN_USE"


# ── Authentication ───────────────────────────────────────────────

class AuthError(BackOfficeError):
    status_code = 401
    code = "UNAUTHORIZED"
    message = "Could not validate credentials"


class InvalidCredentialsError(AuthError):
    code = "INVALID_CREDENTIALS"
    message = "Incorrect email or password"


class TokenExpiredError(AuthError):
    code = "TOKEN_EXPIRED"
    message = "Token has expired"


class MalformedTokenError(AuthError):
    code = "TOKEN_MALFORMED"
    message = "Token is malformed"


class TokenInvalidatedError(AuthError):
    code = "TOKEN_INVALIDATED"
    message = "Token is no longer valid"


class UserNotActiveError(AuthError):
    code = "USER_NOT_ACTIVE"
    message = "User account is not active"


class WrongPasswordError(BackOfficeError):
    code = "INVALID_PASSWORD"
    message = "Current password is incorrect"


# ── Authorization ────────────────────────────────────────────────

class PolicyError(BackOfficeError):
    status_code = 403
    code = "FORBIDDEN"
    message = "You do not have permission to perform this action"


class PermissionDeniedError(PolicyError):
    code = "PERMISSION_DENIED"


class ImmutableRoleError(PolicyError):
    code = "ROLE_IMMUTABLE"
    message = "System roles cannot be renamed or deleted"


# ── Tenancy ──────────────────────────────────────────────────────

class TenantError(BackOfficeError):
    status_code = 403
    code = "TENANT_ERROR"
    message = "Tenant access denied"


class TenantSuspendedError(TenantError):
    code = "TENANT_SUSPENDED"
    message = "Your organization is suspended. Contact support."


class TenantRequiredError(TenantError):
    status_code = 400
    code = "TENANT_REQUIRED"
    message = "An explicit target tenant is required for this operation"


# ── Invitations ──────────────────────────────────────────────────

class InvitationError(BackOfficeError):
    status_code = 400
    code = "INVITATION_ERROR"


class InvitationNotFoundError(InvitationError):
    status_code = 404
    code = "INVITATION_NOT_FOUND"
    message = "Invitation is invalid, already accepted, or expired"


class InvitationExpiredError(InvitationError):
    code = "INVITATION_EXPIRED"
    message = "Invitation has expired"


class InvitationAlreadyConsumedError(InvitationError):
    code = "INVITATION_CONSUMED"
    message = "Invitation has already been accepted"


# ── Quota ────────────────────────────────────────────────────────

class QuotaError(BackOfficeError):
    status_code = 429
    code = "QUOTA_EXCEEDED"
    message = "Usage quota exceeded"

    def __init__(
        self,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        context = dict(context or {})
        if retry_after is not None:
            context["retry_after"] = retry_after
        super().__init__(message, context=context)
        self.retry_after = retry_after


class NoSubscriptionError(QuotaError):
    code = "NO_SUBSCRIPTION"
    message = "No active subscription found. Please subscribe to a plan."


class FeatureDisabledError(QuotaError):
    code = "FEATURE_DISABLED"
    message = "This feature is not available on your plan"


class MinuteRateExceededError(QuotaError):
    code = "MINUTE_RATE_EXCEEDED"
    message = "Per-minute request limit reached"


class DailyBudgetExceededError(QuotaError):
    code = "DAILY_BUDGET_EXCEEDED"
    message = "Daily token budget exhausted"


class MonthlyBudgetExceededError(QuotaError):
    code = "MONTHLY_BUDGET_EXCEEDED"
    message = "Monthly token budget exhausted"
