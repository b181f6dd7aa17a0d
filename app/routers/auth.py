from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_current_user, require_writable_account
from app.models.user import User
from app.schemas.auth import (
    AcceptInvitationRequest,
    AuthResponse,
    ChangePasswordRequest,
    InvitationSummary,
    LoginRequest,
    MeResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from app.services import auth_service, invitation_service, token_service
from app.services.token import TokenPair
from app.core.permissions import user_permissions
from app.core.security import as_utc

router = APIRouter()


def _auth_payload(user: User, tokens: TokenPair) -> dict:
    return {
        "user": user,
        "tenant": user.tenant,
        "permissions": user_permissions(user),
        "tokens": tokens.as_dict(),
    }


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new organization and its first administrator.

    The new tenant starts on the trial plan when one is configured.

    Args:
        data: Organization name, admin name, email and password
        db: Database session

    Returns:
        Created user, tenant, permissions and a token pair

    Raises:
        ValidationFailedError 422: If the email is already registered
    """
    tenant, user, tokens = auth_service.register(db, data)
    return _auth_payload(user, tokens)


@router.post("/login", response_model=AuthResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """
    Exchange email and password for a token pair.

    Raises:
        InvalidCredentialsError 401: Unknown email or wrong password
        UserNotActiveError 401: Suspended account
    """
    user, tokens = auth_service.login(db, credentials.email, credentials.password)
    return _auth_payload(user, tokens)


@router.post("/refresh", response_model=TokenResponse)
def refresh(data: RefreshRequest, db: Session = Depends(get_db)):
    """
    Rotate a refresh token into a new access/refresh pair.

    Raises:
        AuthError 401: Expired, malformed or invalidated refresh token
    """
    return token_service.refresh(db, data.refresh_token).as_dict()


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    """Current user with tenant and effective permissions."""
    return {
        "user": current_user,
        "tenant": current_user.tenant,
        "permissions": user_permissions(current_user),
    }


@router.put("/password", response_model=TokenResponse)
def change_password(
    data: ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_writable_account)
):
    """
    Change the caller's password.

    Every token issued before, on any device, stops working. The response
    carries the new pair the caller should use from now on.

    Raises:
        WrongPasswordError 400: Current password doesn't match
        TenantSuspendedError 403: Your organization is suspended
    """
    tokens = auth_service.change_password(db, current_user, data.current_password, data.password)
    return tokens.as_dict()


@router.get("/invitation/{token}", response_model=InvitationSummary)
def get_invitation(token: str, db: Session = Depends(get_db)):
    """
    Public summary of a pending invitation.

    Raises:
        InvitationNotFoundError 404: Unknown, accepted or expired invitation
    """
    invitation = invitation_service.get_pending(db, token)
    return {
        "email": invitation.email,
        "name": invitation.name,
        "tenant_name": invitation.tenant.name,
        "role": invitation.role,
        "inviter_name": invitation.inviter.name if invitation.inviter else None,
        "expires_at": as_utc(invitation.expires_at).isoformat(),
    }


@router.post("/invitation/{token}/accept", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def accept_invitation(token: str, data: AcceptInvitationRequest, db: Session = Depends(get_db)):
    """
    Accept an invitation, creating the account and signing it in.

    Raises:
        InvitationNotFoundError 404: Unknown token
        InvitationExpiredError 400: Invitation expired
        InvitationAlreadyConsumedError 400: Invitation already accepted
        ValidationFailedError 422: Email already registered
    """
    user, tokens = invitation_service.accept(db, token, data.name, data.password)
    return _auth_payload(user, tokens)
