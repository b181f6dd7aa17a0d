from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from app.database import get_db
from app.dependencies import (
    get_current_user,
    get_tenant_context,
    require_permission,
    require_writable_account,
    require_writable_tenant,
)
from app.models.invitation import UserInvitation
from app.models.user import User
from app.schemas.invitation import InvitationCreate, InvitationCreatedResponse, InvitationResponse
from app.schemas.user import (
    MyPermissionsResponse,
    UserAdminUpdate,
    UserProfileUpdate,
    UserResponse,
    UserSuspendRequest,
)
from app.services import invitation_service, user_service
from app.core.permissions import user_permissions
from app.core.tenant_context import TenantContext
from app.core.logging_config import logger

router = APIRouter()


def _created_invitation(invitation: UserInvitation) -> dict:
    payload = InvitationResponse.model_validate(invitation).model_dump()
    payload["token"] = invitation.token
    payload["invitation_url"] = invitation_service.invitation_url(invitation)
    return payload


# ── Own account ──────────────────────────────────────────────────

@router.put("/me", response_model=UserResponse)
def update_me(
    profile_data: UserProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_writable_account)
):
    """
    Update your own profile.

    Only name and phone can be changed here. Any other field in the body
    (tenant_id, is_super_admin, role, ...) is ignored.

    Raises:
        TenantSuspendedError 403: Your organization is suspended
    """
    return user_service.update_profile(db, current_user, profile_data)


@router.get("/me/permissions", response_model=MyPermissionsResponse)
def my_permissions(current_user: User = Depends(get_current_user)):
    """Effective permissions of the caller, expanded from their role."""
    return {
        "role": current_user.role,
        "permissions": user_permissions(current_user),
        "is_super_admin": current_user.is_super_admin,
    }


# ── Invitations ──────────────────────────────────────────────────
# Declared before /{user_id} so the literal path wins.

@router.get("/invitations", response_model=List[InvitationResponse])
def list_invitations(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("users.invite"))
):
    """Pending (not accepted, not expired) invitations of your tenant."""
    return invitation_service.list_pending(db, ctx)


@router.post("/invitations", response_model=InvitationCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_invitation(
    invitation_data: InvitationCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    current_user: User = Depends(require_permission("users.invite")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Invite someone to your tenant.

    The response carries the token and link once; deliver it to the
    invitee.

    Args:
        invitation_data: Email, optional name and role to grant
        db: Database session
        ctx: Tenant context (from the access token)
        current_user: Inviter

    Returns:
        Created invitation with token and link

    Raises:
        PermissionDeniedError 403: Missing users.invite or role above your own
        ValidationFailedError 422: Unknown role, registered or already invited email
        TenantSuspendedError 403: Your organization is suspended
    """
    try:
        logger.info(f"Creating invitation: email={invitation_data.email}, tenant_id={ctx.tenant_id}")
        invitation = invitation_service.create(
            db,
            ctx,
            current_user,
            email=invitation_data.email,
            role_id=invitation_data.role_id,
            name=invitation_data.name,
        )
        return _created_invitation(invitation)
    except Exception as e:
        logger.error(f"Error creating invitation: {type(e).__name__}: {str(e)}")
        raise


@router.post("/invitations/{invitation_id}/resend", response_model=InvitationCreatedResponse)
def resend_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("users.invite")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Regenerate an invitation's token and expiry. The old link stops working.

    Raises:
        NotFoundError 404: Invitation not in your tenant
        InvitationAlreadyConsumedError 400: Already accepted
    """
    invitation = invitation_service.resend(db, invitation_id, ctx)
    return _created_invitation(invitation)


@router.delete("/invitations/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("users.invite")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Cancel a pending or expired invitation.

    Raises:
        NotFoundError 404: Invitation not in your tenant
        InvitationAlreadyConsumedError 400: Already accepted
    """
    invitation_service.delete(db, invitation_id, ctx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Tenant users ─────────────────────────────────────────────────

@router.get("", response_model=List[UserResponse])
def list_users(
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("users.view"))
):
    """
    Retrieve the users of your tenant.

    Args:
        skip: Number of records to skip (default: 0)
        limit: Maximum number of records to return (default: 100)
        search: Case-insensitive filter on name or email
    """
    return user_service.get_users(db, ctx, skip=skip, limit=limit, search=search)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    _user: User = Depends(require_permission("users.view"))
):
    """
    Retrieve a user of your tenant.

    Raises:
        NotFoundError 404: User doesn't exist or belongs to another tenant
    """
    return user_service.get_user(db, user_id, ctx)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    user_data: UserAdminUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    current_user: User = Depends(require_permission("users.edit")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Update a user of your tenant (name, phone, email, role).

    Raises:
        NotFoundError 404: User not in your tenant
        PermissionDeniedError 403: User or role ranks above yours
        ValidationFailedError 422: Unknown role or email in use
    """
    return user_service.update_user(db, user_id, user_data, ctx, current_user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    current_user: User = Depends(require_permission("users.delete")),
    _tenant=Depends(require_writable_tenant)
):
    """
    Delete a user of your tenant.

    Raises:
        NotFoundError 404: User not in your tenant
        PermissionDeniedError 403: Yourself or a higher-ranked user
    """
    user_service.delete_user(db, user_id, ctx, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/suspend", response_model=UserResponse)
def suspend_user(
    user_id: int,
    data: Optional[UserSuspendRequest] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    current_user: User = Depends(require_permission("users.edit")),
    _tenant=Depends(require_writable_tenant)
):
    """Suspend a user. Their tokens are rejected from the next request on."""
    return user_service.suspend_user(db, user_id, ctx, current_user, reason=data.reason if data else None)


@router.post("/{user_id}/activate", response_model=UserResponse)
def activate_user(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    current_user: User = Depends(require_permission("users.edit")),
    _tenant=Depends(require_writable_tenant)
):
    """Lift a user's suspension."""
    return user_service.activate_user(db, user_id, ctx, current_user)
