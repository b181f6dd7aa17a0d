"""Invitation lifecycle tests."""

from datetime import timedelta

import pytest

from app.core.exceptions import (
    InvitationAlreadyConsumedError,
    InvitationExpiredError,
    InvitationNotFoundError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from app.core.security import as_utc, utcnow, verify_password
from app.core.tenant_context import TenantContext
from app.models.invitation import InvitationStatus
from app.schemas.role import RoleCreate
from app.services.invitation import invitation_service
from app.services.role import role_service
from app.services.token import token_service


@pytest.fixture
def setup(make_tenant, make_user):
    tenant = make_tenant()
    admin = make_user(tenant=tenant, role="admin")
    return tenant, admin, TenantContext.for_tenant(tenant.id)


class TestCreate:
    def test_create_pending_invitation(self, db, setup, roles) -> None:
        tenant, admin, ctx = setup

        invitation = invitation_service.create(db, ctx, admin, email="New@Acme.com", role_id=roles["sales"].id)

        assert invitation.tenant_id == tenant.id
        assert invitation.email == "new@acme.com"
        assert invitation.invited_by == admin.id
        assert invitation.status == InvitationStatus.pending
        assert len(invitation.token) >= 48

    def test_inviter_needs_invite_permission(self, db, make_user, setup, roles) -> None:
        tenant, _admin, ctx = setup
        viewer = make_user(tenant=tenant, role="viewer")

        with pytest.raises(PermissionDeniedError):
            invitation_service.create(db, ctx, viewer, email="x@acme.com", role_id=roles["viewer"].id)

    def test_cannot_invite_above_own_role(self, db, make_user, setup, roles) -> None:
        tenant, _admin, ctx = setup
        manager = make_user(tenant=tenant, role="manager")
        manager.role.permissions = list(manager.role.permissions) + ["users.invite"]
        db.commit()

        with pytest.raises(PermissionDeniedError):
            invitation_service.create(db, ctx, manager, email="x@acme.com", role_id=roles["admin"].id)

    def test_role_of_other_tenant_rejected(self, db, make_tenant, setup) -> None:
        _tenant, admin, ctx = setup
        other = make_tenant()
        foreign_role = role_service.create_role(
            db, RoleCreate(name="Closer", slug="closer", permissions=[]), TenantContext.for_tenant(other.id)
        )

        with pytest.raises(ValidationFailedError):
            invitation_service.create(db, ctx, admin, email="x@acme.com", role_id=foreign_role.id)

    def test_existing_user_email_rejected(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        with pytest.raises(ValidationFailedError):
            invitation_service.create(db, ctx, admin, email=admin.email, role_id=roles["sales"].id)

    def test_duplicate_pending_invitation_rejected(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation_service.create(db, ctx, admin, email="x@acme.com", role_id=roles["sales"].id)
        with pytest.raises(ValidationFailedError):
            invitation_service.create(db, ctx, admin, email="X@acme.com", role_id=roles["sales"].id)


class TestAccept:
    def test_round_trip(self, db, setup, roles) -> None:
        tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="joiner@acme.com", role_id=roles["sales"].id)

        user, tokens = invitation_service.accept(db, invitation.token, "Joiner", "joiner-password")

        assert user.tenant_id == tenant.id
        assert user.role_id == roles["sales"].id
        assert user.email == "joiner@acme.com"
        assert verify_password("joiner-password", user.hashed_password)
        assert token_service.verify(tokens.access_token).user_id == user.id

        db.refresh(invitation)
        assert invitation.status == InvitationStatus.accepted

    def test_second_acceptance_fails(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="joiner@acme.com", role_id=roles["sales"].id)
        invitation_service.accept(db, invitation.token, "Joiner", "joiner-password")

        with pytest.raises(InvitationAlreadyConsumedError):
            invitation_service.accept(db, invitation.token, "Joiner Again", "other-password")

    def test_expired_invitation_rejected(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(
            db, ctx, admin, email="late@acme.com", role_id=roles["sales"].id,
            now=utcnow() - timedelta(days=8),
        )

        with pytest.raises(InvitationExpiredError):
            invitation_service.accept(db, invitation.token, "Late", "valid-password")

    def test_accept_at_exact_expiry_instant(self, db, setup, roles) -> None:
        tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="edge@acme.com", role_id=roles["sales"].id)
        deadline = as_utc(invitation.expires_at)
        assert not invitation.is_expired(deadline)

        assert [i.id for i in invitation_service.list_pending(db, ctx, now=deadline)] == [invitation.id]
        user, _tokens = invitation_service.accept(db, invitation.token, "Edge", "valid-password", now=deadline)

        assert user.tenant_id == tenant.id
        db.refresh(invitation)
        assert invitation.accepted_at is not None

    def test_accept_just_after_expiry_rejected(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="late@acme.com", role_id=roles["sales"].id)

        with pytest.raises(InvitationExpiredError):
            invitation_service.accept(
                db, invitation.token, "Late", "valid-password",
                now=as_utc(invitation.expires_at) + timedelta(microseconds=1),
            )

    def test_unknown_token(self, db) -> None:
        with pytest.raises(InvitationNotFoundError):
            invitation_service.accept(db, "nope", "Nobody", "valid-password")

    def test_claim_lost_to_concurrent_acceptance(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="race@acme.com", role_id=roles["sales"].id)

        # Another request consumed it between our read and our claim
        assert invitation_service.crud.claim(db, invitation_id=invitation.id, now=utcnow())
        assert not invitation_service.crud.claim(db, invitation_id=invitation.id, now=utcnow())


class TestPendingLookup:
    def test_pending_summary(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="p@acme.com", role_id=roles["support"].id)

        found = invitation_service.get_pending(db, invitation.token)

        assert found.id == invitation.id
        assert found.role.slug == "support"

    def test_expired_and_consumed_look_missing(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        expired = invitation_service.create(
            db, ctx, admin, email="e@acme.com", role_id=roles["sales"].id,
            now=utcnow() - timedelta(days=8),
        )
        used = invitation_service.create(db, ctx, admin, email="u@acme.com", role_id=roles["sales"].id)
        invitation_service.accept(db, used.token, "Used", "valid-password")

        with pytest.raises(InvitationNotFoundError):
            invitation_service.get_pending(db, expired.token)
        with pytest.raises(InvitationNotFoundError):
            invitation_service.get_pending(db, used.token)

    def test_list_pending_excludes_accepted_and_expired(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        pending = invitation_service.create(db, ctx, admin, email="a@acme.com", role_id=roles["sales"].id)
        invitation_service.create(
            db, ctx, admin, email="b@acme.com", role_id=roles["sales"].id,
            now=utcnow() - timedelta(days=8),
        )
        used = invitation_service.create(db, ctx, admin, email="c@acme.com", role_id=roles["sales"].id)
        invitation_service.accept(db, used.token, "Used", "valid-password")

        assert [i.id for i in invitation_service.list_pending(db, ctx)] == [pending.id]


class TestResendAndDelete:
    def test_resend_invalidates_old_token(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="r@acme.com", role_id=roles["sales"].id)
        old_token = invitation.token

        invitation = invitation_service.resend(db, invitation.id, ctx)

        assert invitation.token != old_token
        with pytest.raises(InvitationNotFoundError):
            invitation_service.accept(db, old_token, "Old", "valid-password")
        user, _tokens = invitation_service.accept(db, invitation.token, "New", "valid-password")
        assert user.email == "r@acme.com"

    def test_resend_revives_expired_invitation(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(
            db, ctx, admin, email="r@acme.com", role_id=roles["sales"].id,
            now=utcnow() - timedelta(days=8),
        )

        invitation = invitation_service.resend(db, invitation.id, ctx)

        assert invitation.status == InvitationStatus.pending

    def test_resend_accepted_fails(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="r@acme.com", role_id=roles["sales"].id)
        invitation_service.accept(db, invitation.token, "R", "valid-password")

        with pytest.raises(InvitationAlreadyConsumedError):
            invitation_service.resend(db, invitation.id, ctx)

    def test_delete_pending(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="d@acme.com", role_id=roles["sales"].id)
        token = invitation.token

        invitation_service.delete(db, invitation.id, ctx)

        with pytest.raises(InvitationNotFoundError):
            invitation_service.get_pending(db, token)

    def test_delete_accepted_fails(self, db, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="d@acme.com", role_id=roles["sales"].id)
        invitation_service.accept(db, invitation.token, "D", "valid-password")

        with pytest.raises(InvitationAlreadyConsumedError):
            invitation_service.delete(db, invitation.id, ctx)

    def test_other_tenant_cannot_touch_invitation(self, db, make_tenant, setup, roles) -> None:
        _tenant, admin, ctx = setup
        invitation = invitation_service.create(db, ctx, admin, email="d@acme.com", role_id=roles["sales"].id)
        other_ctx = TenantContext.for_tenant(make_tenant().id)

        with pytest.raises(NotFoundError):
            invitation_service.delete(db, invitation.id, other_ctx)
