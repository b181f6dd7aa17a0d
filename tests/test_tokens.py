"""Token service tests: issue, verify, refresh and revocation."""

from datetime import timedelta

import pytest
from jose import jwt

from app.core.config import settings
from app.core.exceptions import (
    MalformedTokenError,
    TokenExpiredError,
    TokenInvalidatedError,
    UserNotActiveError,
)
from app.core.security import create_token, utcnow
from app.crud.user import user as user_crud
from app.services.auth import auth_service
from app.services.token import token_service
from conftest import PASSWORD


class TestIssueAndVerify:
    def test_claims_round_trip(self, make_tenant, make_user) -> None:
        tenant = make_tenant()
        user = make_user(tenant=tenant, role="manager")

        identity = token_service.verify(token_service.issue(user).access_token)

        assert identity.user_id == user.id
        assert identity.tenant_id == tenant.id
        assert identity.role_slug == "manager"
        assert identity.is_super_admin is False
        assert identity.credential_version == 1
        assert identity.expires_at - identity.issued_at == timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    def test_pair_shape(self, make_tenant, make_user) -> None:
        pair = token_service.issue(make_user(tenant=make_tenant()))
        assert pair.token_type == "Bearer"
        assert pair.expires_in == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        claims = jwt.get_unverified_claims(pair.refresh_token)
        assert claims["type"] == "refresh"
        assert claims["jti"]

    def test_super_admin_has_no_tenant(self, make_user) -> None:
        operator = make_user(tenant=None, role=None, is_super_admin=True)
        identity = token_service.verify(token_service.issue(operator).access_token)
        assert identity.is_super_admin is True
        assert identity.tenant_id is None

    def test_expired_access_token(self, make_tenant, make_user) -> None:
        user = make_user(tenant=make_tenant())
        stale = token_service.issue(user, now=utcnow() - timedelta(hours=1))
        with pytest.raises(TokenExpiredError):
            token_service.verify(stale.access_token)

    def test_garbage_token(self) -> None:
        with pytest.raises(MalformedTokenError):
            token_service.verify("not-a-jwt")

    def test_refresh_token_is_not_an_access_token(self, make_tenant, make_user) -> None:
        pair = token_service.issue(make_user(tenant=make_tenant()))
        with pytest.raises(MalformedTokenError):
            token_service.verify(pair.refresh_token)

    def test_wrong_type_claim_with_access_key(self) -> None:
        token = create_token({"sub": "1", "cv": 1}, "refresh-ish", timedelta(minutes=5))
        with pytest.raises(MalformedTokenError):
            token_service.verify(token)


class TestRefresh:
    def test_refresh_issues_new_pair(self, db, make_tenant, make_user) -> None:
        user = make_user(tenant=make_tenant())
        pair = token_service.issue(user)

        new_pair = token_service.refresh(db, pair.refresh_token)

        assert token_service.verify(new_pair.access_token).user_id == user.id
        assert new_pair.refresh_token != pair.refresh_token

    def test_access_token_rejected(self, db, make_tenant, make_user) -> None:
        pair = token_service.issue(make_user(tenant=make_tenant()))
        with pytest.raises(MalformedTokenError):
            token_service.refresh(db, pair.access_token)

    def test_refresh_after_password_change_is_invalidated(self, db, make_tenant, make_user) -> None:
        user = make_user(tenant=make_tenant())
        before = token_service.issue(user)

        after = auth_service.change_password(db, user, PASSWORD, "a-brand-new-password")

        with pytest.raises(TokenInvalidatedError):
            token_service.refresh(db, before.refresh_token)
        assert token_service.refresh(db, after.refresh_token).access_token

    def test_refresh_for_suspended_user(self, db, make_tenant, make_user) -> None:
        user = make_user(tenant=make_tenant())
        pair = token_service.issue(user)
        user_crud.suspend(db, user=user, reason="offboarding")

        with pytest.raises(UserNotActiveError):
            token_service.refresh(db, pair.refresh_token)

    def test_refresh_for_deleted_user(self, db, make_tenant, make_user) -> None:
        user = make_user(tenant=make_tenant())
        pair = token_service.issue(user)
        db.delete(user)
        db.commit()

        with pytest.raises(TokenInvalidatedError):
            token_service.refresh(db, pair.refresh_token)


class TestRevokeAll:
    def test_bumps_credential_version(self, db, make_tenant, make_user) -> None:
        user = make_user(tenant=make_tenant())
        token_service.revoke_all(db, user)
        token_service.revoke_all(db, user)
        assert user.credential_version == 3
