"""HTTP contract tests through the FastAPI app."""

from datetime import timedelta

import pytest

from app.core.tenant_context import TenantContext
from app.crud.tenant import tenant as tenant_crud
from app.models.subscription import Subscription
from app.services.role import role_service
from conftest import FIXED_NOW, PASSWORD, auth_headers


@pytest.fixture
def tenant(make_tenant):
    return make_tenant(name="Acme")


@pytest.fixture
def admin(make_user, tenant):
    return make_user(tenant=tenant, role="admin", email="admin@acme.com")


@pytest.fixture
def operator(make_user):
    return make_user(tenant=None, role=None, is_super_admin=True, email="ops@backoffice.com")


class TestAuthEndpoints:
    def test_register_creates_tenant_admin_and_trial(self, client, db, roles, plans) -> None:
        resp = client.post("/api/auth/register", json={
            "name": "Founder",
            "email": "founder@globex.com",
            "password": "founder-password",
            "tenant_name": "Globex Corp",
        })

        assert resp.status_code == 201
        body = resp.json()
        assert body["user"]["role"]["slug"] == "admin"
        assert body["tenant"]["name"] == "Globex Corp"
        assert body["tenant"]["slug"].startswith("globex-corp-")
        assert "users.roles" in body["permissions"]
        assert body["tokens"]["token_type"] == "Bearer"

        subscription = db.query(Subscription).filter_by(tenant_id=body["tenant"]["id"]).one()
        assert subscription.plan.slug == "business"
        assert subscription.status.value == "trial"

    def test_register_duplicate_email(self, client, admin) -> None:
        resp = client.post("/api/auth/register", json={
            "name": "Again",
            "email": "admin@acme.com",
            "password": "another-password",
            "tenant_name": "Copycat",
        })
        assert resp.status_code == 422
        assert resp.json()["errors"]["email"]

    def test_login(self, client, admin) -> None:
        resp = client.post("/api/auth/login", json={"email": "ADMIN@acme.com", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == admin.id

    def test_login_wrong_password(self, client, admin) -> None:
        resp = client.post("/api/auth/login", json={"email": "admin@acme.com", "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.json() == {
            "success": False,
            "error_code": "INVALID_CREDENTIALS",
            "message": "Incorrect email or password",
        }

    def test_me_requires_bearer(self, client) -> None:
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "TOKEN_MALFORMED"

    def test_me(self, client, admin, tenant) -> None:
        resp = client.get("/api/auth/me", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json()["tenant"]["id"] == tenant.id

    def test_refresh(self, client, admin) -> None:
        login = client.post("/api/auth/login", json={"email": "admin@acme.com", "password": PASSWORD}).json()
        resp = client.post("/api/auth/refresh", json={"refresh_token": login["tokens"]["refresh_token"]})
        assert resp.status_code == 200
        assert resp.json()["access_token"]

    def test_password_change_invalidates_old_tokens(self, client, admin) -> None:
        login = client.post("/api/auth/login", json={"email": "admin@acme.com", "password": PASSWORD}).json()
        old_headers = {"Authorization": f"Bearer {login['tokens']['access_token']}"}

        resp = client.put("/api/auth/password", headers=old_headers, json={
            "current_password": PASSWORD,
            "password": "a-much-better-password",
        })
        assert resp.status_code == 200
        new_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

        assert client.get("/api/auth/me", headers=old_headers).json()["error_code"] == "TOKEN_INVALIDATED"
        stale_refresh = client.post("/api/auth/refresh", json={"refresh_token": login["tokens"]["refresh_token"]})
        assert stale_refresh.status_code == 401
        assert stale_refresh.json()["error_code"] == "TOKEN_INVALIDATED"
        assert client.get("/api/auth/me", headers=new_headers).status_code == 200

    def test_password_change_wrong_current(self, client, admin) -> None:
        resp = client.put("/api/auth/password", headers=auth_headers(admin), json={
            "current_password": "not-my-password",
            "password": "a-much-better-password",
        })
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "INVALID_PASSWORD"

    def test_suspended_user_rejected(self, client, db, make_user, tenant) -> None:
        user = make_user(tenant=tenant, role="sales")
        headers = auth_headers(user)
        user.is_active = False
        db.commit()

        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "USER_NOT_ACTIVE"


class TestProtectedFields:
    def test_profile_update_ignores_privileged_fields(self, client, make_tenant, make_user, tenant) -> None:
        other = make_tenant()
        user = make_user(tenant=tenant, role="sales")

        resp = client.put("/api/users/me", headers=auth_headers(user), json={
            "name": "Renamed",
            "tenant_id": other.id,
            "is_super_admin": True,
            "is_active": False,
            "suspended_reason": "nope",
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["name"] == "Renamed"
        assert body["tenant_id"] == tenant.id
        assert body["is_super_admin"] is False
        assert body["is_active"] is True
        assert body["suspended_reason"] is None

    def test_role_create_ignores_tenant_id(self, client, db, make_tenant, admin, tenant) -> None:
        other = make_tenant()
        resp = client.post("/api/roles", headers=auth_headers(admin), json={
            "name": "Closer",
            "slug": "closer",
            "permissions": ["pipeline.*"],
            "tenant_id": other.id,
        })

        assert resp.status_code == 201
        assert resp.json()["kind"] == "custom"
        role = role_service.get_role(db, resp.json()["id"], TenantContext.for_tenant(tenant.id))
        assert role.tenant_id == tenant.id


class TestUsersEndpoints:
    def test_my_permissions(self, client, make_user, tenant) -> None:
        viewer = make_user(tenant=tenant, role="viewer")
        body = client.get("/api/users/me/permissions", headers=auth_headers(viewer)).json()
        assert body["role"]["slug"] == "viewer"
        assert "clients.view" in body["permissions"]
        assert "clients.edit" not in body["permissions"]

    def test_list_users_scoped(self, client, make_tenant, make_user, admin) -> None:
        make_user(tenant=make_tenant(), role="admin")
        body = client.get("/api/users", headers=auth_headers(admin)).json()
        assert [u["id"] for u in body] == [admin.id]

    def test_foreign_user_is_not_found(self, client, make_tenant, make_user, admin) -> None:
        stranger = make_user(tenant=make_tenant(), role="sales")
        resp = client.get(f"/api/users/{stranger.id}", headers=auth_headers(admin))
        assert resp.status_code == 404

    def test_viewer_cannot_list_users(self, client, make_user, tenant) -> None:
        viewer = make_user(tenant=tenant, role="viewer")
        resp = client.get("/api/users", headers=auth_headers(viewer))
        assert resp.status_code == 403
        assert resp.json()["error_code"] == "PERMISSION_DENIED"

    def test_role_change_and_hierarchy(self, client, db, make_user, admin, tenant, roles) -> None:
        sales = make_user(tenant=tenant, role="sales")
        resp = client.put(f"/api/users/{sales.id}", headers=auth_headers(admin), json={"role_id": roles["manager"].id})
        assert resp.status_code == 200
        assert resp.json()["role"]["slug"] == "manager"

        manager = make_user(tenant=tenant, role="manager")
        manager.role.permissions = list(manager.role.permissions) + ["users.edit"]
        db.commit()
        resp = client.put(f"/api/users/{admin.id}", headers=auth_headers(manager), json={"name": "Demoted"})
        assert resp.status_code == 403

    def test_suspend_and_activate(self, client, make_user, admin, tenant) -> None:
        sales = make_user(tenant=tenant, role="sales")
        resp = client.post(f"/api/users/{sales.id}/suspend", headers=auth_headers(admin), json={"reason": "vacation"})
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False
        assert client.get("/api/auth/me", headers=auth_headers(sales)).status_code == 401

        resp = client.post(f"/api/users/{sales.id}/activate", headers=auth_headers(admin))
        assert resp.json()["is_active"] is True

    def test_cannot_delete_self(self, client, admin) -> None:
        resp = client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))
        assert resp.status_code == 403

    def test_delete_user(self, client, make_user, admin, tenant) -> None:
        sales = make_user(tenant=tenant, role="sales")
        assert client.delete(f"/api/users/{sales.id}", headers=auth_headers(admin)).status_code == 204
        assert client.get(f"/api/users/{sales.id}", headers=auth_headers(admin)).status_code == 404


class TestInvitationEndpoints:
    def test_invite_and_accept(self, client, admin, roles, tenant) -> None:
        resp = client.post("/api/users/invitations", headers=auth_headers(admin), json={
            "email": "joiner@acme.com",
            "role_id": roles["sales"].id,
        })
        assert resp.status_code == 201
        token = resp.json()["token"]
        assert resp.json()["invitation_url"].endswith(f"/invite/{token}")
        assert resp.json()["status"] == "pending"

        summary = client.get(f"/api/auth/invitation/{token}")
        assert summary.status_code == 200
        assert summary.json()["tenant_name"] == "Acme"
        assert summary.json()["role"]["slug"] == "sales"

        accepted = client.post(f"/api/auth/invitation/{token}/accept", json={"name": "Joiner", "password": "joiner-password"})
        assert accepted.status_code == 201
        assert accepted.json()["user"]["tenant_id"] == tenant.id
        assert "pipeline.move" in accepted.json()["permissions"]

        again = client.post(f"/api/auth/invitation/{token}/accept", json={"name": "Joiner", "password": "joiner-password"})
        assert again.status_code == 400
        assert again.json()["error_code"] == "INVITATION_CONSUMED"
        assert client.get(f"/api/auth/invitation/{token}").status_code == 404

    def test_unknown_invitation(self, client) -> None:
        resp = client.post("/api/auth/invitation/missing/accept", json={"name": "X", "password": "long-enough"})
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "INVITATION_NOT_FOUND"

    def test_resend_and_delete(self, client, admin, roles) -> None:
        created = client.post("/api/users/invitations", headers=auth_headers(admin), json={
            "email": "later@acme.com",
            "role_id": roles["support"].id,
        }).json()

        resent = client.post(f"/api/users/invitations/{created['id']}/resend", headers=auth_headers(admin))
        assert resent.status_code == 200
        assert resent.json()["token"] != created["token"]
        assert client.get(f"/api/auth/invitation/{created['token']}").status_code == 404

        listed = client.get("/api/users/invitations", headers=auth_headers(admin)).json()
        assert [i["id"] for i in listed] == [created["id"]]

        deleted = client.delete(f"/api/users/invitations/{created['id']}", headers=auth_headers(admin))
        assert deleted.status_code == 204
        assert client.get("/api/users/invitations", headers=auth_headers(admin)).json() == []


class TestRoleEndpoints:
    def test_list_includes_system_roles(self, client, admin) -> None:
        body = client.get("/api/roles", headers=auth_headers(admin)).json()
        assert {"admin", "manager", "sales", "support", "viewer"} <= {r["slug"] for r in body}
        admin_role = next(r for r in body if r["slug"] == "admin")
        assert admin_role["is_system"] is True
        assert "users.delete" in admin_role["permissions_expanded"]

    def test_permission_catalog(self, client, admin) -> None:
        body = client.get("/api/roles/permissions", headers=auth_headers(admin)).json()
        modules = {g["module"] for g in body}
        assert {"clients", "pipeline", "users"} <= modules

    def test_unknown_permission_rejected(self, client, admin) -> None:
        resp = client.post("/api/roles", headers=auth_headers(admin), json={
            "name": "Weird", "slug": "weird", "permissions": ["rockets.launch"],
        })
        assert resp.status_code == 422
        assert resp.json()["errors"]["permissions"]

    def test_system_role_is_immutable(self, client, admin, roles) -> None:
        sales_id = roles["sales"].id
        renamed = client.put(f"/api/roles/{sales_id}", headers=auth_headers(admin), json={"name": "Hunters"})
        assert renamed.status_code == 403
        assert renamed.json()["error_code"] == "ROLE_IMMUTABLE"

        deleted = client.delete(f"/api/roles/{sales_id}", headers=auth_headers(admin))
        assert deleted.status_code == 403
        assert deleted.json()["error_code"] == "ROLE_IMMUTABLE"

    def test_tenant_admin_cannot_edit_system_permissions(self, client, admin, roles) -> None:
        resp = client.put(f"/api/roles/{roles['viewer'].id}", headers=auth_headers(admin), json={"permissions": ["*"]})
        assert resp.status_code == 403

    def test_role_in_use_cannot_be_deleted(self, client, make_user, admin, tenant) -> None:
        created = client.post("/api/roles", headers=auth_headers(admin), json={
            "name": "Closer", "slug": "closer", "permissions": ["pipeline.*"],
        }).json()
        resp = client.put(f"/api/roles/{created['id']}", headers=auth_headers(admin), json={"description": "Closes deals"})
        assert resp.json()["description"] == "Closes deals"

        other = make_user(tenant=tenant, role="sales")
        client.put(f"/api/users/{other.id}", headers=auth_headers(admin), json={"role_id": created["id"]})

        resp = client.delete(f"/api/roles/{created['id']}", headers=auth_headers(admin))
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "ROLE_IN_USE"

    def test_viewer_cannot_create_roles(self, client, make_user, tenant) -> None:
        viewer = make_user(tenant=tenant, role="viewer")
        resp = client.post("/api/roles", headers=auth_headers(viewer), json={"name": "X", "slug": "x"})
        assert resp.status_code == 403


class TestSuspendedTenant:
    def test_reads_allowed_writes_refused(self, client, db, admin, tenant) -> None:
        tenant_crud.suspend(db, tenant=tenant, reason="Unpaid invoice")

        read = client.get("/api/tenant", headers=auth_headers(admin))
        assert read.status_code == 200
        assert read.json()["is_suspended"] is True
        assert read.json()["suspended_reason"] == "Unpaid invoice"
        assert client.get("/api/users", headers=auth_headers(admin)).status_code == 200

        write = client.post("/api/roles", headers=auth_headers(admin), json={"name": "X", "slug": "x"})
        assert write.status_code == 403
        assert write.json()["error_code"] == "TENANT_SUSPENDED"
        assert write.json()["suspended_reason"] == "Unpaid invoice"

        profile = client.put("/api/users/me", headers=auth_headers(admin), json={"name": "Still me"})
        assert profile.json()["error_code"] == "TENANT_SUSPENDED"

    def test_password_change_refused(self, client, db, admin, tenant) -> None:
        tenant_crud.suspend(db, tenant=tenant, reason="Unpaid invoice")

        resp = client.put("/api/auth/password", headers=auth_headers(admin), json={
            "current_password": PASSWORD,
            "password": "a-much-better-password",
        })

        assert resp.status_code == 403
        assert resp.json()["error_code"] == "TENANT_SUSPENDED"
        db.refresh(admin)
        assert admin.credential_version == 1


class TestQuotaEndpoints:
    @pytest.fixture(autouse=True)
    def frozen_clock(self, monkeypatch):
        monkeypatch.setattr("app.services.quota.utcnow", lambda: FIXED_NOW)

    def test_consume_until_rate_limited(self, client, admin, tenant, make_plan, subscribe) -> None:
        subscribe(tenant, make_plan(request_limit_per_minute=5))
        headers = auth_headers(admin)

        for _ in range(5):
            ok = client.post("/api/ai/quota/consume", headers=headers, json={"feature": "chat", "tokens": 10})
            assert ok.status_code == 200
        assert ok.json()["minute"] == {"used": 5, "limit": 5, "remaining": 0, "percentage": 100.0}

        resp = client.post("/api/ai/quota/consume", headers=headers, json={"feature": "chat", "tokens": 10})
        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "50"
        assert resp.json()["error_code"] == "MINUTE_RATE_EXCEEDED"
        assert resp.json()["retry_after"] == 50

    def test_negative_tokens_is_validation_error(self, client, admin, tenant, make_plan, subscribe) -> None:
        subscribe(tenant, make_plan())
        resp = client.post("/api/ai/quota/consume", headers=auth_headers(admin), json={"feature": "chat", "tokens": -5})
        assert resp.status_code == 422
        assert "tokens" in resp.json()["errors"]

    def test_no_subscription(self, client, admin) -> None:
        resp = client.post("/api/ai/quota/consume", headers=auth_headers(admin), json={"feature": "chat", "tokens": 1})
        assert resp.status_code == 429
        assert resp.json()["error_code"] == "NO_SUBSCRIPTION"
        assert "Retry-After" not in resp.headers

    def test_usage_and_plans(self, client, admin, tenant, plans, subscribe) -> None:
        subscribe(tenant, plans["free"])
        usage = client.get("/api/ai/usage", headers=auth_headers(admin)).json()
        assert usage["plan"]["slug"] == "free"
        assert usage["monthly"]["limit"] == 5000

        listed = client.get("/api/ai/plans", headers=auth_headers(admin)).json()
        assert [p["slug"] for p in listed] == ["free", "business", "enterprise"]


class TestOperatorEndpoints:
    def test_tenant_endpoints_need_explicit_tenant(self, client, operator, admin, tenant) -> None:
        resp = client.get("/api/users", headers=auth_headers(operator))
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "TENANT_REQUIRED"

        scoped = client.get("/api/users", headers=auth_headers(operator, tenant_id=tenant.id))
        assert [u["id"] for u in scoped.json()] == [admin.id]

    def test_admin_area_is_super_admin_only(self, client, admin) -> None:
        assert client.get("/api/admin/tenants", headers=auth_headers(admin)).status_code == 403

    def test_suspend_and_reactivate_tenant(self, client, operator, tenant) -> None:
        resp = client.post(
            f"/api/admin/tenants/{tenant.id}/suspend",
            headers=auth_headers(operator),
            json={"reason": "Chargeback"},
        )
        assert resp.status_code == 200
        assert resp.json()["is_suspended"] is True

        resp = client.post(f"/api/admin/tenants/{tenant.id}/activate", headers=auth_headers(operator))
        assert resp.json()["is_suspended"] is False

    def test_list_tenants_and_users(self, client, operator, make_tenant, admin, tenant) -> None:
        make_tenant()
        tenants = client.get("/api/admin/tenants", headers=auth_headers(operator)).json()
        assert len(tenants) == 2

        users = client.get(f"/api/admin/tenants/{tenant.id}/users", headers=auth_headers(operator)).json()
        assert [u["id"] for u in users] == [admin.id]

    def test_assign_subscription_replaces_live_one(self, client, db, operator, tenant, plans, subscribe) -> None:
        first = subscribe(tenant, plans["free"])

        resp = client.post(f"/api/admin/tenants/{tenant.id}/subscription", headers=auth_headers(operator), json={
            "plan_slug": "enterprise",
            "ends_at": (FIXED_NOW + timedelta(days=365)).isoformat(),
        })

        assert resp.status_code == 201
        assert resp.json()["status"] == "active"
        db.refresh(first)
        assert first.status.value == "cancelled"

    def test_unknown_plan(self, client, operator, tenant) -> None:
        resp = client.post(
            f"/api/admin/tenants/{tenant.id}/subscription",
            headers=auth_headers(operator),
            json={"plan_slug": "platinum"},
        )
        assert resp.status_code == 404


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "healthy", "database": "connected"}
