"""
API tests for auth, permissions, roles and users routes.

Checks both the happy paths and that every failure carries a stable
error_code and context.
"""
from uuid import uuid4

from conftest import TEST_PASSWORD, auth_headers


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_health_detailed_reports_missing_default_role(client):
    body = client.get("/health/detailed").json()
    assert body["status"] == "degraded"
    assert body["checks"]["access_control"]["default_role"] is None


def test_health_detailed_seeded(client, system_roles):
    body = client.get("/health/detailed").json()
    assert body["status"] == "healthy"
    assert body["checks"]["access_control"] == {"status": "healthy", "system_roles": 3, "default_role": "user"}


class TestAuthentication:
    def test_missing_token_is_401(self, client, system_roles):
        resp = client.get("/v1/roles")
        assert resp.status_code == 401
        assert resp.json()["error_code"] == "UNAUTHENTICATED"

    def test_garbage_token_is_401(self, client, system_roles):
        resp = client.get("/v1/roles", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_register_login_and_me(self, client, system_roles):
        resp = client.post("/v1/auth/register", json={
            "first_name": "Grace",
            "last_name": "Hopper",
            "email": "Grace@Example.com",
            "password": TEST_PASSWORD,
            "confirm_password": TEST_PASSWORD,
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["user"]["email"] == "grace@example.com"
        assert body["user"]["role"]["name"] == "user"

        login = client.post("/v1/auth/login", json={"email": "grace@example.com", "password": TEST_PASSWORD})
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["first_name"] == "Grace"

    def test_register_password_mismatch(self, client, system_roles):
        resp = client.post("/v1/auth/register", json={
            "first_name": "Grace",
            "last_name": "Hopper",
            "email": "grace@example.com",
            "password": TEST_PASSWORD,
            "confirm_password": "something-else",
        })
        assert resp.status_code == 422

    def test_login_wrong_password(self, client, regular_user):
        resp = client.post("/v1/auth/login", json={"email": regular_user.email, "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid credentials"

    def test_access_diagnostics(self, client, admin):
        resp = client.get("/v1/auth/me/access", params={"resource": "roles", "action": "list"}, headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json() == {
            "allowed": False,
            "resource": "roles",
            "action": "list",
            "role": "admin",
            "reason": "Not authorized to list roles",
        }


class TestPermissionsApi:
    def test_regular_user_forbidden_with_context(self, client, regular_user):
        resp = client.get("/v1/permissions", headers=auth_headers(regular_user))
        assert resp.status_code == 403
        body = resp.json()
        assert body["error_code"] == "FORBIDDEN"
        assert body["context"] == {"resource": "permissions", "action": "list"}

    def test_superadmin_crud(self, client, superadmin):
        headers = auth_headers(superadmin)
        created = client.post("/v1/permissions", json={"resource": "reports", "actions": ["read", "list"]}, headers=headers)
        assert created.status_code == 201
        permission_id = created.json()["id"]

        by_resource = client.get("/v1/permissions/resource/reports", headers=headers)
        assert by_resource.json()["id"] == permission_id

        dup = client.post("/v1/permissions", json={"resource": "reports", "actions": ["read"]}, headers=headers)
        assert dup.status_code == 409
        assert dup.json()["error_code"] == "CONFLICT"

        bad = client.post("/v1/permissions", json={"resource": "invoices", "actions": ["publish"]}, headers=headers)
        assert bad.status_code == 422
        assert bad.json()["detail"] == "Invalid actions: publish"

        deleted = client.delete(f"/v1/permissions/{permission_id}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True}

    def test_system_permission_immutable(self, client, superadmin, system_permissions):
        resp = client.put(
            f"/v1/permissions/{system_permissions['users'].id}",
            json={"resource": "people"},
            headers=auth_headers(superadmin),
        )
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "IMMUTABLE"


class TestRolesApi:
    def test_admin_cannot_manage_roles(self, client, admin):
        resp = client.post("/v1/roles", json={"name": "analyst"}, headers=auth_headers(admin))
        assert resp.status_code == 403
        assert resp.json()["context"] == {"resource": "roles", "action": "create"}

    def test_create_role_with_missing_permission(self, client, superadmin):
        missing = str(uuid4())
        resp = client.post("/v1/roles", json={"name": "analyst", "permissions": [missing]}, headers=auth_headers(superadmin))
        assert resp.status_code == 404
        assert resp.json()["context"] == {"resource": "Permission", "identifier": [missing]}

        roles = client.get("/v1/roles", headers=auth_headers(superadmin)).json()
        assert "analyst" not in {r["name"] for r in roles}

    def test_create_default_role_moves_default(self, client, superadmin, system_roles, system_permissions):
        headers = auth_headers(superadmin)
        resp = client.post(
            "/v1/roles",
            json={"name": "member", "permissions": [str(system_permissions["coaching"].id)], "is_default": True},
            headers=headers,
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["is_default"] is True
        assert body["created_by"] == str(superadmin.id)
        assert [p["resource"] for p in body["permissions"]] == ["coaching"]

        roles = client.get("/v1/roles", headers=headers).json()
        assert [r["name"] for r in roles if r["is_default"]] == ["member"]

    def test_replace_role_permissions(self, client, superadmin, system_permissions):
        headers = auth_headers(superadmin)
        role = client.post(
            "/v1/roles", json={"name": "analyst", "permissions": [str(system_permissions["users"].id)]}, headers=headers
        ).json()

        resp = client.put(
            f"/v1/roles/{role['id']}/permissions",
            json={"permissions": [str(system_permissions["coaching"].id)]},
            headers=headers,
        )
        assert resp.status_code == 200
        listed = client.get(f"/v1/roles/{role['id']}/permissions", headers=headers).json()
        assert [p["resource"] for p in listed] == ["coaching"]

    def test_delete_system_role_immutable(self, client, superadmin, system_roles):
        resp = client.delete(f"/v1/roles/{system_roles['admin'].id}", headers=auth_headers(superadmin))
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "IMMUTABLE"

    def test_delete_role_in_use_referential(self, client, superadmin):
        headers = auth_headers(superadmin)
        role = client.post("/v1/roles", json={"name": "analyst"}, headers=headers).json()
        client.post("/v1/users", json={
            "first_name": "An",
            "last_name": "Alyst",
            "email": "analyst@example.com",
            "password": TEST_PASSWORD,
            "role_id": role["id"],
        }, headers=headers)

        resp = client.delete(f"/v1/roles/{role['id']}", headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "REFERENTIAL"
        assert resp.json()["context"] == {"dependents": 1}


class TestUsersApi:
    def test_admin_lists_users(self, client, admin, regular_user):
        resp = client.get("/v1/users", params={"limit": 1}, headers=auth_headers(admin))
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 2
        assert len(body["data"]) == 1
        assert "password_hash" not in body["data"][0]

    def test_create_user_unknown_role(self, client, admin):
        resp = client.post("/v1/users", json={
            "first_name": "No",
            "last_name": "Role",
            "email": "norole@example.com",
            "password": TEST_PASSWORD,
            "role_id": str(uuid4()),
        }, headers=auth_headers(admin))
        assert resp.status_code == 404

    def test_assign_role_by_role_name_gate(self, client, admin, regular_user, system_roles):
        target = str(system_roles["admin"].id)
        denied = client.put(f"/v1/users/{admin.id}/role", json={"role_id": target}, headers=auth_headers(regular_user))
        assert denied.status_code == 403
        assert denied.json()["context"] == {"roles": ["superadmin", "admin"]}

        allowed = client.put(f"/v1/users/{regular_user.id}/role", json={"role_id": target}, headers=auth_headers(admin))
        assert allowed.status_code == 200
        assert allowed.json()["role"]["name"] == "admin"

    def test_deactivated_user_token_rejected(self, client, admin, regular_user):
        resp = client.put(f"/v1/users/{regular_user.id}", json={"active": False}, headers=auth_headers(admin))
        assert resp.status_code == 200

        me = client.get("/v1/auth/me", headers=auth_headers(regular_user))
        assert me.status_code == 401
