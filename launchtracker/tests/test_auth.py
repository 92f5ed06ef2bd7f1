"""Auth endpoints: registration, login, sessions and admin user management."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt


class TestRegisterAndLogin:
    def test_first_user_is_admin_then_collaborators(self, client, register):
        register("first@example.com")
        resp = client.post(
            "/api/auth/register",
            json={"email": "second@example.com", "password": "secret123", "name": "Second"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["user"]["role"] == "collaborator"

        me = client.get("/api/auth/me", headers=register("third@example.com"))
        assert me.json()["data"]["role"] == "collaborator"

    def test_register_sets_cookie_and_returns_token(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"email": "Owner@Example.com", "password": "secret123", "name": "Owner"},
        )
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["token"]
        assert body["data"]["user"]["email"] == "owner@example.com"
        assert body["data"]["user"]["role"] == "admin"
        assert "token" in resp.cookies

    def test_duplicate_email(self, client, register):
        register("dup@example.com")
        resp = client.post(
            "/api/auth/register",
            json={"email": "DUP@example.com", "password": "secret123", "name": "Again"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"

    def test_register_validation(self, client):
        resp = client.post("/api/auth/register", json={"email": "nope", "password": "123", "name": ""})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "ValidationError"
        assert body["statusCode"] == 400
        fields = {d["field"] for d in body["details"]}
        assert {"email", "password", "name"} <= fields

    def test_login(self, client, register):
        register("login@example.com", password="hunter22")
        resp = client.post("/api/auth/login", json={"email": "LOGIN@example.com", "password": "hunter22"})
        assert resp.status_code == 200
        assert resp.json()["data"]["user"]["email"] == "login@example.com"

    def test_login_wrong_password(self, client, register):
        register("login@example.com", password="hunter22")
        resp = client.post("/api/auth/login", json={"email": "login@example.com", "password": "wrong-pass"})
        assert resp.status_code == 401
        assert resp.json() == {
            "error": "AuthenticationError",
            "message": "Invalid email or password",
            "statusCode": 401,
        }

    def test_login_unknown_user(self, client):
        resp = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
        assert resp.status_code == 401


class TestSession:
    def test_me_requires_auth(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"] == "AuthenticationError"

    def test_me_with_bearer(self, client, auth):
        client.cookies.clear()
        resp = client.get("/api/auth/me", headers=auth)
        assert resp.status_code == 200
        assert resp.json()["data"]["email"] == "owner@example.com"

    def test_me_with_cookie(self, client, auth):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.json()["data"]["name"] == "Owner"

    def test_invalid_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_expired_token(self, client, auth, settings):
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "1", "iat": issued, "exp": issued + timedelta(minutes=5)},
            settings.jwt_secret, algorithm=settings.jwt_algorithm,
        )
        client.cookies.clear()
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "AuthenticationError"

    def test_token_for_unknown_user(self, client, auth, settings):
        token = jwt.encode(
            {"sub": "999", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            settings.jwt_secret, algorithm=settings.jwt_algorithm,
        )
        client.cookies.clear()
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "AuthenticationError", "message": "User not found", "statusCode": 401}

    def test_logout_clears_cookie(self, client, auth):
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Logged out successfully"}
        assert client.get("/api/auth/me").status_code == 401

    def test_change_password(self, client, auth):
        resp = client.post(
            "/api/auth/password",
            json={"currentPassword": "secret123", "newPassword": "newsecret"},
            headers=auth,
        )
        assert resp.status_code == 200
        login = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "newsecret"})
        assert login.status_code == 200

    def test_change_password_wrong_current(self, client, auth):
        resp = client.post(
            "/api/auth/password",
            json={"currentPassword": "nope-nope", "newPassword": "newsecret"},
            headers=auth,
        )
        assert resp.status_code == 400


class TestUserAdmin:
    def test_list_users_admin_only(self, client, register):
        admin = register("admin@example.com")
        member = register("member@example.com")
        assert client.get("/api/auth/users", headers=member).status_code == 403
        resp = client.get("/api/auth/users", headers=admin)
        assert resp.status_code == 200
        assert [u["email"] for u in resp.json()["data"]] == ["admin@example.com", "member@example.com"]

    def test_change_role(self, client, register):
        admin = register("admin@example.com")
        register("member@example.com")
        users = client.get("/api/auth/users", headers=admin).json()["data"]
        member_id = users[1]["id"]
        resp = client.patch(f"/api/auth/users/{member_id}/role", json={"role": "admin"}, headers=admin)
        assert resp.status_code == 200
        assert resp.json()["data"]["role"] == "admin"

    def test_cannot_change_own_role(self, client, register):
        admin = register("admin@example.com")
        me = client.get("/api/auth/me", headers=admin).json()["data"]
        resp = client.patch(f"/api/auth/users/{me['id']}/role", json={"role": "collaborator"}, headers=admin)
        assert resp.status_code == 400

    def test_change_role_unknown_user(self, client, register):
        admin = register("admin@example.com")
        resp = client.patch("/api/auth/users/999/role", json={"role": "admin"}, headers=admin)
        assert resp.status_code == 404
