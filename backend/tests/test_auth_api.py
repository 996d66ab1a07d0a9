"""
Authentication API tests.

Verifies:
- Registration enforces password strength, unique userIds and valid roles
- Login issues a bearer token that identifies the caller
- Logout revokes the token
- Deactivated users lose access immediately
"""

import pytest

from wingrow.extensions import db


TEST_PASSWORD = "Password123!"


class TestRegister:

    def test_register_organizer_by_default(self, client):
        resp = client.post("/api/auth/register", json={"userId": "alice", "password": TEST_PASSWORD})
        assert resp.status_code == 201
        user = resp.get_json()["user"]
        assert user["userId"] == "alice"
        assert user["role"] == "organizer"
        assert "password_hash" not in user

    def test_register_manager(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"userId": "boss", "password": TEST_PASSWORD, "role": "manager"},
        )
        assert resp.status_code == 201
        assert resp.get_json()["user"]["role"] == "manager"

    @pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_password(self, client, password):
        resp = client.post("/api/auth/register", json={"userId": "weak", "password": password})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"

    def test_invalid_role(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"userId": "x1", "password": TEST_PASSWORD, "role": "admin"},
        )
        assert resp.status_code == 400

    def test_duplicate(self, client, organizer):
        resp = client.post("/api/auth/register", json={"userId": "u1", "password": TEST_PASSWORD})
        assert resp.status_code == 409

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/register", json={"userId": "x1"})
        assert resp.status_code == 400


class TestLogin:

    def test_login_and_me(self, client, organizer):
        resp = client.post("/api/auth/login", json={"userId": "u1", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["user"]["userId"] == "u1"
        assert data["expiresAt"].endswith("Z")

        headers = {"Authorization": f"Bearer {data['token']}"}
        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["user"]["role"] == "organizer"

    def test_wrong_password(self, client, organizer):
        resp = client.post("/api/auth/login", json={"userId": "u1", "password": "Wrong123!"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid credentials"

    def test_unknown_user(self, client):
        resp = client.post("/api/auth/login", json={"userId": "ghost", "password": TEST_PASSWORD})
        assert resp.status_code == 401

    def test_inactive_user_cannot_login(self, client, organizer):
        organizer.is_active = False
        db.session.commit()
        resp = client.post("/api/auth/login", json={"userId": "u1", "password": TEST_PASSWORD})
        assert resp.status_code == 401


class TestSessions:

    def test_logout_revokes_token(self, client, organizer_headers):
        assert client.get("/api/auth/me", headers=organizer_headers).status_code == 200
        assert client.post("/api/auth/logout", headers=organizer_headers).status_code == 200
        assert client.get("/api/auth/me", headers=organizer_headers).status_code == 401

    def test_deactivated_user_token_rejected(self, client, organizer, organizer_headers):
        organizer.is_active = False
        db.session.commit()
        resp = client.get("/api/claims", headers=organizer_headers)
        assert resp.status_code == 401

    def test_malformed_header(self, client, organizer_headers):
        token = organizer_headers["Authorization"].split(" ", 1)[1]
        resp = client.get("/api/auth/me", headers={"Authorization": token})
        assert resp.status_code == 401
