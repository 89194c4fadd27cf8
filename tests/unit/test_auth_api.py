"""Unit tests for the auth endpoints."""

import hashlib

import pytest
from fastapi.testclient import TestClient

from preplate.core.tokens import AccountKind, SessionTokenService
from tests.factories import (
    auth,
    login,
    place_order,
    register,
    set_password_hash,
    stored_password_hash,
)


@pytest.mark.unit
class TestRegister:
    """Test suite for POST /api/auth/register."""

    def test_register_user(self, client: TestClient) -> None:
        response = register(client, "user", "a@x.com")

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "user"
        assert data["token"]
        assert data["account"]["email"] == "a@x.com"
        assert "password_hash" not in data["account"]

    def test_register_sets_http_only_cookie(self, client: TestClient) -> None:
        response = register(client, "user", "a@x.com")
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("token=")
        assert "HttpOnly" in cookie
        assert "samesite=lax" in cookie.lower()

    def test_register_restaurant_with_details(self, client: TestClient) -> None:
        response = register(
            client, "restaurant", "r@x.com", name="Trattoria", description="Fresh pasta", cuisine="Italian"
        )

        assert response.status_code == 201
        account = response.json()["account"]
        assert account["cuisine"] == "Italian"
        assert account["is_open"] is True

    def test_email_is_normalized(self, client: TestClient) -> None:
        response = register(client, "user", "  A@X.COM ")
        assert response.json()["account"]["email"] == "a@x.com"

    def test_duplicate_email_same_kind(self, client: TestClient) -> None:
        register(client, "user", "a@x.com")
        response = register(client, "user", "a@x.com")

        assert response.status_code == 409
        assert response.json() == {"error": "An account with this email already exists"}

    def test_duplicate_email_across_kinds(self, client: TestClient) -> None:
        assert register(client, "user", "a@x.com").status_code == 201
        response = register(client, "restaurant", "a@x.com")
        assert response.status_code == 409

    def test_invalid_email(self, client: TestClient) -> None:
        response = register(client, "user", "not-an-email")
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email format"

    def test_short_password(self, client: TestClient) -> None:
        response = register(client, "user", "a@x.com", password="12345")
        assert response.status_code == 400
        assert "at least 6" in response.json()["error"]

    def test_invalid_phone(self, client: TestClient) -> None:
        response = register(client, "user", "a@x.com", phone="call me")
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid phone number format"

    def test_missing_field_is_400(self, client: TestClient) -> None:
        response = client.post("/api/auth/register", json={"type": "user", "email": "a@x.com"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_unknown_account_type(self, client: TestClient) -> None:
        response = register(client, "admin", "a@x.com")
        assert response.status_code == 400


@pytest.mark.unit
class TestLogin:
    """Test suite for POST /api/auth/login."""

    def test_login_scenario(self, client: TestClient, restaurant: dict) -> None:
        """Register, log in, reject a wrong password, then enforce order ownership."""
        assert register(client, "user", "a@x.com", password="secret1").status_code == 201

        token = login(client, "user", "a@x.com", "secret1")
        identity = SessionTokenService(secret="test-signing-secret").verify(token)
        assert identity.kind is AccountKind.USER
        assert identity.email == "a@x.com"

        wrong = client.post("/api/auth/login", json={"type": "user", "email": "a@x.com", "password": "nope12"})
        assert wrong.status_code == 401
        assert wrong.json() == {"error": "Invalid credentials"}

        assert register(client, "user", "b@x.com").status_code == 201
        other_token = login(client, "user", "b@x.com")

        own = place_order(client, token, restaurant["id"], [(restaurant["items"][0], 1)]).json()["order"]
        other = place_order(client, other_token, restaurant["id"], [(restaurant["items"][0], 1)]).json()["order"]

        assert client.get(f"/api/orders/{own['id']}", headers=auth(token)).status_code == 200
        forbidden = client.get(f"/api/orders/{other['id']}", headers=auth(token))
        assert forbidden.status_code == 403

    def test_login_is_per_kind(self, client: TestClient) -> None:
        register(client, "user", "a@x.com")
        response = client.post(
            "/api/auth/login", json={"type": "restaurant", "email": "a@x.com", "password": "secret1"}
        )
        assert response.status_code == 401

    def test_unknown_email(self, client: TestClient) -> None:
        response = client.post("/api/auth/login", json={"type": "user", "email": "ghost@x.com", "password": "secret1"})
        assert response.status_code == 401

    def test_email_case_does_not_matter(self, client: TestClient) -> None:
        register(client, "user", "a@x.com")
        assert login(client, "user", "A@X.com")

    def test_long_password_must_match_in_full(self, client: TestClient) -> None:
        password = "a" * 72 + "X" * 28
        assert register(client, "user", "l@x.com", password=password).status_code == 201

        response = client.post(
            "/api/auth/login", json={"type": "user", "email": "l@x.com", "password": "a" * 72 + "Z" * 28}
        )
        assert response.status_code == 401
        assert login(client, "user", "l@x.com", password)

    def test_legacy_hash_is_upgraded_on_login(self, client: TestClient) -> None:
        register(client, "user", "a@x.com")
        set_password_hash("a@x.com", hashlib.sha256(b"secret1").hexdigest())

        login(client, "user", "a@x.com", "secret1")

        assert stored_password_hash("a@x.com").startswith("$2")
        assert login(client, "user", "a@x.com", "secret1")


@pytest.mark.unit
class TestSession:
    """Test suite for /api/auth/me, logout and change-password."""

    def test_me_returns_identity(self, client: TestClient, user_token: str) -> None:
        response = client.get("/api/auth/me", headers=auth(user_token))

        assert response.status_code == 200
        data = response.json()
        assert data["identity"]["role"] == "USER"
        assert data["identity"]["type"] == "user"
        assert data["account"]["email"] == "a@x.com"

    def test_me_without_token(self, client: TestClient) -> None:
        client.cookies.clear()
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_me_with_garbage_token(self, client: TestClient) -> None:
        client.cookies.clear()
        response = client.get("/api/auth/me", headers=auth("garbage"))
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_logout_clears_cookie(self, client: TestClient) -> None:
        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("token=")
        assert "Max-Age=0" in cookie

    def test_change_password(self, client: TestClient, user_token: str) -> None:
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "secret1", "new_password": "newpass1", "confirm_password": "newpass1"},
            headers=auth(user_token),
        )
        assert response.status_code == 200
        assert login(client, "user", "a@x.com", "newpass1")

    def test_change_password_wrong_current(self, client: TestClient, user_token: str) -> None:
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "wrong1", "new_password": "newpass1", "confirm_password": "newpass1"},
            headers=auth(user_token),
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Current password is incorrect"}

    def test_change_password_mismatch(self, client: TestClient, user_token: str) -> None:
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "secret1", "new_password": "newpass1", "confirm_password": "newpass2"},
            headers=auth(user_token),
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Passwords don't match"}
