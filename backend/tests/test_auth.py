"""Tests for account and session endpoints."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from croptrail.auth.jwt import SESSION_EXPIRED_MESSAGE, create_access_token, create_refresh_token
from croptrail.models.profile import Profile

from conftest import TEST_PASSWORD


@pytest.mark.api
@pytest.mark.auth
@pytest.mark.asyncio
class TestRegistrationAndLogin:
    async def test_register_defaults_to_farmer(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register",
            json={"email": "new@example.com", "password": "SecurePassword123!", "full_name": "New Grower"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["role"] == "farmer"

    async def test_register_with_role(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register",
            json={"email": "haul@example.com", "password": "SecurePassword123!", "role": "transporter"},
        )

        assert response.status_code == 201
        assert response.json()["user"]["role"] == "transporter"

    async def test_register_duplicate_email(self, client: AsyncClient, farmer: Profile):
        response = await client.post(
            "/api/auth/register",
            json={"email": farmer.email, "password": "AnotherPassword123!"},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMAIL_TAKEN"

    async def test_register_rejects_unknown_role(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register",
            json={"email": "x@example.com", "password": "SecurePassword123!", "role": "admin"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_login_success(self, client: AsyncClient, vendor: Profile):
        response = await client.post(
            "/api/auth/login",
            json={"email": vendor.email, "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == vendor.id
        assert data["user"]["role"] == "vendor"

    async def test_login_wrong_password(self, client: AsyncClient, vendor: Profile):
        response = await client.post(
            "/api/auth/login",
            json={"email": vendor.email, "password": "not-the-password"},
        )

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_login_inactive_account(self, client: AsyncClient, db_session, vendor: Profile):
        vendor.is_active = False
        await db_session.flush()

        response = await client.post(
            "/api/auth/login",
            json={"email": vendor.email, "password": TEST_PASSWORD},
        )

        assert response.status_code == 403


@pytest.mark.api
@pytest.mark.auth
@pytest.mark.asyncio
class TestSession:
    async def test_missing_token_is_401(self, client: AsyncClient):
        response = await client.get("/api/batches")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_malformed_token_is_401(self, client: AsyncClient):
        response = await client.get(
            "/api/batches", headers={"Authorization": "Bearer not.a.jwt"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid or expired token"

    async def test_expired_token_asks_to_sign_in_again(self, client: AsyncClient, farmer: Profile):
        token = create_access_token(farmer.id, farmer.role.value, expires_delta=timedelta(seconds=-5))

        response = await client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == SESSION_EXPIRED_MESSAGE

    async def test_refresh_token_cannot_be_used_as_access(self, client: AsyncClient, farmer: Profile):
        token = create_refresh_token(farmer.id, farmer.role.value)

        response = await client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401

    async def test_refresh_issues_new_pair(self, client: AsyncClient, farmer: Profile):
        response = await client.post(
            "/api/auth/refresh",
            json={"refresh_token": create_refresh_token(farmer.id, farmer.role.value)},
        )

        assert response.status_code == 200
        assert response.json()["user"]["id"] == farmer.id

    async def test_refresh_rejects_access_token(self, client: AsyncClient, farmer: Profile):
        response = await client.post(
            "/api/auth/refresh",
            json={"refresh_token": create_access_token(farmer.id, farmer.role.value)},
        )

        assert response.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, farmer: Profile, auth_headers):
        headers = auth_headers(farmer)

        response = await client.post("/api/auth/logout", headers=headers)
        assert response.status_code == 204

        response = await client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token has been revoked"


@pytest.mark.api
@pytest.mark.auth
@pytest.mark.asyncio
class TestProfile:
    async def test_get_me(self, client: AsyncClient, transporter: Profile, auth_headers):
        response = await client.get("/api/auth/me", headers=auth_headers(transporter))

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == transporter.email
        assert data["role"] == "transporter"
        assert "hashed_password" not in data

    async def test_update_name_and_phone(self, client: AsyncClient, farmer: Profile, auth_headers):
        response = await client.patch(
            "/api/auth/me",
            json={"full_name": "Asha K.", "phone": "+254700000000"},
            headers=auth_headers(farmer),
        )

        assert response.status_code == 200
        assert response.json()["full_name"] == "Asha K."
        assert response.json()["phone"] == "+254700000000"

    async def test_role_cannot_be_changed(self, client: AsyncClient, farmer: Profile, auth_headers):
        response = await client.patch(
            "/api/auth/me",
            json={"role": "vendor"},
            headers=auth_headers(farmer),
        )

        assert response.status_code == 400
        assert farmer.role.value == "farmer"
