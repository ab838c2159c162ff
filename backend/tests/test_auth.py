"""Tests for staff authentication endpoints."""

import pytest
from httpx import AsyncClient

from app.models.staff_user import StaffUser


@pytest.mark.auth
@pytest.mark.asyncio
class TestAuthEndpoints:
    """Staff login, account creation and profile."""

    async def test_login_success(self, client: AsyncClient, admin_user: StaffUser):
        response = await client.post(
            "/api/auth/login",
            json={"email": "Admin@TriGuardRoofing.com", "password": "testpassword123"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == admin_user.email
        assert data["user"]["role"] == "admin"

    async def test_login_wrong_password(self, client: AsyncClient, admin_user: StaffUser):
        response = await client.post(
            "/api/auth/login",
            json={"email": admin_user.email, "password": "wrongpassword"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid credentials"

    async def test_login_deactivated(self, client: AsyncClient, admin_user: StaffUser, db_session):
        admin_user.is_active = False
        await db_session.commit()

        response = await client.post(
            "/api/auth/login",
            json={"email": admin_user.email, "password": "testpassword123"},
        )
        assert response.status_code == 403

    async def test_get_current_user(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["email"] == "admin@triguardroofing.com"

    async def test_get_current_user_unauthorized(self, client: AsyncClient):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401

    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(
            "/api/auth/me", headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401


@pytest.mark.auth
@pytest.mark.asyncio
class TestStaffSignup:
    """Only admins create staff accounts."""

    async def test_admin_creates_recruiter(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/auth/signup",
            headers=auth_headers,
            json={
                "email": "New.Recruiter@triguardroofing.com",
                "password": "SecurePassword123!",
                "full_name": "New Recruiter",
                "role": "recruiter",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new.recruiter@triguardroofing.com"
        assert data["role"] == "recruiter"
        assert data["must_change_password"] is True

        login = await client.post(
            "/api/auth/login",
            json={"email": "new.recruiter@triguardroofing.com", "password": "SecurePassword123!"},
        )
        assert login.status_code == 200

    async def test_duplicate_email(self, client: AsyncClient, auth_headers: dict, admin_user):
        response = await client.post(
            "/api/auth/signup",
            headers=auth_headers,
            json={
                "email": admin_user.email,
                "password": "AnotherPassword123!",
                "full_name": "Another Admin",
                "role": "admin",
            },
        )

        assert response.status_code == 400
        assert "already registered" in response.json()["error"]["message"].lower()

    async def test_invalid_role(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/auth/signup",
            headers=auth_headers,
            json={
                "email": "someone@triguardroofing.com",
                "password": "SecurePassword123!",
                "full_name": "Someone",
                "role": "superuser",
            },
        )
        assert response.status_code == 400

    async def test_recruiter_cannot_create_accounts(
        self, client: AsyncClient, recruiter_headers: dict,
    ):
        response = await client.post(
            "/api/auth/signup",
            headers=recruiter_headers,
            json={
                "email": "someone@triguardroofing.com",
                "password": "SecurePassword123!",
                "full_name": "Someone",
                "role": "admin",
            },
        )
        assert response.status_code == 403
