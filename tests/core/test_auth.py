import pytest
from httpx import AsyncClient
from jose import jwt

from src.core.auth.jwt import create_access_token, decode_token
from src.core.auth.models import Principal, UserRole
from src.core.config import settings
from src.core.exceptions import AuthenticationError


class TestTokens:
    """Tests for access token helpers."""

    def test_create_and_decode(self):
        token = create_access_token(42, UserRole.MENTOR.value)

        payload = decode_token(token)

        assert payload["sub"] == "42"
        assert payload["role"] == "mentor"
        assert payload["type"] == "access"

    def test_expired_token(self):
        token = create_access_token(42, UserRole.ADMIN.value, expires_minutes=-1)

        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_wrong_type(self):
        token = jwt.encode(
            {"sub": "42", "role": "admin", "type": "refresh"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_wrong_signature(self):
        token = jwt.encode(
            {"sub": "42", "role": "admin", "type": "access"},
            "some-other-key",
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_principal_roles(self):
        principal = Principal(user_id=1, role="admin")

        assert principal.is_admin
        assert principal.has_role(UserRole.ADMIN, UserRole.MENTOR)
        assert not principal.has_role(UserRole.STUDENT)


class TestAuthDependencies:
    """Bearer token handling on protected endpoints."""

    async def test_missing_header(self, client: AsyncClient):
        response = await client.get("/api/v1/invoices/my")

        assert response.status_code == 401
        assert response.json()["error_code"] == "AuthenticationError"

    async def test_malformed_header(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/invoices/my", headers={"Authorization": "Token abc"}
        )
        assert response.status_code == 401

    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/invoices/my", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    async def test_unknown_role(self, client: AsyncClient):
        token = create_access_token(7, "accountant")

        response = await client.get(
            "/api/v1/invoices/my", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    async def test_wrong_role(self, client: AsyncClient, admin_headers: dict):
        response = await client.get("/api/v1/invoices/my", headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["error_code"] == "AuthorizationError"

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}
