"""
Tests for authentication endpoints: registration, login, logout and session cookies.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient, session_factory):
    """Successful registration returns user data."""
    response = await client.post("/api/v1/auth/register", json={
        "name": "New User",
        "email": "New@Example.com",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["role"] == "user"
    assert "hashedPassword" not in data["user"]  # Never expose password hash
    assert "password" not in data["user"]


@pytest.mark.asyncio
async def test_register_admin_email_gets_admin_role(client: AsyncClient, session_factory):
    response = await client.post("/api/v1/auth/register", json={
        "name": "Boss",
        "email": "admin@example.com",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "admin"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, test_user):
    """Duplicate email returns 409, whatever its case."""
    response = await client.post("/api/v1/auth/register", json={
        "name": "Someone Else",
        "email": "TEST@example.com",
        "password": "securepassword123",
    })
    assert response.status_code == 409
    assert response.json()["message"] == "Email already registered"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"name": "Weak", "email": "weak@example.com", "password": "short"},
    {"name": "Bad", "email": "not-an-email", "password": "securepassword123"},
    {"email": "noname@example.com", "password": "securepassword123"},
])
async def test_register_invalid_input(client: AsyncClient, session_factory, body):
    """Validation errors use the 400 envelope."""
    response = await client.post("/api/v1/auth/register", json=body)
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, test_user):
    """Valid credentials return a JWT and set the session cookie."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["token"]
    assert data["user"]["id"] == test_user.id
    assert "httponly" in response.headers["set-cookie"].lower()
    assert client.cookies.get("token") == data["token"]


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, test_user):
    """Wrong password returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient, session_factory):
    """Unknown email gets the same answer as a wrong password."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_me_with_bearer_token(client: AsyncClient, test_user, auth_headers):
    response = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "test@example.com"
    assert response.json()["name"] == "Test User"


@pytest.mark.asyncio
async def test_cookie_session_and_logout(client: AsyncClient, test_user):
    await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "password": "testpassword123",
    })

    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 200
    assert response.json()["id"] == test_user.id

    response = await client.post("/api/v1/auth/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_protected_route_without_token(client: AsyncClient, session_factory):
    """Accessing protected route without token returns 401."""
    response = await client.get("/api/v1/bookings/my-bookings")
    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized, No token provided"


@pytest.mark.asyncio
async def test_protected_route_with_invalid_token(client: AsyncClient, session_factory):
    """Invalid JWT returns 401."""
    response = await client.get(
        "/api/v1/bookings/my-bookings",
        headers={"Authorization": "Bearer invalid.token.here"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_for_deleted_user(client: AsyncClient, session_factory):
    """A valid signature is not enough: the user must still exist."""
    from eventflow.core.security import create_access_token

    token = create_access_token(data={"sub": "4242"})
    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_route_requires_admin(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert response.status_code == 403
