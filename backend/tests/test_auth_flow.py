"""
Integration tests for the authentication flow.

Verifies Login -> Me -> Refresh -> Logout and password changes.
"""

from datetime import timedelta

import pytest
from backend.app.core.config import settings
from backend.app.core.jwt import create_access_token, create_refresh_token

API = settings.api_prefix


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_login_returns_tokens_and_user(client, sales_user):
    response = await client.post(f"{API}/auth/login", json={
        "email": "SALES@portal.com",
        "password": "sales123",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "sales@portal.com"
    assert data["user"]["role"] == "sales_agent"
    assert "hashed_password" not in data["user"]


@pytest.mark.asyncio
async def test_login_stores_refresh_token_and_last_login(client, db_session, sales_user):
    response = await client.post(f"{API}/auth/login", json={"email": "sales@portal.com", "password": "sales123"})
    assert response.status_code == 200

    await db_session.refresh(sales_user)
    assert sales_user.refresh_token == response.json()["data"]["refresh_token"]
    assert sales_user.last_login is not None


@pytest.mark.asyncio
async def test_login_missing_fields(client):
    response = await client.post(f"{API}/auth/login", json={"email": "sales@portal.com"})
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": "Please provide email and password",
        "code": "VALIDATION_ERROR",
    }


@pytest.mark.asyncio
async def test_login_invalid_credentials(client, sales_user):
    wrong_password = await client.post(f"{API}/auth/login", json={"email": "sales@portal.com", "password": "nope"})
    unknown_email = await client.post(f"{API}/auth/login", json={"email": "ghost@portal.com", "password": "sales123"})

    for response in (wrong_password, unknown_email):
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_deactivated_account(client, db_session, sales_user):
    sales_user.is_active = False
    await db_session.commit()

    response = await client.post(f"{API}/auth/login", json={"email": "sales@portal.com", "password": "sales123"})
    assert response.status_code == 401
    assert response.json()["message"] == "Account is deactivated. Please contact administrator."


@pytest.mark.asyncio
async def test_me_returns_current_user(client, ops_token):
    response = await client.get(f"{API}/auth/me", headers=auth_header(ops_token))
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "operations"


@pytest.mark.asyncio
async def test_missing_token_is_rejected(client):
    response = await client.get(f"{API}/auth/me")
    assert response.status_code == 401
    assert response.json()["message"] == "Access denied. No token provided."


@pytest.mark.asyncio
async def test_garbage_token_is_rejected(client):
    response = await client.get(f"{API}/auth/me", headers=auth_header("not-a-jwt"))
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_expired_access_token_reports_token_expired(client, sales_user):
    token = create_access_token(
        {"sub": sales_user.email, "user_id": sales_user.id, "role": "sales_agent"},
        expires_delta=timedelta(seconds=-10),
    )
    response = await client.get(f"{API}/drivers", headers=auth_header(token))
    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


@pytest.mark.asyncio
async def test_refresh_token_cannot_be_used_as_access_token(client, sales_user):
    refresh_token = create_refresh_token({"user_id": sales_user.id})
    response = await client.get(f"{API}/auth/me", headers=auth_header(refresh_token))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_issues_new_access_token(client, sales_user):
    tokens = (await client.post(f"{API}/auth/login", json={
        "email": "sales@portal.com", "password": "sales123",
    })).json()["data"]

    response = await client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    new_token = response.json()["data"]["access_token"]

    me = await client.get(f"{API}/auth/me", headers=auth_header(new_token))
    assert me.status_code == 200


@pytest.mark.asyncio
async def test_refresh_requires_token(client):
    response = await client.post(f"{API}/auth/refresh", json={})
    assert response.status_code == 400
    assert response.json()["message"] == "Refresh token is required"


@pytest.mark.asyncio
async def test_refresh_rejects_token_not_stored_on_user(client, sales_user):
    stale = create_refresh_token({"user_id": sales_user.id}, expires_delta=timedelta(days=1))
    response = await client.post(f"{API}/auth/refresh", json={"refresh_token": stale})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid refresh token"


@pytest.mark.asyncio
async def test_refresh_expired_token(client, sales_user):
    expired = create_refresh_token({"user_id": sales_user.id}, expires_delta=timedelta(seconds=-10))
    response = await client.post(f"{API}/auth/refresh", json={"refresh_token": expired})
    assert response.status_code == 401
    assert response.json()["message"] == "Refresh token expired. Please login again."


@pytest.mark.asyncio
async def test_logout_revokes_access_token_and_clears_refresh(client, db_session, sales_user):
    tokens = (await client.post(f"{API}/auth/login", json={
        "email": "sales@portal.com", "password": "sales123",
    })).json()["data"]

    response = await client.post(f"{API}/auth/logout", headers=auth_header(tokens["access_token"]))
    assert response.status_code == 200
    assert response.json()["message"] == "Logged out successfully"

    me = await client.get(f"{API}/auth/me", headers=auth_header(tokens["access_token"]))
    assert me.status_code == 401
    assert me.json()["code"] == "TOKEN_REVOKED"

    refresh = await client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refresh.status_code == 401

    await db_session.refresh(sales_user)
    assert sales_user.refresh_token is None


@pytest.mark.asyncio
async def test_change_password(client, sales_token):
    response = await client.put(
        f"{API}/auth/password",
        json={"current_password": "sales123", "new_password": "newsecret"},
        headers=auth_header(sales_token),
    )
    assert response.status_code == 200

    old_login = await client.post(f"{API}/auth/login", json={"email": "sales@portal.com", "password": "sales123"})
    assert old_login.status_code == 401
    new_login = await client.post(f"{API}/auth/login", json={"email": "sales@portal.com", "password": "newsecret"})
    assert new_login.status_code == 200


@pytest.mark.asyncio
async def test_change_password_validation(client, sales_token):
    too_short = await client.put(
        f"{API}/auth/password",
        json={"current_password": "sales123", "new_password": "abc"},
        headers=auth_header(sales_token),
    )
    assert too_short.status_code == 400
    assert too_short.json()["message"] == "New password must be at least 6 characters"

    wrong_current = await client.put(
        f"{API}/auth/password",
        json={"current_password": "wrong", "new_password": "newsecret"},
        headers=auth_header(sales_token),
    )
    assert wrong_current.status_code == 401
    assert wrong_current.json()["message"] == "Current password is incorrect"
