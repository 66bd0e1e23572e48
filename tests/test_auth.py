"""Tests for login sessions and account management."""

import pytest
from httpx import AsyncClient

from presence.core.security import (create_refresh_token, decode_access_token,
                                    get_password_hash)
from presence.models.user import User

from conftest import auth_headers


@pytest.fixture
async def alice(database) -> User:
    async with database.session_factory() as session:
        user = User(
            email="alice@example.com",
            hashed_password=get_password_hash("correct-horse"),
            full_name="Alice",
            role="employee",
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest.mark.asyncio
async def test_login_sets_cookies(async_client: AsyncClient, alice):
    resp = await async_client.post(
        "/api/v1/auth/login",
        data={"username": "Alice@Example.com ", "password": "correct-horse"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert decode_access_token(body["access_token"])["sub"] == str(alice.id)
    assert "access_token" in resp.cookies
    assert "refresh_token" in resp.cookies


@pytest.mark.asyncio
async def test_login_records_last_login(async_client: AsyncClient, alice):
    await async_client.post(
        "/api/v1/auth/login",
        data={"username": "alice@example.com", "password": "correct-horse"},
    )
    me = await async_client.get("/api/v1/auth/me", headers=auth_headers(alice))
    # frozen clock: 09:50 at the office, 04:20 UTC
    assert me.json()["last_login_at"].startswith("2026-10-19T04:20:00")


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient, alice):
    resp = await async_client.post(
        "/api/v1/auth/login", data={"username": "alice@example.com", "password": "nope"}
    )
    assert resp.status_code == 401
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_me_with_bearer_header(async_client: AsyncClient, alice):
    resp = await async_client.get("/api/v1/auth/me", headers=auth_headers(alice))
    assert resp.status_code == 200
    assert resp.json()["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_refresh_token_cannot_be_used_as_access(async_client: AsyncClient, alice):
    resp = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {create_refresh_token(alice.id)}"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_refresh_with_body(async_client: AsyncClient, alice):
    resp = await async_client.post(
        "/api/v1/auth/refresh", json={"refresh_token": create_refresh_token(alice.id)}
    )
    assert resp.status_code == 200
    assert resp.json()["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_refresh_rejects_garbage(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/refresh", json={"refresh_token": "junk"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Logged out"


@pytest.mark.asyncio
async def test_admin_creates_users_with_known_roles(async_client: AsyncClient, admin_headers):
    resp = await async_client.post(
        "/api/v1/auth/users",
        json={"email": "Kiosk@Example.com", "password": "kiosk-pass-1", "role": "kiosk"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["email"] == "kiosk@example.com"

    bad_role = await async_client.post(
        "/api/v1/auth/users",
        json={"email": "x@example.com", "password": "password-1", "role": "superuser"},
        headers=admin_headers,
    )
    assert bad_role.status_code == 422

    duplicate = await async_client.post(
        "/api/v1/auth/users",
        json={"email": "kiosk@example.com", "password": "kiosk-pass-1", "role": "kiosk"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 400


@pytest.mark.asyncio
async def test_non_admin_cannot_create_users(async_client: AsyncClient, alice):
    resp = await async_client.post(
        "/api/v1/auth/users",
        json={"email": "y@example.com", "password": "password-1"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_change_password(async_client: AsyncClient, alice):
    resp = await async_client.post(
        "/api/v1/auth/change-password",
        json={
            "current_password": "correct-horse",
            "new_password": "battery-staple",
            "confirm_password": "battery-staple",
        },
        headers=auth_headers(alice),
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    old = await async_client.post(
        "/api/v1/auth/login", data={"username": "alice@example.com", "password": "correct-horse"}
    )
    new = await async_client.post(
        "/api/v1/auth/login", data={"username": "alice@example.com", "password": "battery-staple"}
    )
    assert old.status_code == 401
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_change_password_needs_the_current_one(async_client: AsyncClient, alice):
    resp = await async_client.post(
        "/api/v1/auth/change-password",
        json={
            "current_password": "wrong-guess",
            "new_password": "battery-staple",
            "confirm_password": "battery-staple",
        },
        headers=auth_headers(alice),
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_change_password_confirmation_must_match(async_client: AsyncClient, alice):
    resp = await async_client.post(
        "/api/v1/auth/change-password",
        json={
            "current_password": "correct-horse",
            "new_password": "battery-staple",
            "confirm_password": "battery-stapler",
        },
        headers=auth_headers(alice),
    )
    assert resp.status_code == 422
