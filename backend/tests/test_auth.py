"""Tests for auth endpoints: register, login, me."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_register(client: AsyncClient, clean_db):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "NewUser@test.com", "password": "securepass123"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "newuser@test.com"
    assert data["user"]["role"] == "ATHLETE"
    assert data["user"]["timezone"] == "UTC"
    assert "access_token" in data
    assert data["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_register_coach_with_timezone(client: AsyncClient, clean_db):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "c@test.com", "password": "x", "role": "COACH", "timezone": "America/Chicago"},
    )
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["role"] == "COACH"
    assert user["timezone"] == "America/Chicago"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "coach@test.com", "password": "other"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_register_missing_password(client: AsyncClient, clean_db):
    resp = await client.post("/api/v1/auth/register", json={"email": "a@test.com", "password": ""})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_login(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "coach@test.com", "password": "password123"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "coach@test.com"
    assert "access_token" in data


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "coach@test.com", "password": "wrong"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me(client: AsyncClient, auth_headers: dict):
    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "coach@test.com"
    assert resp.json()["role"] == "COACH"


@pytest.mark.asyncio
async def test_me_unauthorized(client: AsyncClient):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
