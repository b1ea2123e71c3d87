from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import select

from app.auth.token_handler import JWTTokenHandler
from app.common.exceptions import Unauthorized
from app.config import settings
from app.models import CreditBalance, Notification
from tests.factories import create_account


@pytest.mark.asyncio
async def test_signup_creates_account_balance_and_welcome(client, session_factory):
    response = await client.post(
        "/api/v1/auth/signup",
        json={"email": "New.User@Example.com", "password": "longenough", "first_name": "Ada"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["payload"]["user"]["email"] == "new.user@example.com"
    assert body["payload"]["token"]
    assert settings.SESSION_COOKIE_NAME in response.cookies

    async with session_factory() as session:
        balance = (await session.execute(select(CreditBalance))).scalars().one()
        notification = (await session.execute(select(Notification))).scalars().one()
    assert balance.remaining_credits == settings.DEFAULT_CREDIT_GRANT
    assert "Ada" in notification.message


@pytest.mark.asyncio
async def test_signup_rejects_duplicate_email(client, account):
    response = await client.post(
        "/api/v1/auth/signup",
        json={"email": "OWNER@example.com", "password": "longenough"},
    )

    assert response.status_code == 409
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_signup_validates_password_length(client):
    response = await client.post(
        "/api/v1/auth/signup", json={"email": "short@example.com", "password": "abc"}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_then_me_with_session_cookie(client, session_factory):
    await create_account(session_factory, email="cookie@example.com", password="password123")

    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "cookie@example.com", "password": "password123"},
    )
    assert login.status_code == 200

    me = await client.get("/api/v1/auth/me")

    assert me.status_code == 200
    payload = me.json()["payload"]
    assert payload["email"] == "cookie@example.com"
    assert payload["credits"]["remaining_credits"] == settings.DEFAULT_CREDIT_GRANT


@pytest.mark.asyncio
async def test_login_with_wrong_password(client, account):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "owner@example.com", "password": "not-the-password"},
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_me_requires_authentication(client):
    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["message"] == "Not authenticated"


@pytest.mark.asyncio
async def test_me_rejects_tampered_token(client, auth_headers):
    headers = {"Authorization": auth_headers["Authorization"] + "x"}

    response = await client.get("/api/v1/auth/me", headers=headers)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_session_cookie(client, session_factory):
    await create_account(session_factory, email="bye@example.com", password="password123")
    await client.post(
        "/api/v1/auth/login", json={"email": "bye@example.com", "password": "password123"}
    )

    response = await client.post("/api/v1/auth/logout")

    assert response.status_code == 200
    assert (await client.get("/api/v1/auth/me")).status_code == 401


def test_token_handler_round_trip():
    handler = JWTTokenHandler(secret_key="unit-secret")

    token = handler.create_access_token({"sub": "user-1", "email": "a@b.c"})
    payload = handler.decode_access_token(token)

    assert payload["sub"] == "user-1"
    assert payload["type"] == "access"


def test_token_handler_rejects_expired_token():
    handler = JWTTokenHandler(secret_key="unit-secret")
    expired = jwt.encode(
        {
            "sub": "user-1",
            "type": "access",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
        },
        "unit-secret",
        algorithm=handler.ALGORITHM,
    )

    with pytest.raises(Unauthorized):
        handler.decode_access_token(expired)


def test_token_handler_rejects_token_without_subject():
    handler = JWTTokenHandler(secret_key="unit-secret")
    token = jwt.encode({"type": "access"}, "unit-secret", algorithm=handler.ALGORITHM)

    with pytest.raises(Unauthorized):
        handler.decode_access_token(token)
