from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.api.instagram import service as instagram_service
from app.api.instagram.service import InstagramConnectionService
from app.instagram.graph_client import GraphAPIError, InstagramGraphClient
from app.models import PlatformConnection
from tests.factories import seed_connection


@pytest.fixture
def graph_client():
    client = AsyncMock(spec=InstagramGraphClient)
    client.exchange_code_for_token.return_value = {"access_token": "short-token"}
    client.get_long_lived_token.return_value = {
        "access_token": "long-token",
        "expires_in": 5184000,
    }
    client.get_business_account.return_value = "ig-business-1"
    client.get_profile.return_value = {"id": "ig-business-1", "username": "creator"}
    client.get_auth_url.return_value = "https://www.facebook.com/v24.0/dialog/oauth?x=1"
    return client


async def _connections(session_factory, user_id):
    async with session_factory() as session:
        result = await session.execute(
            select(PlatformConnection).where(PlatformConnection.user_id == user_id)
        )
        return result.scalars().all()


@pytest.mark.asyncio
async def test_connect_stores_long_lived_token(session_factory, account, graph_client):
    async with session_factory() as session:
        result = await InstagramConnectionService(session, graph_client).connect(
            account, "auth-code"
        )

    assert result["connected"] is True
    assert result["username"] == "creator"
    graph_client.exchange_code_for_token.assert_awaited_once_with("auth-code")
    graph_client.get_long_lived_token.assert_awaited_once_with("short-token")

    connections = await _connections(session_factory, account.id)
    assert len(connections) == 1
    assert connections[0].access_token == "long-token"
    assert connections[0].platform_user_id == "ig-business-1"
    assert connections[0].token_expires_at is not None


@pytest.mark.asyncio
async def test_reconnect_replaces_previous_connection(session_factory, account, graph_client):
    await seed_connection(session_factory, account.id, is_active=False, access_token=None)

    async with session_factory() as session:
        await InstagramConnectionService(session, graph_client).connect(account, "code")

    connections = await _connections(session_factory, account.id)
    assert len(connections) == 1
    assert connections[0].is_active is True
    assert connections[0].access_token == "long-token"
    assert connections[0].username == "creator"


@pytest.mark.asyncio
async def test_connect_without_business_account(session_factory, account, graph_client):
    graph_client.get_business_account.return_value = None

    async with session_factory() as session:
        service = InstagramConnectionService(session, graph_client)
        with pytest.raises(HTTPException) as exc_info:
            await service.connect(account, "code")

    assert exc_info.value.status_code == 400
    assert await _connections(session_factory, account.id) == []


@pytest.mark.asyncio
async def test_callback_route_connects_account(
    client, account, auth_headers, graph_client, monkeypatch
):
    monkeypatch.setattr(instagram_service, "InstagramGraphClient", lambda: graph_client)

    response = await client.get(
        "/api/v1/instagram/callback", params={"code": "abc"}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Connected to Instagram as @creator"


@pytest.mark.asyncio
async def test_callback_route_reports_oauth_error(client, auth_headers):
    response = await client.get(
        "/api/v1/instagram/callback",
        params={"error": "access_denied", "error_description": "User denied"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "User denied"


@pytest.mark.asyncio
async def test_callback_route_surfaces_graph_errors(
    client, auth_headers, graph_client, monkeypatch
):
    graph_client.exchange_code_for_token.side_effect = GraphAPIError(
        "Invalid verification code format", details={"status_code": 400}
    )
    monkeypatch.setattr(instagram_service, "InstagramGraphClient", lambda: graph_client)

    response = await client.get(
        "/api/v1/instagram/callback", params={"code": "bad"}, headers=auth_headers
    )

    assert response.status_code == 502
    body = response.json()
    assert body["message"] == "Instagram request failed: Invalid verification code format"
    assert body["payload"] == {"status_code": 400}


@pytest.mark.asyncio
async def test_auth_url_uses_account_as_state(
    client, account, auth_headers, graph_client, monkeypatch
):
    monkeypatch.setattr(instagram_service, "InstagramGraphClient", lambda: graph_client)

    response = await client.get("/api/v1/instagram/auth-url", headers=auth_headers)

    assert response.status_code == 200
    graph_client.get_auth_url.assert_called_once_with(state=str(account.id))


@pytest.mark.asyncio
async def test_status_and_disconnect(client, session_factory, account, auth_headers):
    await seed_connection(session_factory, account.id)

    status_response = await client.get("/api/v1/instagram/status", headers=auth_headers)
    assert status_response.json()["payload"]["connected"] is True
    assert status_response.json()["payload"]["username"] == "creator"

    disconnect = await client.post("/api/v1/instagram/disconnect", headers=auth_headers)
    assert disconnect.json()["payload"] == {"disconnected": True}

    after = await client.get("/api/v1/instagram/status", headers=auth_headers)
    assert after.json()["payload"] == {"connected": False, "username": None}

    connections = await _connections(session_factory, account.id)
    assert connections[0].access_token is None
