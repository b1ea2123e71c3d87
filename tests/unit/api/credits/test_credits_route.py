import pytest

from app.config import settings
from tests.factories import seed_balance


@pytest.mark.asyncio
async def test_balance_is_created_on_first_read(client, auth_headers):
    response = await client.get("/api/v1/credits/balance", headers=auth_headers)

    assert response.status_code == 200
    payload = response.json()["payload"]
    assert payload["remaining_credits"] == settings.DEFAULT_CREDIT_GRANT
    assert payload["bonus_credits"] == settings.DEFAULT_BONUS_GRANT


@pytest.mark.asyncio
async def test_deduct_returns_remaining(client, session_factory, account, auth_headers):
    await seed_balance(session_factory, account.id, total=50)

    response = await client.post(
        "/api/v1/credits/deduct",
        json={"amount": 20, "action_type": "image_generation", "model_used": "imagen"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["payload"] == {"remaining_credits": 30, "credits_used": 20}


@pytest.mark.asyncio
async def test_deduct_insufficient_reports_balance(
    client, session_factory, account, auth_headers
):
    await seed_balance(session_factory, account.id, total=5)

    response = await client.post(
        "/api/v1/credits/deduct", json={"amount": 10}, headers=auth_headers
    )

    assert response.status_code == 402
    body = response.json()
    assert body["success"] is False
    assert body["payload"] == {"remaining": 5, "required": 10}


@pytest.mark.asyncio
async def test_deduct_rejects_non_positive_amount(client, auth_headers):
    response = await client.post(
        "/api/v1/credits/deduct", json={"amount": 0}, headers=auth_headers
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_deduct_ai_uses_bonus_pool(client, session_factory, account, auth_headers):
    await seed_balance(session_factory, account.id, total=10, bonus=2)

    ok = await client.post(
        "/api/v1/credits/deduct-ai", json={"amount": 2}, headers=auth_headers
    )
    assert ok.json()["payload"] == {"bonus_credits": 0, "credits_used": 2}

    empty = await client.post(
        "/api/v1/credits/deduct-ai", json={"amount": 1}, headers=auth_headers
    )
    assert empty.status_code == 402
    assert "AI credits" in empty.json()["message"]


@pytest.mark.asyncio
async def test_add_refund_and_history(client, session_factory, account, auth_headers):
    await seed_balance(session_factory, account.id, total=10, used=10)

    added = await client.post(
        "/api/v1/credits/add", json={"amount": 5, "description": "Top up"}, headers=auth_headers
    )
    assert added.json()["payload"]["remaining_credits"] == 5

    refunded = await client.post(
        "/api/v1/credits/refund", json={"amount": 3, "reason": "Render failed"}, headers=auth_headers
    )
    assert refunded.json()["payload"]["used_credits"] == 7
    assert refunded.json()["payload"]["remaining_credits"] == 8

    history = await client.get(
        "/api/v1/credits/history", params={"page_size": 1}, headers=auth_headers
    )
    body = history.json()
    assert body["meta"]["total_items"] == 2
    assert len(body["payload"]) == 1


@pytest.mark.asyncio
async def test_charge_generation(client, session_factory, account, auth_headers):
    await seed_balance(session_factory, account.id, total=20)

    response = await client.post(
        "/api/v1/credits/charge",
        json={"action": "text_to_image", "quality": "high"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["payload"] == {
        "action": "text_to_image",
        "credits_used": 8,
        "remaining_credits": 12,
    }


@pytest.mark.asyncio
async def test_costs_are_public(client):
    response = await client.get("/api/v1/credits/costs")

    assert response.status_code == 200
    assert response.json()["payload"]["sound_effect"]["cost"] == 1


@pytest.mark.asyncio
async def test_credits_require_authentication(client):
    response = await client.get("/api/v1/credits/balance")

    assert response.status_code == 401
