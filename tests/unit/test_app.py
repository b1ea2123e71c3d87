import pytest


@pytest.mark.asyncio
async def test_root_reports_service_status(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/api/v1/health-check")

    assert response.json() == {"message": "I am healthy"}


@pytest.mark.asyncio
async def test_validation_errors_use_common_envelope(client, auth_headers):
    response = await client.post(
        "/api/v1/posts/schedule", json={"post_id": "not-a-uuid"}, headers=auth_headers
    )

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Unprocessable Entity"


@pytest.mark.asyncio
async def test_unknown_route_uses_common_envelope(client):
    response = await client.get("/api/v1/does-not-exist")

    assert response.status_code == 404
    assert response.json()["success"] is False
