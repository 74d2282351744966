import pytest
from httpx import AsyncClient

from traincrm.models.notification import Notification


@pytest.mark.asyncio
async def test_root_and_health(client: AsyncClient):
    root = await client.get("/")
    assert root.status_code == 200
    assert root.json()["docs"] == "/docs"

    health = await client.get("/health")
    assert health.json()["status"] == "healthy"

    live = await client.get("/api/v1/health/live")
    assert live.status_code == 200
    assert live.json()["status"] == "alive"


@pytest.mark.asyncio
async def test_security_headers_and_request_id(client: AsyncClient):
    response = await client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_notifications_are_private(client: AsyncClient, db_session, test_user, instructor_user,
                                         auth_headers, instructor_auth_headers):
    mine = Notification(user_id=str(test_user.id), title="Enrolled", message="You are enrolled", category="enrollment")
    theirs = Notification(user_id=str(instructor_user.id), title="Other", message="Not yours")
    db_session.add_all([mine, theirs])
    await db_session.commit()

    listed = await client.get("/api/v1/notifications", headers=auth_headers)
    assert listed.status_code == 200
    assert listed.json()["unread_count"] == 1
    assert [n["title"] for n in listed.json()["notifications"]] == ["Enrolled"]

    read = await client.post(f"/api/v1/notifications/{mine.id}/read", headers=auth_headers)
    assert read.status_code == 200
    assert read.json()["is_read"] is True

    forbidden = await client.post(f"/api/v1/notifications/{theirs.id}/read", headers=auth_headers)
    assert forbidden.status_code == 404

    unread = await client.get("/api/v1/notifications?unread_only=true", headers=auth_headers)
    assert unread.json()["notifications"] == []


@pytest.mark.asyncio
async def test_navigation_for_role(client: AsyncClient, auth_headers, admin_auth_headers):
    mine = await client.get("/api/v1/navigation/me", headers=auth_headers)
    assert mine.status_code == 200
    assert mine.json()["role"] == "IN"
    assert mine.json()["source"] == "default"
    assert "CRM" not in mine.json()["config"]

    admin = await client.get("/api/v1/navigation/AD", headers=admin_auth_headers)
    assert "CRM" in admin.json()["config"]


@pytest.mark.asyncio
async def test_settings_require_admin(client: AsyncClient, provider_auth_headers, admin_auth_headers):
    denied = await client.get("/api/v1/settings", headers=provider_auth_headers)
    assert denied.status_code == 403

    allowed = await client.get("/api/v1/settings", headers=admin_auth_headers)
    assert allowed.status_code == 200
    assert len(allowed.json()) > 0
