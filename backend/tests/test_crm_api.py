import pytest
from httpx import AsyncClient
from unittest.mock import AsyncMock, patch


@pytest.mark.asyncio
@pytest.mark.parametrize("path", [
    "/api/v1/crm/leads",
    "/api/v1/crm/opportunities",
    "/api/v1/crm/dashboard/stats",
    "/api/v1/crm/campaigns",
])
async def test_crm_is_admin_only(client: AsyncClient, provider_auth_headers, path):
    response = await client.get(path, headers=provider_auth_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_lead_to_won_deal(client: AsyncClient, admin_auth_headers):
    lead = await client.post(
        "/api/v1/crm/leads",
        headers=admin_auth_headers,
        json={
            "first_name": "Robin",
            "last_name": "Hale",
            "email": "robin@hale-transit.example.com",
            "company_name": "Hale Transit",
            "lead_type": "corporate",
            "lead_source": "referral",
            "estimated_participant_count": 60,
        },
    )
    assert lead.status_code == 201
    assert lead.json()["lead_score"] == 20 + 15 + 20 + 5

    converted = await client.post(
        f"/api/v1/crm/leads/{lead.json()['id']}/convert",
        headers=admin_auth_headers,
        json={"create_account": True, "create_opportunity": True, "opportunity_value": 18000},
    )
    assert converted.status_code == 200
    opportunity_id = converted.json()["opportunity_id"]

    stage = await client.post(
        f"/api/v1/crm/opportunities/{opportunity_id}/stage",
        headers=admin_auth_headers,
        json={"stage": "negotiation"},
    )
    assert stage.json()["probability"] == 75

    pipeline = await client.get("/api/v1/crm/opportunities/pipeline", headers=admin_auth_headers)
    assert pipeline.json()["weighted_value"] == 13500

    closed = await client.post(
        f"/api/v1/crm/opportunities/{opportunity_id}/close",
        headers=admin_auth_headers,
        json={"outcome": "won", "notes": "Signed for two cohorts"},
    )
    assert closed.json()["status"] == "closed_won"

    metrics = await client.get("/api/v1/crm/revenue/metrics", headers=admin_auth_headers)
    assert metrics.json()["total_revenue"] == 18000

    stats = await client.get("/api/v1/crm/dashboard/stats", headers=admin_auth_headers)
    assert stats.json()["conversion_rate"] == 100.0
    assert stats.json()["win_rate"] == 100.0


@pytest.mark.asyncio
async def test_converting_twice_conflicts(client: AsyncClient, admin_auth_headers):
    lead = await client.post(
        "/api/v1/crm/leads",
        headers=admin_auth_headers,
        json={"first_name": "Sam", "last_name": "Ortiz"},
    )
    url = f"/api/v1/crm/leads/{lead.json()['id']}/convert"

    assert (await client.post(url, headers=admin_auth_headers, json={})).status_code == 200
    second = await client.post(url, headers=admin_auth_headers, json={})

    assert second.status_code == 409
    assert second.json()["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_campaign_send_and_track(client: AsyncClient, admin_auth_headers):
    await client.post(
        "/api/v1/crm/leads",
        headers=admin_auth_headers,
        json={"first_name": "Tess", "last_name": "Quinn", "email": "tess@example.com", "province": "Manitoba"},
    )
    campaign = await client.post(
        "/api/v1/crm/campaigns",
        headers=admin_auth_headers,
        json={
            "campaign_name": "Manitoba refresher",
            "campaign_type": "educational",
            "subject_line": "Refresher courses",
            "email_content": "<p>Hello {{name}}</p>",
            "geographic_targeting": ["Manitoba"],
        },
    )
    assert campaign.status_code == 201
    campaign_id = campaign.json()["id"]

    with patch("traincrm.services.campaign_service.email_service.send_email",
               new=AsyncMock(return_value=True)):
        sent = await client.post(f"/api/v1/crm/campaigns/{campaign_id}/send", headers=admin_auth_headers)
    assert sent.status_code == 200
    assert sent.json()["delivered"] == 1

    tracked = await client.post(
        f"/api/v1/crm/campaigns/{campaign_id}/track",
        headers=admin_auth_headers,
        json={"event_type": "open", "email": "tess@example.com"},
    )
    assert tracked.status_code == 200
    assert tracked.json()["open_rate"] == 100.0


@pytest.mark.asyncio
async def test_search_needs_two_characters(client: AsyncClient, admin_auth_headers):
    response = await client.get("/api/v1/crm/dashboard/search?q=a", headers=admin_auth_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_patch_lead_rejects_null_source(client: AsyncClient, admin_auth_headers):
    lead = await client.post(
        "/api/v1/crm/leads",
        headers=admin_auth_headers,
        json={"first_name": "Ada", "last_name": "Brook", "lead_source": "website"},
    )
    url = f"/api/v1/crm/leads/{lead.json()['id']}"

    for body in ({"lead_source": None}, {"lead_type": None}, {"first_name": None}):
        response = await client.patch(url, headers=admin_auth_headers, json=body)
        assert response.status_code == 422

    cleared = await client.patch(url, headers=admin_auth_headers, json={"notes": None, "city": "Regina"})
    assert cleared.status_code == 200
    assert cleared.json()["lead_source"] == "website"


@pytest.mark.asyncio
@pytest.mark.parametrize("path,key,body", [
    ("/api/v1/crm/leads", "leads", lambda i: {"first_name": f"Lead{i}", "last_name": "Paging"}),
    ("/api/v1/crm/contacts", "contacts", lambda i: {"first_name": f"Contact{i}", "last_name": "Paging"}),
    ("/api/v1/crm/opportunities", "opportunities", lambda i: {"opportunity_name": f"Deal {i}"}),
])
async def test_list_pages_report_has_more(client: AsyncClient, admin_auth_headers, path, key, body):
    for i in range(3):
        created = await client.post(path, headers=admin_auth_headers, json=body(i))
        assert created.status_code == 201

    first = (await client.get(f"{path}?page=1&limit=2", headers=admin_auth_headers)).json()
    assert first["total"] == 3
    assert len(first[key]) == 2
    assert first["has_more"] is True

    last = (await client.get(f"{path}?page=2&limit=2", headers=admin_auth_headers)).json()
    assert len(last[key]) == 1
    assert last["has_more"] is False

    exact = (await client.get(f"{path}?page=1&limit=3", headers=admin_auth_headers)).json()
    assert exact["has_more"] is False
