"""
Test the HTTP API end to end against a SQLite database.
"""

import httpx
import pytest

from influencer_platform.api.dependencies import get_orchestrator, get_scheduler
from influencer_platform.api.main import create_app
from influencer_platform.models.content_link import Platform
from influencer_platform.models.user import UserRole
from influencer_platform.scheduler import view_tracking_scheduler
from influencer_platform.scheduler.view_tracking_scheduler import ViewTrackingScheduler
from influencer_platform.services.view_tracking import ViewTrackingOrchestrator


TIKTOK_A = "https://www.tiktok.com/@creator/video/7301000000000000001"
TIKTOK_B = "https://www.tiktok.com/@creator/video/7301000000000000002"
INSTAGRAM_A = "https://www.instagram.com/p/CxYz123/"
PREFIX = "/api/v1"


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {user_id}"}


@pytest.fixture
def orchestrator(fetchers) -> ViewTrackingOrchestrator:
    return ViewTrackingOrchestrator(fetchers=fetchers)


@pytest.fixture
def scheduler(orchestrator, monkeypatch) -> ViewTrackingScheduler:
    scheduler = ViewTrackingScheduler(orchestrator=orchestrator, enabled=False)
    monkeypatch.setattr(view_tracking_scheduler, "_view_tracking_scheduler", scheduler)
    return scheduler


@pytest.fixture
async def client(database, scheduler, orchestrator):
    app = create_app()
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.mark.asyncio
async def test_health_and_root(client):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["services"] == {"database": "healthy", "scheduler": "stopped"}

    root = await client.get("/")
    assert root.json()["success"] is True


@pytest.mark.asyncio
async def test_apply_approve_and_earn(client, seed, tiktok_fetcher):
    campaign = await seed.campaign(cpm_rate=5.0)
    influencer = await seed.user()

    created = await client.post(
        f"{PREFIX}/applications",
        json={
            "campaign_id": campaign.id,
            "message": "Let's work together",
            "content_links": [
                {"platform": "tiktok", "content_url": TIKTOK_A},
                {"platform": "tiktok", "content_url": TIKTOK_B},
            ],
        },
        headers=auth(influencer),
    )
    assert created.status_code == 201
    application = created.json()["data"]
    assert application["status"] == "pending"
    assert len(application["content_links"]) == 2
    links = {link["content_url"]: link["id"] for link in application["content_links"]}

    approved = await client.post(
        f"{PREFIX}/applications/{application['id']}/transition",
        json={"status": "approved", "selected_link_ids": [links[TIKTOK_A]]},
        headers=auth(campaign.brand_id),
    )
    assert approved.status_code == 200
    selected = {link["id"]: link["is_selected"] for link in approved.json()["data"]["content_links"]}
    assert selected == {links[TIKTOK_A]: True, links[TIKTOK_B]: False}

    tiktok_fetcher.answers = {TIKTOK_A: 4200, TIKTOK_B: 100_000}
    refreshed = await client.post(
        f"{PREFIX}/view-tracking/applications/{application['id']}/refresh",
        headers=auth(influencer),
    )
    assert refreshed.status_code == 200
    assert refreshed.json()["data"]["updated"] == 1
    assert refreshed.json()["data"]["aggregate_views"] == 4200

    earnings = await client.get(
        f"{PREFIX}/earnings/applications/{application['id']}",
        headers=auth(influencer),
    )
    assert earnings.status_code == 200
    assert earnings.json()["data"]["total_views"] == 4200
    assert earnings.json()["data"]["earnings"] == pytest.approx(21.0)

    tracking = await client.get(
        f"{PREFIX}/view-tracking/campaigns/{campaign.id}",
        headers=auth(campaign.brand_id),
    )
    assert tracking.status_code == 200
    assert tracking.json()["data"][0]["views_tracked"] == 4200


@pytest.mark.asyncio
async def test_error_envelope_status_codes(client, seed):
    campaign = await seed.campaign()
    influencer = await seed.user()
    stranger = await seed.user()
    created = await seed.application(campaign, influencer, links=[(Platform.TIKTOK, TIKTOK_A)])
    application_id = created.application.id

    unauthenticated = await client.get(f"{PREFIX}/applications/{application_id}")
    assert unauthenticated.status_code == 401
    assert unauthenticated.json()["error_kind"] == "unauthenticated"

    forbidden = await client.get(f"{PREFIX}/applications/{application_id}", headers=auth(stranger))
    assert forbidden.status_code == 403

    missing = await client.get(f"{PREFIX}/applications/missing", headers=auth(influencer))
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "APPLICATION_NOT_FOUND"

    duplicate = await client.post(
        f"{PREFIX}/applications",
        json={"campaign_id": campaign.id},
        headers=auth(influencer),
    )
    assert duplicate.status_code == 409
    body = duplicate.json()
    assert body["success"] is False
    assert body["error_code"] == "DUPLICATE_APPLICATION"

    bad_link = await client.post(
        f"{PREFIX}/applications",
        json={
            "campaign_id": campaign.id,
            "content_links": [{"platform": "tiktok", "content_url": "https://www.youtube.com/watch?v=abc"}],
        },
        headers=auth(stranger),
    )
    assert bad_link.status_code == 422
    assert bad_link.json()["error_code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_withdraw_and_list(client, seed):
    campaign = await seed.campaign()
    influencer = await seed.user()
    created = await seed.application(campaign, influencer, links=[(Platform.TIKTOK, TIKTOK_A)])

    withdrawn = await client.post(
        f"{PREFIX}/applications/{created.application.id}/transition",
        json={"status": "withdrawn"},
        headers=auth(influencer),
    )
    assert withdrawn.status_code == 200
    assert withdrawn.json()["data"]["withdrawn_at"] is not None

    again = await client.post(
        f"{PREFIX}/applications/{created.application.id}/transition",
        json={"status": "approved"},
        headers=auth(campaign.brand_id),
    )
    assert again.status_code == 409

    visible = await client.get(f"{PREFIX}/applications", headers=auth(influencer))
    assert visible.json()["data"] == []

    everything = await client.get(
        f"{PREFIX}/applications",
        params={"include_withdrawn": "true"},
        headers=auth(influencer),
    )
    assert [item["id"] for item in everything.json()["data"]] == [created.application.id]


@pytest.mark.asyncio
async def test_batch_requires_admin(client, seed, tiktok_fetcher):
    campaign = await seed.campaign()
    await seed.approved_application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)])
    admin = await seed.user(UserRole.ADMIN)
    tiktok_fetcher.answers = {TIKTOK_A: 50}

    denied = await client.post(f"{PREFIX}/view-tracking/batch", json={}, headers=auth(campaign.brand_id))
    assert denied.status_code == 403
    assert denied.json()["error_code"] == "ADMIN_REQUIRED"

    response = await client.post(
        f"{PREFIX}/view-tracking/batch",
        json={"campaign_id": campaign.id},
        headers=auth(admin),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_applications"] == 1
    assert data["links_updated"] == 1
    assert data["timed_out"] is False


@pytest.mark.asyncio
async def test_record_views_and_filter_tracking(client, seed):
    campaign = await seed.campaign(cpm_rate=5.0)
    first = await seed.approved_application(campaign, links=[(Platform.INSTAGRAM, INSTAGRAM_A)])
    second = await seed.approved_application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)])

    denied = await client.post(
        f"{PREFIX}/view-tracking/links/{first.content_links[0].id}/views",
        json={"view_count": 4200},
        headers=auth(first.application.influencer_id),
    )
    assert denied.status_code == 403

    invalid = await client.post(
        f"{PREFIX}/view-tracking/links/{first.content_links[0].id}/views",
        json={"view_count": -1},
        headers=auth(campaign.brand_id),
    )
    assert invalid.status_code == 422

    recorded = await client.post(
        f"{PREFIX}/view-tracking/links/{first.content_links[0].id}/views",
        json={"view_count": 4200},
        headers=auth(campaign.brand_id),
    )
    assert recorded.status_code == 200
    data = recorded.json()["data"]
    assert data["delta"] == 4200
    assert data["tracking"]["instagram_views"] == 4200
    assert data["tracking"]["payout_calculated"] == pytest.approx(21.0)

    await client.post(
        f"{PREFIX}/view-tracking/links/{second.content_links[0].id}/views",
        json={"view_count": 800},
        headers=auth(campaign.brand_id),
    )

    everyone = await client.get(f"{PREFIX}/view-tracking/campaigns/{campaign.id}", headers=auth(campaign.brand_id))
    assert [row["views_tracked"] for row in everyone.json()["data"]] == [4200, 800]

    filtered = await client.get(
        f"{PREFIX}/view-tracking/campaigns/{campaign.id}",
        params={"influencer_id": second.application.influencer_id},
        headers=auth(campaign.brand_id),
    )
    assert filtered.status_code == 200
    assert [row["influencer_id"] for row in filtered.json()["data"]] == [second.application.influencer_id]

    own = await client.get(
        f"{PREFIX}/view-tracking/campaigns/{campaign.id}",
        params={"influencer_id": first.application.influencer_id},
        headers=auth(first.application.influencer_id),
    )
    assert own.status_code == 200
    assert own.json()["data"][0]["views_tracked"] == 4200
