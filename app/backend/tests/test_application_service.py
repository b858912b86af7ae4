"""
Test the application lifecycle: creation, transitions, editing and listing.
"""

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from influencer_platform.core.database import get_async_session
from influencer_platform.core.exceptions import ErrorKind
from influencer_platform.models.application import CampaignApplication, ApplicationStatus
from influencer_platform.models.campaign import CampaignStatus
from influencer_platform.models.content_link import ApplicationContentLink, Platform, SelectionStatus
from influencer_platform.models.user import UserRole
from influencer_platform.services.application_service import ApplicationService
from influencer_platform.services.content_link_registry import ContentLinkRegistry, ContentLinkInput


TIKTOK_A = "https://www.tiktok.com/@creator/video/7301000000000000001"
TIKTOK_B = "https://www.tiktok.com/@creator/video/7301000000000000002"
INSTAGRAM_A = "https://www.instagram.com/p/CxYz123/"


async def count_rows(model) -> int:
    async with get_async_session() as db:
        return await db.scalar(select(func.count()).select_from(model))


async def load_links(application_id: str):
    async with get_async_session() as db:
        return await ContentLinkRegistry(db).list_by_application(application_id)


class FailingRegistry(ContentLinkRegistry):
    """Registry whose link insert fails after the application row is flushed."""

    async def add_links(self, application_id, links):
        raise OperationalError("INSERT INTO application_content_links", {}, Exception("disk I/O error"))


# Creation

@pytest.mark.asyncio
async def test_create_application_with_links(seed):
    campaign = await seed.campaign()
    influencer = await seed.user(UserRole.INFLUENCER)

    async with get_async_session() as db:
        result = await ApplicationService(db).create_application(
            influencer,
            campaign.id,
            message="Hello",
            content_links=[
                ContentLinkInput(Platform.TIKTOK, TIKTOK_A),
                ContentLinkInput(Platform.INSTAGRAM, INSTAGRAM_A),
            ],
        )

    assert result.success
    application = result.data.application
    assert application.status == ApplicationStatus.PENDING
    assert application.influencer_id == influencer

    links = await load_links(application.id)
    assert len(links) == 2
    for link in links:
        assert link.is_selected is False
        assert link.selection_status == SelectionStatus.PENDING
        assert link.views_tracked == 0


@pytest.mark.asyncio
async def test_create_requires_actor(seed):
    campaign = await seed.campaign()

    async with get_async_session() as db:
        result = await ApplicationService(db).create_application(None, campaign.id)

    assert not result.success
    assert result.error_kind == ErrorKind.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_brand_cannot_apply(seed):
    campaign = await seed.campaign()
    brand = await seed.user(UserRole.BRAND)

    async with get_async_session() as db:
        result = await ApplicationService(db).create_application(brand, campaign.id)

    assert result.error_kind == ErrorKind.UNAUTHORIZED
    assert result.error_code == "NOT_AN_INFLUENCER"


@pytest.mark.asyncio
async def test_apply_to_missing_or_inactive_campaign(seed):
    influencer = await seed.user()
    paused = await seed.campaign(status=CampaignStatus.PAUSED.value)

    async with get_async_session() as db:
        service = ApplicationService(db)
        missing = await service.create_application(influencer, "no-such-campaign")
        inactive = await service.create_application(influencer, paused.id)

    assert missing.error_kind == ErrorKind.NOT_FOUND
    assert missing.error_code == "CAMPAIGN_NOT_FOUND"
    assert inactive.error_kind == ErrorKind.INVALID_STATE
    assert inactive.error_code == "CAMPAIGN_NOT_ACTIVE"


@pytest.mark.asyncio
async def test_second_application_is_rejected(seed):
    campaign = await seed.campaign()
    influencer = await seed.user()
    await seed.application(campaign, influencer, [(Platform.TIKTOK, TIKTOK_A)])

    async with get_async_session() as db:
        result = await ApplicationService(db).create_application(
            influencer,
            campaign.id,
            content_links=[ContentLinkInput(Platform.TIKTOK, TIKTOK_B)],
        )

    assert result.error_code == "DUPLICATE_APPLICATION"
    assert result.error_kind == ErrorKind.INVALID_STATE
    assert await count_rows(CampaignApplication) == 1
    assert await count_rows(ApplicationContentLink) == 1


@pytest.mark.asyncio
async def test_link_insert_failure_leaves_nothing_behind(seed):
    campaign = await seed.campaign()
    influencer = await seed.user()

    async with get_async_session() as db:
        service = ApplicationService(db, registry=FailingRegistry(db))
        result = await service.create_application(
            influencer,
            campaign.id,
            content_links=[ContentLinkInput(Platform.TIKTOK, TIKTOK_A)],
        )

    assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
    assert await count_rows(CampaignApplication) == 0
    assert await count_rows(ApplicationContentLink) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "platform,url",
    [
        (Platform.TIKTOK, "http://www.tiktok.com/@creator/video/123"),
        (Platform.TIKTOK, "https://www.tiktok.com/@creator"),
        (Platform.INSTAGRAM, "https://www.youtube.com/watch?v=abc"),
        (Platform.INSTAGRAM, TIKTOK_A),
    ],
)
async def test_invalid_links_are_rejected(seed, platform, url):
    campaign = await seed.campaign()
    influencer = await seed.user()

    async with get_async_session() as db:
        result = await ApplicationService(db).create_application(
            influencer,
            campaign.id,
            content_links=[ContentLinkInput(platform, url)],
        )

    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert await count_rows(CampaignApplication) == 0


@pytest.mark.asyncio
async def test_duplicate_urls_in_one_submission(seed):
    campaign = await seed.campaign()
    influencer = await seed.user()

    async with get_async_session() as db:
        result = await ApplicationService(db).create_application(
            influencer,
            campaign.id,
            content_links=[
                ContentLinkInput(Platform.TIKTOK, TIKTOK_A),
                ContentLinkInput(Platform.TIKTOK, TIKTOK_A),
            ],
        )

    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert result.details["index"] == 1


@pytest.mark.asyncio
async def test_too_many_links(seed, monkeypatch):
    from influencer_platform.core.config import settings

    monkeypatch.setattr(settings, "max_content_links_per_application", 1)
    campaign = await seed.campaign()
    influencer = await seed.user()

    async with get_async_session() as db:
        result = await ApplicationService(db).create_application(
            influencer,
            campaign.id,
            content_links=[
                ContentLinkInput(Platform.TIKTOK, TIKTOK_A),
                ContentLinkInput(Platform.TIKTOK, TIKTOK_B),
            ],
        )

    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert result.details["limit"] == 1


# Transitions

@pytest.mark.asyncio
async def test_approve_selects_exactly_the_chosen_links(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A), (Platform.TIKTOK, TIKTOK_B)])
    first, second = created.content_links

    async with get_async_session() as db:
        result = await ApplicationService(db).approve(created.application.id, campaign.brand_id, [second.id])

    assert result.success
    assert result.data.application.status == ApplicationStatus.APPROVED
    assert result.data.application.reviewed_at is not None

    links = {link.id: link for link in await load_links(created.application.id)}
    assert links[first.id].selection_status == SelectionStatus.NOT_SELECTED
    assert links[first.id].is_selected is False
    assert links[second.id].selection_status == SelectionStatus.SELECTED
    assert links[second.id].is_selected is True
    assert links[second.id].selection_date is not None


@pytest.mark.asyncio
async def test_approve_without_ids_selects_all(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A), (Platform.INSTAGRAM, INSTAGRAM_A)])

    async with get_async_session() as db:
        result = await ApplicationService(db).approve(created.application.id, campaign.brand_id)

    assert result.success
    assert all(link.is_selected for link in await load_links(created.application.id))


@pytest.mark.asyncio
async def test_approve_with_empty_selection_is_refused(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)])

    async with get_async_session() as db:
        result = await ApplicationService(db).approve(created.application.id, campaign.brand_id, [])

    assert result.error_kind == ErrorKind.INVALID_STATE
    assert result.error_code == "EMPTY_SELECTION"

    async with get_async_session() as db:
        application = await db.get(CampaignApplication, created.application.id)
        assert application.status == ApplicationStatus.PENDING
    assert all(link.selection_status == SelectionStatus.PENDING for link in await load_links(created.application.id))


@pytest.mark.asyncio
async def test_approve_with_foreign_link_is_refused(seed):
    campaign = await seed.campaign()
    mine = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)])
    other = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_B)])

    async with get_async_session() as db:
        result = await ApplicationService(db).approve(
            mine.application.id,
            campaign.brand_id,
            [other.content_links[0].id]
        )

    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert result.details["link_ids"] == [other.content_links[0].id]


@pytest.mark.asyncio
async def test_reject_clears_selection(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A), (Platform.TIKTOK, TIKTOK_B)])

    async with get_async_session() as db:
        result = await ApplicationService(db).reject(created.application.id, campaign.brand_id)

    assert result.success
    assert result.data.application.status == ApplicationStatus.REJECTED
    for link in await load_links(created.application.id):
        assert link.is_selected is False
        assert link.selection_status == SelectionStatus.NOT_SELECTED


@pytest.mark.asyncio
async def test_only_brand_reviews_and_only_applicant_withdraws(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)])
    stranger = await seed.user(UserRole.BRAND)

    async with get_async_session() as db:
        service = ApplicationService(db)
        by_applicant = await service.approve(created.application.id, created.application.influencer_id)
        by_stranger = await service.reject(created.application.id, stranger)
        by_brand = await service.withdraw(created.application.id, campaign.brand_id)

    for result in (by_applicant, by_stranger, by_brand):
        assert result.error_kind == ErrorKind.UNAUTHORIZED


async def application_snapshot(application_id: str):
    async with get_async_session() as db:
        application = await db.get(CampaignApplication, application_id)
        row = (application.status, application.version, application.reviewed_at, application.withdrawn_at)
    links = {
        link.id: (link.is_selected, link.selection_status, link.selection_date, link.views_tracked)
        for link in await load_links(application_id)
    }
    return row, links


@pytest.mark.asyncio
async def test_terminal_states_do_not_move(seed):
    campaign = await seed.campaign()
    approved = await seed.approved_application(
        campaign,
        links=[(Platform.TIKTOK, TIKTOK_A), (Platform.TIKTOK, TIKTOK_B)],
        selected_indexes=[0],
    )
    before = await application_snapshot(approved.application.id)

    async with get_async_session() as db:
        service = ApplicationService(db)
        again = await service.reject(approved.application.id, campaign.brand_id)
        withdraw = await service.withdraw(approved.application.id, approved.application.influencer_id)
        back = await service.transition(approved.application.id, campaign.brand_id, "pending")

    assert again.error_code == "INVALID_TRANSITION"
    assert withdraw.error_code == "INVALID_TRANSITION"
    assert withdraw.error_kind == ErrorKind.INVALID_STATE
    assert back.error_code == "INVALID_TRANSITION"

    after = await application_snapshot(approved.application.id)
    assert after == before
    assert after[0][0] == ApplicationStatus.APPROVED
    assert sorted(selected for selected, _, _, _ in after[1].values()) == [False, True]


@pytest.mark.asyncio
async def test_transition_of_missing_application(seed):
    brand = await seed.user(UserRole.BRAND)

    async with get_async_session() as db:
        result = await ApplicationService(db).approve("missing", brand)

    assert result.error_kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_withdraw_keeps_record_and_allows_reapplying(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)])
    influencer = created.application.influencer_id

    async with get_async_session() as db:
        result = await ApplicationService(db).withdraw(created.application.id, influencer)

    assert result.success
    assert result.data.application.status == ApplicationStatus.WITHDRAWN
    assert result.data.application.withdrawn_at is not None
    links = await load_links(created.application.id)
    assert [link.selection_status for link in links] == [SelectionStatus.NOT_SELECTED]

    async with get_async_session() as db:
        service = ApplicationService(db)
        listed = (await service.list_applications(influencer_id=influencer)).unwrap()
        listed_all = (await service.list_applications(influencer_id=influencer, include_withdrawn=True)).unwrap()
        reapplied = await service.create_application(
            influencer,
            campaign.id,
            content_links=[ContentLinkInput(Platform.TIKTOK, TIKTOK_B)],
        )

    assert listed == []
    assert len(listed_all) == 1
    assert reapplied.success


@pytest.mark.asyncio
async def test_concurrent_review_is_detected(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)])
    application_id = created.application.id

    async with get_async_session() as first_db, get_async_session() as second_db:
        # Second reviewer loads the application before the first one commits
        await second_db.get(CampaignApplication, application_id)

        first = await ApplicationService(first_db).approve(application_id, campaign.brand_id)
        second = await ApplicationService(second_db).reject(application_id, campaign.brand_id)

    assert first.success
    assert second.error_code == "CONCURRENT_MODIFICATION"
    assert second.error_kind == ErrorKind.INVALID_STATE

    async with get_async_session() as db:
        application = await db.get(CampaignApplication, application_id)
        assert application.status == ApplicationStatus.APPROVED
    assert all(link.is_selected for link in await load_links(application_id))


# Editing and reads

@pytest.mark.asyncio
async def test_update_pending_application(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign)
    influencer = created.application.influencer_id

    async with get_async_session() as db:
        service = ApplicationService(db)
        updated = await service.update_application(created.application.id, influencer, message="New pitch", proposed_rate=250.0)
        by_brand = await service.update_application(created.application.id, campaign.brand_id, message="x")

    assert updated.success
    assert updated.data.message == "New pitch"
    assert updated.data.proposed_rate == 250.0
    assert by_brand.error_kind == ErrorKind.UNAUTHORIZED


@pytest.mark.asyncio
async def test_update_after_review_is_refused(seed):
    campaign = await seed.campaign()
    approved = await seed.approved_application(campaign)

    async with get_async_session() as db:
        result = await ApplicationService(db).update_application(
            approved.application.id,
            approved.application.influencer_id,
            message="too late"
        )

    assert result.error_kind == ErrorKind.INVALID_STATE


@pytest.mark.asyncio
async def test_get_application_visibility(seed):
    campaign = await seed.campaign()
    created = await seed.application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)])
    outsider = await seed.user()

    async with get_async_session() as db:
        service = ApplicationService(db)
        as_owner = await service.get_application_with_links(created.application.id, created.application.influencer_id)
        as_brand = await service.get_application_with_links(created.application.id, campaign.brand_id)
        as_outsider = await service.get_application_with_links(created.application.id, outsider)

    assert as_owner.success and len(as_owner.data.content_links) == 1
    assert as_brand.success
    assert as_outsider.error_kind == ErrorKind.UNAUTHORIZED


@pytest.mark.asyncio
async def test_list_applications_for_brand(seed):
    brand = await seed.user(UserRole.BRAND)
    first_campaign = await seed.campaign(brand_id=brand)
    second_campaign = await seed.campaign(brand_id=brand)
    other_campaign = await seed.campaign()

    await seed.application(first_campaign)
    await seed.approved_application(second_campaign)
    await seed.application(other_campaign)

    async with get_async_session() as db:
        service = ApplicationService(db)
        everything = (await service.list_applications(brand_id=brand)).unwrap()
        approved = (await service.list_applications(brand_id=brand, status="approved")).unwrap()
        bad_status = await service.list_applications(status="archived")

    assert len(everything) == 2
    assert [item.application.campaign_id for item in approved] == [second_campaign.id]
    assert bad_status.error_kind == ErrorKind.INVALID_INPUT
