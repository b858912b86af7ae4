"""
Test earnings calculation.
"""

import pytest

from influencer_platform.core.database import get_async_session
from influencer_platform.core.exceptions import ErrorKind, UnsupportedPaymentModelError
from influencer_platform.models.campaign import PaymentModel
from influencer_platform.models.content_link import Platform
from influencer_platform.services.content_link_registry import ContentLinkRegistry
from influencer_platform.services.earnings_calculator import (
    EarningsCalculator,
    calculate_cpm_payout,
    calculate_earnings,
)


TIKTOK_A = "https://www.tiktok.com/@creator/video/7301000000000000001"
TIKTOK_B = "https://www.tiktok.com/@creator/video/7301000000000000002"


def test_cpm_earnings():
    assert calculate_earnings("cpm", 4200, cpm_rate=5.0) == pytest.approx(21.0)
    assert calculate_earnings("cpm", 0, cpm_rate=5.0) == 0.0
    assert calculate_earnings("cpm", 1, cpm_rate=5.0) == pytest.approx(0.005)
    assert calculate_earnings("cpm", 2500 + 7500, cpm_rate=10.0) == pytest.approx(100.0)


def test_cpm_payout_capped_at_max_views():
    assert calculate_cpm_payout(50_000, 2.0, max_views=10_000) == pytest.approx(20.0)
    assert calculate_cpm_payout(5_000, 2.0, max_views=10_000) == pytest.approx(10.0)
    assert calculate_cpm_payout(50_000, 2.0) == pytest.approx(100.0)


def test_fixed_earnings_prefers_proposed_rate():
    assert calculate_earnings("fixed", 999_999, fixed_price=300.0, proposed_rate=250.0) == 250.0
    assert calculate_earnings("fixed", 0, fixed_price=300.0) == 300.0
    assert calculate_earnings(PaymentModel.FIXED.value, 10) == 0.0


def test_unsupported_payment_models():
    with pytest.raises(UnsupportedPaymentModelError):
        calculate_earnings("per_click", 100, cpm_rate=5.0)

    with pytest.raises(UnsupportedPaymentModelError):
        calculate_earnings(None, 100)

    with pytest.raises(UnsupportedPaymentModelError):
        calculate_earnings("cpm", 100)


@pytest.mark.asyncio
async def test_compute_uses_selected_links_only(seed):
    campaign = await seed.campaign(cpm_rate=5.0)
    approved = await seed.approved_application(
        campaign,
        links=[(Platform.TIKTOK, TIKTOK_A), (Platform.TIKTOK, TIKTOK_B)],
        selected_indexes=[0],
    )
    by_url = {link.content_url: link for link in approved.content_links}

    async with get_async_session() as db:
        registry = ContentLinkRegistry(db)
        await registry.update_view_count(by_url[TIKTOK_A].id, 4200)
        await registry.update_view_count(by_url[TIKTOK_B].id, 100_000)

    async with get_async_session() as db:
        result = await EarningsCalculator(db).compute(approved.application.id)

    assert result.success
    assert result.data.total_views == 4200
    assert result.data.selected_links == 1
    assert result.data.earnings == pytest.approx(21.0)


@pytest.mark.asyncio
async def test_compute_fixed_campaign(seed):
    campaign = await seed.campaign(payment_model="fixed", cpm_rate=None, price_per_post=400.0)
    approved = await seed.approved_application(campaign, links=[(Platform.TIKTOK, TIKTOK_A)], proposed_rate=350.0)

    async with get_async_session() as db:
        result = await EarningsCalculator(db).compute(approved.application.id)

    assert result.data.earnings == 350.0
    assert result.data.payment_model == "fixed"


@pytest.mark.asyncio
async def test_compute_errors(seed):
    campaign = await seed.campaign(payment_model="barter", cpm_rate=None)
    created = await seed.application(campaign)

    async with get_async_session() as db:
        calculator = EarningsCalculator(db)
        missing = await calculator.compute("missing")
        unsupported = await calculator.compute(created.application.id)

    assert missing.error_code == "APPLICATION_NOT_FOUND"
    assert unsupported.error_code == "UNSUPPORTED_PAYMENT_MODEL"
    assert unsupported.error_kind == ErrorKind.INVALID_STATE


@pytest.mark.asyncio
async def test_compute_ignores_view_cap(seed):
    campaign = await seed.campaign(cpm_rate=10.0, max_views=5000)
    approved = await seed.approved_application(campaign, links=[(Platform.TIKTOK, TIKTOK_A), (Platform.TIKTOK, TIKTOK_B)])
    by_url = {link.content_url: link for link in approved.content_links}

    async with get_async_session() as db:
        registry = ContentLinkRegistry(db)
        await registry.update_view_count(by_url[TIKTOK_A].id, 2500)
        await registry.update_view_count(by_url[TIKTOK_B].id, 7500)

    async with get_async_session() as db:
        result = await EarningsCalculator(db).compute(approved.application.id)

    assert result.data.total_views == 10_000
    assert result.data.earnings == pytest.approx(100.0)
