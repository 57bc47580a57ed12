from datetime import timedelta

import pytest
from sqlalchemy import func, select

from gramperks_api.domain.perks import PerkType, UnvalidatedPerkMetadata
from gramperks_api.models.gram import Gram, GramPerk, PerkRedemption
from gramperks_api.observability.redemptions import RedemptionObservabilityStore
from gramperks_api.services.grams.store import SqlIdentityStore
from gramperks_api.services.redemptions.approval import ApprovalService
from gramperks_api.services.redemptions.cooldown import PerkState
from gramperks_api.services.redemptions.errors import (
    PerkDisabled,
    PerkNotFound,
    PerkOnCooldown,
    RedemptionConflict,
    Unauthorized,
)
from gramperks_api.services.redemptions.locks import RedemptionLockRegistry
from gramperks_api.services.redemptions.validation import ValidationService


async def _seed(session_factory) -> None:
    async with session_factory() as session:
        session.add(
            Gram(
                id="TEST1",
                slug="test-gram",
                nfc_tag_id="TAG-TEST1",
                title="Test Gram",
                image_url="https://cdn.example.com/test1.png",
                effects={"glow": True},
                owner_id="111",
            )
        )
        session.add_all(
            [
                GramPerk(
                    gram_id="TEST1",
                    perk_id="cafe10",
                    position=0,
                    business_id="CAFE57",
                    business_name="Cafe 57",
                    type=PerkType.DISCOUNT,
                    metadata_json={"discount_percent": 10},
                    cooldown_seconds=86400,
                ),
                GramPerk(
                    gram_id="TEST1",
                    perk_id="shop5",
                    position=1,
                    business_id="SOLDAC",
                    business_name="Soldac Studio",
                    type=PerkType.SHOPIFY_DISCOUNT,
                    metadata_json={"kind": "percent", "value": 5},
                    cooldown_seconds=0,
                ),
            ]
        )
        await session.commit()


@pytest.mark.asyncio
async def test_gram_lookups_return_perks_in_display_order(session_factory) -> None:
    await _seed(session_factory)

    async with session_factory() as session:
        store = SqlIdentityStore(session)
        by_tag = await store.get_gram_by_tag("TAG-TEST1")
        by_slug = await store.get_gram_by_slug("test-gram")
        by_id = await store.get_gram_by_id("TEST1")

        assert by_tag is not None and by_slug is not None and by_id is not None
        assert by_tag.id == by_slug.id == by_id.id == "TEST1"
        assert [perk.id for perk in by_tag.perks] == ["cafe10", "shop5"]
        assert by_tag.perks[0].summary == "10% off"
        assert by_tag.perks[1].type is PerkType.SHOPIFY_DISCOUNT
        assert await store.get_gram_by_tag("TAG-MISSING") is None


@pytest.mark.asyncio
async def test_append_with_stale_expectation_conflicts(session_factory, clock) -> None:
    await _seed(session_factory)

    async with session_factory() as session:
        store = SqlIdentityStore(session)
        assert await store.get_latest_redemption("TEST1", "cafe10") is None

        first = await store.append_redemption_atomic(
            "TEST1", "cafe10", None, business_id="CAFE57", redeemed_at=clock.now
        )
        latest = await store.get_latest_redemption("TEST1", "cafe10")
        assert latest is not None and latest.id == first.id

        with pytest.raises(RedemptionConflict):
            await store.append_redemption_atomic(
                "TEST1", "cafe10", None, business_id="CAFE57", redeemed_at=clock.advance(minutes=1)
            )

        second = await store.append_redemption_atomic(
            "TEST1", "cafe10", first, business_id="CAFE57", redeemed_at=clock.advance(minutes=1)
        )
        latest = await store.get_latest_redemption("TEST1", "cafe10")
        assert latest is not None and latest.id == second.id

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(PerkRedemption))
        assert count == 2


@pytest.mark.asyncio
async def test_sql_backed_cooldown_scenario(session_factory, clock) -> None:
    await _seed(session_factory)
    telemetry = RedemptionObservabilityStore()
    locks = RedemptionLockRegistry()

    async with session_factory() as session:
        approval = ApprovalService(SqlIdentityStore(session), locks=locks, clock=clock, telemetry=telemetry)
        redemption = await approval.approve("TAG-TEST1", "cafe10", "CAFE57")

    clock.advance(hours=1)
    async with session_factory() as session:
        validation = ValidationService(SqlIdentityStore(session), clock=clock, telemetry=telemetry)
        result = await validation.validate("TAG-TEST1", "CAFE57")
        assert [item.perk.id for item in result.perks] == ["cafe10"]
        assert result.perks[0].state is PerkState.COOLDOWN
        assert result.perks[0].cooldown_remaining_ms == 82_800_000

        approval = ApprovalService(SqlIdentityStore(session), locks=locks, clock=clock, telemetry=telemetry)
        with pytest.raises(PerkOnCooldown):
            await approval.approve("TAG-TEST1", "cafe10", "CAFE57")

    clock.advance(hours=23)
    async with session_factory() as session:
        validation = ValidationService(SqlIdentityStore(session), clock=clock, telemetry=telemetry)
        result = await validation.validate("TAG-TEST1", "CAFE57")
        assert result.perks[0].state is PerkState.AVAILABLE
        assert result.perks[0].last_redeemed_at is not None
        assert result.perks[0].last_redeemed_at.replace(tzinfo=None) == redemption.redeemed_at.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_cross_business_approval_leaves_no_redemption(session_factory, clock) -> None:
    await _seed(session_factory)

    async with session_factory() as session:
        approval = ApprovalService(SqlIdentityStore(session), locks=RedemptionLockRegistry(), clock=clock)
        with pytest.raises(Unauthorized):
            await approval.approve("TAG-TEST1", "shop5", "CAFE57")

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(PerkRedemption))
        assert count == 0


@pytest.mark.asyncio
async def test_set_perk_enabled_round_trip(session_factory) -> None:
    await _seed(session_factory)

    async with session_factory() as session:
        store = SqlIdentityStore(session)
        disabled = await store.set_perk_enabled("TEST1", "cafe10", False)
        assert disabled.enabled is False

        gram = await store.get_gram_by_id("TEST1")
        assert gram is not None
        assert gram.find_perk("cafe10").enabled is False

        with pytest.raises(PerkNotFound):
            await store.set_perk_enabled("TEST1", "missing", True)


async def _add_stale_perk(session_factory) -> None:
    async with session_factory() as session:
        session.add(
            GramPerk(
                gram_id="TEST1",
                perk_id="bake0",
                position=2,
                business_id="BAKERY9",
                business_name="Bakery 9",
                type=PerkType.DISCOUNT,
                metadata_json={"discount_percent": 0, "title": "Legacy"},
                cooldown_seconds=0,
            )
        )
        await session.commit()


@pytest.mark.asyncio
async def test_invalid_stored_metadata_does_not_break_other_vendors(session_factory, clock) -> None:
    await _seed(session_factory)
    await _add_stale_perk(session_factory)

    async with session_factory() as session:
        store = SqlIdentityStore(session)
        gram = await store.get_gram_by_tag("TAG-TEST1")
        assert gram is not None
        stale = gram.find_perk("bake0")
        assert isinstance(stale.metadata, UnvalidatedPerkMetadata)
        assert stale.summary == "Legacy"

        validation = ValidationService(store, clock=clock, telemetry=RedemptionObservabilityStore())
        result = await validation.validate("TAG-TEST1", "CAFE57")
        assert [item.perk.id for item in result.perks] == ["cafe10"]
        assert result.perks[0].state is PerkState.AVAILABLE

        approval = ApprovalService(store, locks=RedemptionLockRegistry(), clock=clock)
        redemption = await approval.approve("TAG-TEST1", "cafe10", "CAFE57")
        assert redemption.perk_id == "cafe10"


@pytest.mark.asyncio
async def test_append_rejects_disabled_perk(session_factory, clock) -> None:
    await _seed(session_factory)

    async with session_factory() as session:
        store = SqlIdentityStore(session)
        await store.set_perk_enabled("TEST1", "cafe10", False)
        with pytest.raises(PerkDisabled):
            await store.append_redemption_atomic("TEST1", "cafe10", None, business_id="CAFE57", redeemed_at=clock.now)

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(PerkRedemption))
        assert count == 0


class _DisablingSqlStore(SqlIdentityStore):
    async def get_latest_redemption(self, gram_id, perk_id):
        await self.set_perk_enabled(gram_id, perk_id, False)
        return await super().get_latest_redemption(gram_id, perk_id)


@pytest.mark.asyncio
async def test_approval_rechecks_enabled_inside_lock(session_factory, clock) -> None:
    await _seed(session_factory)

    async with session_factory() as session:
        approval = ApprovalService(_DisablingSqlStore(session), locks=RedemptionLockRegistry(), clock=clock)
        with pytest.raises(PerkDisabled):
            await approval.approve("TAG-TEST1", "cafe10", "CAFE57")

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(PerkRedemption))
        assert count == 0
        perk = await session.scalar(select(GramPerk).where(GramPerk.perk_id == "cafe10"))
        assert perk.enabled is False
