"""Approval of a single perk redemption.

Approval re-reads the latest redemption and the perk at approval time rather
than trusting values from an earlier validate call. The reads, the cooldown
check, and the compare-and-append run while holding the per-``(gram_id,
perk_id)`` lock; the store's compare-and-append rejects any append that raced
in from another process or targets a disabled perk, so at most one approval
succeeds per cooldown window.
"""

from __future__ import annotations

from loguru import logger

from gramperks_api.domain.grams import RedemptionRecord
from gramperks_api.observability.redemptions import RedemptionObservabilityStore, get_redemption_store
from gramperks_api.observability.tracing import get_tracer
from gramperks_api.services.grams.store import IdentityStore
from gramperks_api.services.redemptions.cooldown import PerkState, evaluate
from gramperks_api.services.redemptions.errors import (
    GramNotFound,
    PerkDisabled,
    PerkNotFound,
    PerkOnCooldown,
    RedemptionConflict,
    RedemptionError,
    Unauthorized,
)
from gramperks_api.services.redemptions.locks import RedemptionLockRegistry, get_redemption_locks
from gramperks_api.services.redemptions.validation import Clock, utcnow


class ApprovalService:
    def __init__(
        self,
        store: IdentityStore,
        *,
        locks: RedemptionLockRegistry | None = None,
        clock: Clock = utcnow,
        telemetry: RedemptionObservabilityStore | None = None,
    ) -> None:
        self._store = store
        self._locks = locks or get_redemption_locks()
        self._clock = clock
        self._telemetry = telemetry or get_redemption_store()

    async def approve(self, nfc_tag_id: str, perk_id: str, business_id: str) -> RedemptionRecord:
        """Record one redemption of ``perk_id`` for the gram behind ``nfc_tag_id``."""

        with get_tracer().start_as_current_span("redemption.approve") as span:
            span.set_attribute("gramperks.perk_id", perk_id)
            span.set_attribute("gramperks.business_id", business_id)
            try:
                redemption = await self._approve(nfc_tag_id, perk_id, business_id)
            except RedemptionError as exc:
                span.set_attribute("gramperks.outcome", exc.code)
                self._telemetry.record_approval(exc.code.lower())
                raise
            span.set_attribute("gramperks.outcome", "approved")
            self._telemetry.record_approval("approved", business_id=business_id)
            return redemption

    async def _approve(self, nfc_tag_id: str, perk_id: str, business_id: str) -> RedemptionRecord:
        gram = await self._store.get_gram_by_tag(nfc_tag_id)
        if gram is None:
            raise GramNotFound()

        perk = gram.find_perk(perk_id)
        if perk is None:
            raise PerkNotFound()
        if perk.business_id != business_id:
            logger.warning(
                "Rejected approval for another business's perk",
                gram_id=gram.id,
                perk_id=perk_id,
                business_id=business_id,
            )
            raise Unauthorized()
        if not perk.enabled:
            raise PerkDisabled()

        async with self._locks.hold(gram.id, perk.id):
            latest = await self._store.get_latest_redemption(gram.id, perk.id)
            # The perk may have been disabled since the snapshot above.
            current = await self._store.get_gram_by_id(gram.id)
            perk = current.find_perk(perk_id) if current else None
            if perk is None:
                raise PerkNotFound()
            now = self._clock()
            status = evaluate(perk, latest.redeemed_at if latest else None, now)
            if status.state is PerkState.DISABLED:
                raise PerkDisabled()
            if status.state is PerkState.COOLDOWN:
                raise PerkOnCooldown(int(status.cooldown_remaining_ms or 0))

            try:
                redemption = await self._store.append_redemption_atomic(
                    gram.id,
                    perk.id,
                    latest,
                    business_id=business_id,
                    redeemed_at=now,
                )
            except RedemptionConflict:
                logger.warning(
                    "Approval conflicted with a concurrent redemption",
                    gram_id=gram.id,
                    perk_id=perk.id,
                    business_id=business_id,
                )
                raise

        logger.info(
            "Approved perk redemption",
            redemption_id=str(redemption.id),
            gram_id=gram.id,
            perk_id=perk.id,
            business_id=business_id,
        )
        return redemption


__all__ = ["ApprovalService"]
