"""Read-only perk validation for a vendor scanning a gram."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from loguru import logger

from gramperks_api.domain.grams import GramRecord, PerkRecord
from gramperks_api.observability.redemptions import RedemptionObservabilityStore, get_redemption_store
from gramperks_api.services.grams.store import IdentityStore
from gramperks_api.services.redemptions.cooldown import CooldownStatus, PerkState, evaluate
from gramperks_api.services.redemptions.errors import GramNotFound


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AnnotatedPerk:
    """Perk as shown to the vendor, with its current cooldown state."""

    perk: PerkRecord
    status: CooldownStatus
    last_redeemed_at: Optional[datetime]

    @property
    def state(self) -> PerkState:
        return self.status.state

    @property
    def cooldown_remaining_ms(self) -> Optional[int]:
        return self.status.cooldown_remaining_ms


@dataclass(frozen=True)
class ValidationResult:
    gram: GramRecord
    perks: list[AnnotatedPerk]
    evaluated_at: datetime

    def public_gram(self) -> dict[str, Any]:
        return {
            "id": self.gram.id,
            "slug": self.gram.slug,
            "title": self.gram.title,
            "image_url": self.gram.image_url,
            "description": self.gram.description,
            "effects": dict(self.gram.effects),
        }


class ValidationService:
    """Resolve a gram by tag and annotate the caller's perks with cooldown state."""

    def __init__(
        self,
        store: IdentityStore,
        *,
        clock: Clock = utcnow,
        telemetry: RedemptionObservabilityStore | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._telemetry = telemetry or get_redemption_store()

    async def validate(self, nfc_tag_id: str, business_id: str) -> ValidationResult:
        gram = await self._store.get_gram_by_tag(nfc_tag_id)
        if gram is None:
            self._telemetry.record_validation("gram_not_found")
            logger.info("Validation for unknown tag", nfc_tag_id=nfc_tag_id, business_id=business_id)
            raise GramNotFound()

        now = self._clock()
        annotated: list[AnnotatedPerk] = []
        for perk in gram.perks_for_business(business_id):
            latest = await self._store.get_latest_redemption(gram.id, perk.id)
            last_redeemed_at = latest.redeemed_at if latest else None
            annotated.append(
                AnnotatedPerk(
                    perk=perk,
                    status=evaluate(perk, last_redeemed_at, now),
                    last_redeemed_at=last_redeemed_at,
                )
            )

        self._telemetry.record_validation("ok", perks_returned=len(annotated))
        return ValidationResult(gram=gram, perks=annotated, evaluated_at=now)


__all__ = ["AnnotatedPerk", "Clock", "ValidationResult", "ValidationService", "utcnow"]
