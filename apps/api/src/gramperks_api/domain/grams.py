"""Storage-agnostic records exchanged between the identity store and services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from gramperks_api.domain.perks import PerkMetadata, PerkType


@dataclass(frozen=True)
class PerkRecord:
    """A vendor perk attached to one gram."""

    id: str
    gram_id: str
    business_id: str
    business_name: Optional[str]
    type: PerkType
    metadata: PerkMetadata
    cooldown_seconds: int
    enabled: bool = True

    @property
    def summary(self) -> str:
        return self.metadata.summary()


@dataclass(frozen=True)
class GramRecord:
    """A collectible with its perks in display order."""

    id: str
    slug: Optional[str]
    nfc_tag_id: Optional[str]
    title: str
    image_url: str
    description: str
    effects: dict[str, Any] = field(default_factory=dict)
    owner_id: Optional[str] = None
    perks: tuple[PerkRecord, ...] = ()

    def find_perk(self, perk_id: str) -> Optional[PerkRecord]:
        for perk in self.perks:
            if perk.id == perk_id:
                return perk
        return None

    def perks_for_business(self, business_id: str) -> list[PerkRecord]:
        return [perk for perk in self.perks if perk.business_id == business_id]


@dataclass(frozen=True)
class RedemptionRecord:
    """Immutable record of one approved redemption."""

    id: UUID
    perk_id: str
    gram_id: str
    business_id: str
    redeemed_at: datetime


__all__ = ["GramRecord", "PerkRecord", "RedemptionRecord"]
