"""In-process identity store for prototyping and unit tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from gramperks_api.domain.grams import GramRecord, PerkRecord, RedemptionRecord
from gramperks_api.services.redemptions.cooldown import as_utc
from gramperks_api.services.redemptions.errors import GramNotFound, PerkDisabled, PerkNotFound, RedemptionConflict


class InMemoryIdentityStore:
    """Implements the identity store contract on plain dictionaries.

    Redemption history is kept per ``(gram_id, perk_id)`` in append order; the
    last element is the latest redemption.
    """

    def __init__(self) -> None:
        self._grams: Dict[str, GramRecord] = {}
        self._history: Dict[Tuple[str, str], List[RedemptionRecord]] = {}
        self._lock = asyncio.Lock()

    def add_gram(self, gram: GramRecord) -> GramRecord:
        if gram.id in self._grams:
            raise ValueError(f"Gram {gram.id} already exists")
        self._grams[gram.id] = gram
        return gram

    def add_perk(self, gram_id: str, perk: PerkRecord) -> GramRecord:
        gram = self._grams.get(gram_id)
        if gram is None:
            raise GramNotFound()
        if gram.find_perk(perk.id) is not None:
            raise ValueError(f"Perk {perk.id} already exists on gram {gram_id}")
        updated = replace(gram, perks=gram.perks + (replace(perk, gram_id=gram_id),))
        self._grams[gram_id] = updated
        return updated

    def history(self, gram_id: str, perk_id: str) -> list[RedemptionRecord]:
        return list(self._history.get((gram_id, perk_id), []))

    async def get_gram_by_tag(self, tag: str) -> Optional[GramRecord]:
        target = str(tag)
        return next((gram for gram in self._grams.values() if gram.nfc_tag_id == target), None)

    async def get_gram_by_slug(self, slug: str) -> Optional[GramRecord]:
        target = str(slug)
        return next((gram for gram in self._grams.values() if gram.slug == target), None)

    async def get_gram_by_id(self, gram_id: str) -> Optional[GramRecord]:
        return self._grams.get(str(gram_id))

    async def get_latest_redemption(self, gram_id: str, perk_id: str) -> Optional[RedemptionRecord]:
        history = self._history.get((gram_id, perk_id))
        return history[-1] if history else None

    async def append_redemption_atomic(
        self,
        gram_id: str,
        perk_id: str,
        expected_latest: Optional[RedemptionRecord],
        *,
        business_id: str,
        redeemed_at: datetime,
    ) -> RedemptionRecord:
        async with self._lock:
            gram = self._grams.get(gram_id)
            perk = gram.find_perk(perk_id) if gram else None
            if perk is None:
                raise PerkNotFound()
            if not perk.enabled:
                raise PerkDisabled()

            history = self._history.setdefault((gram_id, perk_id), [])
            current = history[-1] if history else None
            current_id = current.id if current else None
            expected_id = expected_latest.id if expected_latest else None
            if current_id != expected_id:
                raise RedemptionConflict()

            redemption = RedemptionRecord(
                id=uuid4(),
                perk_id=perk_id,
                gram_id=gram_id,
                business_id=business_id,
                redeemed_at=as_utc(redeemed_at),
            )
            history.append(redemption)
            return redemption

    async def set_perk_enabled(self, gram_id: str, perk_id: str, enabled: bool) -> PerkRecord:
        gram = self._grams.get(gram_id)
        perk = gram.find_perk(perk_id) if gram else None
        if gram is None or perk is None:
            raise PerkNotFound()

        updated_perk = replace(perk, enabled=bool(enabled))
        self._grams[gram_id] = replace(
            gram,
            perks=tuple(updated_perk if item.id == perk_id else item for item in gram.perks),
        )
        return updated_perk


__all__ = ["InMemoryIdentityStore"]
