"""Identity store boundary and its SQLAlchemy implementation."""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Protocol
from uuid import uuid4

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gramperks_api.domain.grams import GramRecord, PerkRecord, RedemptionRecord
from gramperks_api.domain.perks import (
    InvalidPerkMetadataError,
    PerkMetadata,
    UnvalidatedPerkMetadata,
    parse_perk_metadata,
)
from gramperks_api.models.gram import Gram, GramPerk, PerkRedemption
from gramperks_api.services.redemptions.cooldown import as_utc
from gramperks_api.services.redemptions.errors import PerkDisabled, PerkNotFound, RedemptionConflict


class IdentityStore(Protocol):
    """Durable record of grams, their perks, and redemption history."""

    async def get_gram_by_tag(self, tag: str) -> Optional[GramRecord]: ...

    async def get_gram_by_slug(self, slug: str) -> Optional[GramRecord]: ...

    async def get_gram_by_id(self, gram_id: str) -> Optional[GramRecord]: ...

    async def get_latest_redemption(self, gram_id: str, perk_id: str) -> Optional[RedemptionRecord]: ...

    async def append_redemption_atomic(
        self,
        gram_id: str,
        perk_id: str,
        expected_latest: Optional[RedemptionRecord],
        *,
        business_id: str,
        redeemed_at: datetime,
    ) -> RedemptionRecord:
        """Append a redemption only if the latest one is still ``expected_latest``.

        Raises :class:`PerkDisabled` when the perk is no longer enabled and
        :class:`RedemptionConflict` when another redemption was appended
        in between.
        """
        ...

    async def set_perk_enabled(self, gram_id: str, perk_id: str, enabled: bool) -> PerkRecord: ...


def _load_metadata(perk: GramPerk) -> PerkMetadata:
    payload = perk.metadata_json if isinstance(perk.metadata_json, Mapping) else {}
    try:
        return parse_perk_metadata(perk.type, payload)
    except InvalidPerkMetadataError as exc:
        logger.warning(
            "Stored perk metadata failed validation",
            gram_id=perk.gram_id,
            perk_id=perk.perk_id,
            perk_type=exc.perk_type,
            errors=exc.errors,
        )
        return UnvalidatedPerkMetadata.model_validate(dict(payload))


def perk_to_record(perk: GramPerk) -> PerkRecord:
    return PerkRecord(
        id=perk.perk_id,
        gram_id=perk.gram_id,
        business_id=perk.business_id,
        business_name=perk.business_name,
        type=perk.type,
        metadata=_load_metadata(perk),
        cooldown_seconds=int(perk.cooldown_seconds or 0),
        enabled=bool(perk.enabled),
    )


def gram_to_record(gram: Gram) -> GramRecord:
    return GramRecord(
        id=gram.id,
        slug=gram.slug,
        nfc_tag_id=gram.nfc_tag_id,
        title=gram.title or "",
        image_url=gram.image_url or "",
        description=gram.description or "",
        effects=dict(gram.effects or {}),
        owner_id=gram.owner_id,
        perks=tuple(perk_to_record(perk) for perk in gram.perks),
    )


def redemption_to_record(redemption: PerkRedemption) -> RedemptionRecord:
    return RedemptionRecord(
        id=redemption.id,
        perk_id=redemption.perk_id,
        gram_id=redemption.gram_id,
        business_id=redemption.business_id,
        redeemed_at=as_utc(redemption.redeemed_at),
    )


class SqlIdentityStore:
    """Identity store backed by an ``AsyncSession``.

    ``append_redemption_atomic`` commits before returning, so a redemption that
    was acknowledged survives the caller going away.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _load_gram(self, *criteria) -> Optional[GramRecord]:
        stmt = (
            select(Gram)
            .options(selectinload(Gram.perks))
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        gram = result.scalar_one_or_none()
        return gram_to_record(gram) if gram else None

    async def get_gram_by_tag(self, tag: str) -> Optional[GramRecord]:
        return await self._load_gram(Gram.nfc_tag_id == str(tag))

    async def get_gram_by_slug(self, slug: str) -> Optional[GramRecord]:
        return await self._load_gram(Gram.slug == str(slug))

    async def get_gram_by_id(self, gram_id: str) -> Optional[GramRecord]:
        return await self._load_gram(Gram.id == str(gram_id))

    async def get_latest_redemption(self, gram_id: str, perk_id: str) -> Optional[RedemptionRecord]:
        stmt = (
            select(PerkRedemption)
            .join(GramPerk, GramPerk.last_redemption_id == PerkRedemption.id)
            .where(GramPerk.gram_id == gram_id, GramPerk.perk_id == perk_id)
        )
        result = await self._db.execute(stmt)
        redemption = result.scalar_one_or_none()
        return redemption_to_record(redemption) if redemption else None

    async def append_redemption_atomic(
        self,
        gram_id: str,
        perk_id: str,
        expected_latest: Optional[RedemptionRecord],
        *,
        business_id: str,
        redeemed_at: datetime,
    ) -> RedemptionRecord:
        redemption_id = uuid4()
        if expected_latest is None:
            guard = GramPerk.last_redemption_id.is_(None)
        else:
            guard = GramPerk.last_redemption_id == expected_latest.id

        stmt = (
            update(GramPerk)
            .where(
                GramPerk.gram_id == gram_id,
                GramPerk.perk_id == perk_id,
                GramPerk.enabled.is_(True),
                guard,
            )
            .values(last_redemption_id=redemption_id, last_redeemed_at=redeemed_at)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self._db.execute(stmt)
            if result.rowcount != 1:
                await self._db.rollback()
                enabled = await self._db.scalar(
                    select(GramPerk.enabled).where(GramPerk.gram_id == gram_id, GramPerk.perk_id == perk_id)
                )
                if enabled is None:
                    raise PerkNotFound()
                if not enabled:
                    logger.warning("Rejected redemption append for disabled perk", gram_id=gram_id, perk_id=perk_id)
                    raise PerkDisabled()
                logger.warning(
                    "Redemption append lost compare-and-append race",
                    gram_id=gram_id,
                    perk_id=perk_id,
                    expected_redemption_id=str(expected_latest.id) if expected_latest else None,
                )
                raise RedemptionConflict()

            redemption = PerkRedemption(
                id=redemption_id,
                gram_id=gram_id,
                perk_id=perk_id,
                business_id=business_id,
                redeemed_at=redeemed_at,
            )
            self._db.add(redemption)
            await self._db.commit()
        except SQLAlchemyError:
            await self._db.rollback()
            logger.exception("Failed to append redemption", gram_id=gram_id, perk_id=perk_id)
            raise

        return RedemptionRecord(
            id=redemption_id,
            perk_id=perk_id,
            gram_id=gram_id,
            business_id=business_id,
            redeemed_at=as_utc(redeemed_at),
        )

    async def set_perk_enabled(self, gram_id: str, perk_id: str, enabled: bool) -> PerkRecord:
        stmt = select(GramPerk).where(GramPerk.gram_id == gram_id, GramPerk.perk_id == perk_id)
        result = await self._db.execute(stmt)
        perk = result.scalar_one_or_none()
        if perk is None:
            raise PerkNotFound()

        perk.enabled = bool(enabled)
        await self._db.commit()
        await self._db.refresh(perk)
        logger.info("Updated perk availability", gram_id=gram_id, perk_id=perk_id, enabled=perk.enabled)
        return perk_to_record(perk)


__all__ = [
    "IdentityStore",
    "SqlIdentityStore",
    "gram_to_record",
    "perk_to_record",
    "redemption_to_record",
]
