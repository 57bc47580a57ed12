"""Producer, owner, and vendor administration workflows around grams."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gramperks_api.core.identifiers import new_id, nfc_tag_for, slugify
from gramperks_api.core.settings import settings
from gramperks_api.domain.grams import GramRecord, PerkRecord
from gramperks_api.domain.perks import (
    STUDIO_PERK_TYPES,
    InvalidPerkMetadataError,
    PerkType,
    dump_perk_metadata,
    parse_perk_metadata,
)
from gramperks_api.models.gram import Gram, GramClaim, GramClaimStatus, GramPerk
from gramperks_api.services.grams.store import SqlIdentityStore, gram_to_record, perk_to_record
from gramperks_api.services.redemptions.errors import (
    DuplicateGram,
    GramNotFound,
    InvalidPerkMetadata,
    PerkNotFound,
    Unauthorized,
)


# Placeholder owner values written by early clients; treated as unclaimed.
_UNCLAIMED_OWNER_VALUES = ("", "null", "undefined")
_PERK_ID_ATTEMPTS = 5


@dataclass(frozen=True)
class ClaimResult:
    status: GramClaimStatus
    gram: GramRecord


class GramCatalogService:
    """Service layer for gram creation, ownership claims, and vendor perk admin."""

    def __init__(self, db: AsyncSession, *, studio_business_id: str | None = None) -> None:
        self._db = db
        self._store = SqlIdentityStore(db)
        self._studio_business_id = studio_business_id or settings.studio_business_id

    async def create_gram(
        self,
        gram_id: str,
        *,
        title: str,
        image_url: str = "",
        slug: str | None = None,
        nfc_tag_id: str | None = None,
        description: str = "",
        effects: dict[str, Any] | None = None,
    ) -> GramRecord:
        """Persist a new gram; slug and NFC tag are derived when omitted."""

        gram_id = gram_id.strip()
        if not gram_id:
            raise ValueError("Gram id is required")
        if await self._db.get(Gram, gram_id) is not None:
            raise DuplicateGram()

        gram = Gram(
            id=gram_id,
            slug=slug or slugify(title) or None,
            nfc_tag_id=nfc_tag_id or nfc_tag_for(gram_id),
            title=title,
            image_url=image_url,
            description=description,
            effects=effects or {},
            owner_id=None,
        )
        self._db.add(gram)
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            logger.warning("Rejected duplicate gram", gram_id=gram_id, slug=gram.slug, nfc_tag_id=gram.nfc_tag_id)
            raise DuplicateGram() from exc

        logger.info("Created gram", gram_id=gram_id, slug=gram.slug, nfc_tag_id=gram.nfc_tag_id)
        record = await self._store.get_gram_by_id(gram_id)
        if record is None:
            raise GramNotFound()
        return record

    async def list_grams_by_owner(self, owner_id: str) -> list[GramRecord]:
        stmt = (
            select(Gram)
            .options(selectinload(Gram.perks))
            .where(Gram.owner_id == str(owner_id))
            .order_by(Gram.created_at, Gram.id)
        )
        result = await self._db.execute(stmt)
        return [gram_to_record(gram) for gram in result.scalars().all()]

    async def claim(
        self,
        gram_id: str,
        owner_id: str,
        *,
        channel: str = "nfc",
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ClaimResult:
        """Assign ``owner_id`` if the gram is still unclaimed.

        The ownership write is a single guarded update, so concurrent claims
        resolve to exactly one ``claimed`` outcome.
        """

        owner_id = str(owner_id).strip()
        if not owner_id:
            raise ValueError("Owner id is required")

        stmt = (
            update(Gram)
            .where(
                Gram.id == gram_id,
                or_(Gram.owner_id.is_(None), Gram.owner_id.in_(_UNCLAIMED_OWNER_VALUES)),
            )
            .values(owner_id=owner_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        claimed = result.rowcount == 1
        await self._db.commit()

        gram = await self._store.get_gram_by_id(gram_id)
        if gram is None:
            raise GramNotFound()

        previous_owner_id: str | None = None
        if claimed:
            status = GramClaimStatus.CLAIMED
        elif gram.owner_id == owner_id:
            status = GramClaimStatus.ALREADY_OWNED
        else:
            status = GramClaimStatus.ALREADY_CLAIMED
            previous_owner_id = gram.owner_id

        await self._record_claim_attempt(
            gram,
            owner_id=owner_id,
            status=status,
            channel=channel,
            previous_owner_id=previous_owner_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("Processed gram claim", gram_id=gram_id, status=status.value, channel=channel)
        return ClaimResult(status=status, gram=gram)

    async def _record_claim_attempt(
        self,
        gram: GramRecord,
        *,
        owner_id: str,
        status: GramClaimStatus,
        channel: str,
        previous_owner_id: str | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        # The claim is already committed; a failed audit write must not undo it.
        self._db.add(
            GramClaim(
                gram_id=gram.id,
                owner_id=owner_id,
                status=status,
                channel=channel or "nfc",
                nfc_tag_id=gram.nfc_tag_id,
                previous_owner_id=previous_owner_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        try:
            await self._db.commit()
        except SQLAlchemyError:
            await self._db.rollback()
            logger.exception("Failed to record gram claim audit", gram_id=gram.id, status=status.value)

    async def list_vendor_perks(self, business_id: str, *, gram_id: str | None = None) -> list[PerkRecord]:
        stmt = select(GramPerk).where(GramPerk.business_id == business_id)
        if gram_id:
            stmt = stmt.where(GramPerk.gram_id == gram_id)
        stmt = stmt.order_by(GramPerk.gram_id, GramPerk.position)
        result = await self._db.execute(stmt)
        return [perk_to_record(perk) for perk in result.scalars().all()]

    async def create_perk(
        self,
        business_id: str,
        *,
        gram_id: str,
        perk_type: PerkType | str,
        metadata: dict[str, Any] | None,
        cooldown_seconds: int = 0,
        business_name: str | None = None,
        enabled: bool = True,
    ) -> PerkRecord:
        """Append a perk owned by ``business_id`` to a gram's display order."""

        if cooldown_seconds < 0:
            raise ValueError("Cooldown seconds must be non-negative")

        try:
            parsed_metadata = parse_perk_metadata(perk_type, metadata)
        except InvalidPerkMetadataError as exc:
            raise InvalidPerkMetadata(exc.perk_type, exc.errors) from exc
        resolved_type = PerkType(perk_type)

        if resolved_type in STUDIO_PERK_TYPES and business_id != self._studio_business_id:
            logger.warning(
                "Rejected studio-only perk type for partner business",
                business_id=business_id,
                perk_type=resolved_type.value,
            )
            raise Unauthorized("Only the studio business may issue Shopify perks.")

        gram = await self._db.get(Gram, gram_id)
        if gram is None:
            raise GramNotFound()

        position_result = await self._db.execute(
            select(func.coalesce(func.max(GramPerk.position), -1)).where(GramPerk.gram_id == gram_id)
        )
        next_position = int(position_result.scalar_one()) + 1

        for _ in range(_PERK_ID_ATTEMPTS):
            perk = GramPerk(
                gram_id=gram_id,
                perk_id=new_id(8),
                position=next_position,
                business_id=business_id,
                business_name=business_name,
                type=resolved_type,
                metadata_json=dump_perk_metadata(parsed_metadata),
                cooldown_seconds=int(cooldown_seconds),
                enabled=bool(enabled),
            )
            self._db.add(perk)
            try:
                await self._db.commit()
            except IntegrityError:
                await self._db.rollback()
                logger.warning("Perk id collision, retrying", gram_id=gram_id)
                continue
            await self._db.refresh(perk)
            logger.info(
                "Created perk",
                gram_id=gram_id,
                perk_id=perk.perk_id,
                business_id=business_id,
                perk_type=resolved_type.value,
            )
            return perk_to_record(perk)

        raise RuntimeError("Unable to allocate a unique perk id")

    async def set_perk_enabled(
        self,
        business_id: str,
        *,
        gram_id: str,
        perk_id: str,
        enabled: bool,
    ) -> PerkRecord:
        gram = await self._store.get_gram_by_id(gram_id)
        perk: Optional[PerkRecord] = gram.find_perk(perk_id) if gram else None
        if perk is None:
            raise PerkNotFound()
        if perk.business_id != business_id:
            raise Unauthorized()
        return await self._store.set_perk_enabled(gram_id, perk_id, enabled)


__all__ = ["ClaimResult", "GramCatalogService"]
