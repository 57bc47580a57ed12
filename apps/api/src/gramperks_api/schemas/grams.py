from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from gramperks_api.domain.grams import GramRecord, PerkRecord
from gramperks_api.domain.perks import dump_perk_metadata
from gramperks_api.services.redemptions.cooldown import as_utc
from gramperks_api.services.redemptions.validation import AnnotatedPerk


class PerkResponse(BaseModel):
    id: str
    gram_id: str
    business_id: str
    business_name: str | None = None
    type: str
    summary: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    cooldown_seconds: int
    enabled: bool


class AnnotatedPerkResponse(PerkResponse):
    state: Literal["available", "cooldown", "disabled"]
    cooldown_remaining_ms: int | None = None
    last_redeemed_at: datetime | None = None


class GramResponse(BaseModel):
    id: str
    slug: str | None = None
    nfc_tag_id: str | None = None
    title: str
    image_url: str
    description: str
    effects: dict[str, Any] = Field(default_factory=dict)
    owner_id: str | None = None
    perks: list[PerkResponse] = Field(default_factory=list)


def serialize_perk(perk: PerkRecord) -> PerkResponse:
    return PerkResponse(
        id=perk.id,
        gram_id=perk.gram_id,
        business_id=perk.business_id,
        business_name=perk.business_name,
        type=perk.type.value,
        summary=perk.summary,
        metadata=dump_perk_metadata(perk.metadata),
        cooldown_seconds=perk.cooldown_seconds,
        enabled=perk.enabled,
    )


def serialize_annotated_perk(annotated: AnnotatedPerk) -> AnnotatedPerkResponse:
    base = serialize_perk(annotated.perk)
    return AnnotatedPerkResponse(
        **base.model_dump(),
        state=annotated.state.value,
        cooldown_remaining_ms=annotated.cooldown_remaining_ms,
        last_redeemed_at=as_utc(annotated.last_redeemed_at) if annotated.last_redeemed_at else None,
    )


def serialize_gram(gram: GramRecord, *, include_disabled: bool = False) -> GramResponse:
    """Public gram payload; disabled perks are hidden unless requested."""

    perks = [perk for perk in gram.perks if include_disabled or perk.enabled]
    return GramResponse(
        id=gram.id,
        slug=gram.slug,
        nfc_tag_id=gram.nfc_tag_id,
        title=gram.title,
        image_url=gram.image_url,
        description=gram.description,
        effects=dict(gram.effects),
        owner_id=gram.owner_id,
        perks=[serialize_perk(perk) for perk in perks],
    )
