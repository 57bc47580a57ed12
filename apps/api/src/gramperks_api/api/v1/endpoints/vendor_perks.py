"""Vendor perk administration, scoped to the caller's business."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gramperks_api.api.dependencies.vendor import require_vendor_scope
from gramperks_api.db.session import get_session
from gramperks_api.domain.perks import PerkType
from gramperks_api.schemas.grams import PerkResponse, serialize_perk
from gramperks_api.services.grams.catalog import GramCatalogService
from gramperks_api.services.vendors.session_guard import VendorScope


router = APIRouter(prefix="/vendor/perks", tags=["Vendor"])


class PerkCreateRequest(BaseModel):
    gram_id: str = Field(..., min_length=1)
    type: PerkType
    metadata: dict[str, Any] = Field(default_factory=dict)
    cooldown_seconds: int = Field(0, ge=0)
    business_name: str | None = Field(default=None, max_length=255)


class PerkListResponse(BaseModel):
    ok: bool = True
    perks: list[PerkResponse]


class PerkMutationResponse(BaseModel):
    ok: bool = True
    perk: PerkResponse


@router.get("", response_model=PerkListResponse, summary="List perks owned by the caller")
async def list_vendor_perks(
    gram_id: str | None = Query(default=None),
    scope: VendorScope = Depends(require_vendor_scope),
    db: AsyncSession = Depends(get_session),
) -> PerkListResponse:
    perks = await GramCatalogService(db).list_vendor_perks(scope.business_id, gram_id=gram_id)
    return PerkListResponse(perks=[serialize_perk(perk) for perk in perks])


@router.post(
    "",
    response_model=PerkMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach a new perk to a gram",
)
async def create_vendor_perk(
    payload: PerkCreateRequest,
    scope: VendorScope = Depends(require_vendor_scope),
    db: AsyncSession = Depends(get_session),
) -> PerkMutationResponse:
    perk = await GramCatalogService(db).create_perk(
        scope.business_id,
        gram_id=payload.gram_id,
        perk_type=payload.type,
        metadata=payload.metadata,
        cooldown_seconds=payload.cooldown_seconds,
        business_name=payload.business_name or scope.business_name,
    )
    return PerkMutationResponse(perk=serialize_perk(perk))


@router.post("/{gram_id}/{perk_id}/enable", response_model=PerkMutationResponse, summary="Enable a perk")
async def enable_vendor_perk(
    gram_id: str,
    perk_id: str,
    scope: VendorScope = Depends(require_vendor_scope),
    db: AsyncSession = Depends(get_session),
) -> PerkMutationResponse:
    perk = await GramCatalogService(db).set_perk_enabled(
        scope.business_id, gram_id=gram_id, perk_id=perk_id, enabled=True
    )
    return PerkMutationResponse(perk=serialize_perk(perk))


@router.post("/{gram_id}/{perk_id}/disable", response_model=PerkMutationResponse, summary="Disable a perk")
async def disable_vendor_perk(
    gram_id: str,
    perk_id: str,
    scope: VendorScope = Depends(require_vendor_scope),
    db: AsyncSession = Depends(get_session),
) -> PerkMutationResponse:
    perk = await GramCatalogService(db).set_perk_enabled(
        scope.business_id, gram_id=gram_id, perk_id=perk_id, enabled=False
    )
    return PerkMutationResponse(perk=serialize_perk(perk))
