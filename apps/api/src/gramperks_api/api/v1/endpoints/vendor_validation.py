"""Vendor scan flow: validate a tag, then approve one perk."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gramperks_api.api.dependencies.vendor import require_vendor_scope
from gramperks_api.db.session import get_session
from gramperks_api.schemas.grams import AnnotatedPerkResponse, serialize_annotated_perk
from gramperks_api.services.grams.store import SqlIdentityStore
from gramperks_api.services.redemptions.approval import ApprovalService
from gramperks_api.services.redemptions.cooldown import as_utc
from gramperks_api.services.redemptions.validation import ValidationService
from gramperks_api.services.vendors.session_guard import VendorScope


router = APIRouter(prefix="/vendor/validate", tags=["Vendor"])


class ValidateResponse(BaseModel):
    ok: bool = True
    gram: dict[str, Any]
    perks: list[AnnotatedPerkResponse]
    evaluated_at: datetime


class ApproveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nfc_tag_id: str = Field(..., alias="nfcTagId", min_length=1)
    perk_id: str = Field(..., min_length=1)


class RedemptionResponse(BaseModel):
    id: UUID
    gram_id: str
    perk_id: str
    business_id: str
    redeemed_at: datetime


class ApproveResponse(BaseModel):
    ok: bool = True
    redemption: RedemptionResponse


@router.get("", response_model=ValidateResponse, summary="List the caller's perks on a scanned gram")
async def validate_tag(
    nfc_tag_id: str = Query(..., alias="nfcTagId", min_length=1),
    scope: VendorScope = Depends(require_vendor_scope),
    db: AsyncSession = Depends(get_session),
) -> ValidateResponse:
    service = ValidationService(SqlIdentityStore(db))
    result = await service.validate(nfc_tag_id, scope.business_id)
    return ValidateResponse(
        gram=result.public_gram(),
        perks=[serialize_annotated_perk(perk) for perk in result.perks],
        evaluated_at=as_utc(result.evaluated_at),
    )


@router.post("/approve", response_model=ApproveResponse, summary="Approve one perk redemption")
async def approve_perk(
    payload: ApproveRequest,
    scope: VendorScope = Depends(require_vendor_scope),
    db: AsyncSession = Depends(get_session),
) -> ApproveResponse:
    service = ApprovalService(SqlIdentityStore(db))
    redemption = await service.approve(payload.nfc_tag_id, payload.perk_id, scope.business_id)
    return ApproveResponse(
        redemption=RedemptionResponse(
            id=redemption.id,
            gram_id=redemption.gram_id,
            perk_id=redemption.perk_id,
            business_id=redemption.business_id,
            redeemed_at=as_utc(redemption.redeemed_at),
        )
    )
