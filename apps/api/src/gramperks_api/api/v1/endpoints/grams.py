"""Public gram pages, ownership claims, and producer gram creation."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gramperks_api.api.dependencies.security import require_admin_api_key
from gramperks_api.db.session import get_session
from gramperks_api.schemas.grams import GramResponse, serialize_gram
from gramperks_api.services.grams.catalog import GramCatalogService
from gramperks_api.services.grams.store import SqlIdentityStore
from gramperks_api.services.redemptions.errors import GramNotFound


router = APIRouter(prefix="/grams", tags=["Grams"])


class GramEnvelope(BaseModel):
    ok: bool = True
    gram: GramResponse


class GramListResponse(BaseModel):
    ok: bool = True
    grams: list[GramResponse]


class GramCreateRequest(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    image_url: str = ""
    slug: str | None = Field(default=None, max_length=255)
    nfc_tag_id: str | None = Field(default=None, max_length=128)
    description: str = ""
    effects: dict[str, Any] = Field(default_factory=dict)


class ClaimRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(..., alias="ownerId", min_length=1, max_length=128)
    channel: str = Field(default="nfc", max_length=32)


class ClaimResponse(BaseModel):
    ok: bool = True
    status: str
    gram: GramResponse


@router.get("", response_model=GramListResponse, summary="List grams owned by a collector")
async def list_grams(
    owner_id: str = Query(..., alias="ownerId", min_length=1),
    db: AsyncSession = Depends(get_session),
) -> GramListResponse:
    grams = await GramCatalogService(db).list_grams_by_owner(owner_id)
    return GramListResponse(grams=[serialize_gram(gram) for gram in grams])


@router.post(
    "",
    response_model=GramEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_api_key)],
    summary="Create a gram (producer tooling)",
)
async def create_gram(
    payload: GramCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> GramEnvelope:
    gram = await GramCatalogService(db).create_gram(
        payload.id,
        title=payload.title,
        image_url=payload.image_url,
        slug=payload.slug,
        nfc_tag_id=payload.nfc_tag_id,
        description=payload.description,
        effects=payload.effects,
    )
    return GramEnvelope(gram=serialize_gram(gram, include_disabled=True))


@router.get("/by-tag/{tag}", response_model=GramEnvelope, summary="Resolve a gram from its NFC tag")
async def get_gram_by_tag(tag: str, db: AsyncSession = Depends(get_session)) -> GramEnvelope:
    gram = await SqlIdentityStore(db).get_gram_by_tag(tag)
    if gram is None:
        raise GramNotFound()
    return GramEnvelope(gram=serialize_gram(gram))


@router.get("/by-slug/{slug}", response_model=GramEnvelope, summary="Resolve a gram from its share slug")
async def get_gram_by_slug(slug: str, db: AsyncSession = Depends(get_session)) -> GramEnvelope:
    gram = await SqlIdentityStore(db).get_gram_by_slug(slug)
    if gram is None:
        raise GramNotFound()
    return GramEnvelope(gram=serialize_gram(gram))


@router.get("/{gram_id}", response_model=GramEnvelope, summary="Fetch a gram by id")
async def get_gram(gram_id: str, db: AsyncSession = Depends(get_session)) -> GramEnvelope:
    gram = await SqlIdentityStore(db).get_gram_by_id(gram_id)
    if gram is None:
        raise GramNotFound()
    return GramEnvelope(gram=serialize_gram(gram))


@router.post("/{gram_id}/claim", response_model=ClaimResponse, summary="Claim an unowned gram")
async def claim_gram(
    gram_id: str,
    payload: ClaimRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> ClaimResponse:
    result = await GramCatalogService(db).claim(
        gram_id,
        payload.owner_id,
        channel=payload.channel,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return ClaimResponse(status=result.status.value, gram=serialize_gram(result.gram))
