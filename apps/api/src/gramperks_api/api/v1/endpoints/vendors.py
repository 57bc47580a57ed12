"""Operator endpoint for registering partner businesses."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from gramperks_api.api.dependencies.security import require_admin_api_key
from gramperks_api.api.dependencies.vendor import get_vendor_guard
from gramperks_api.services.vendors.session_guard import VendorSessionGuard


router = APIRouter(prefix="/vendors", tags=["Vendor"], dependencies=[Depends(require_admin_api_key)])


class VendorCreateRequest(BaseModel):
    business_id: str = Field(..., min_length=1, max_length=64)
    vendor_secret: str = Field(..., min_length=8, max_length=72)
    business_name: str | None = Field(default=None, max_length=255)


class VendorResponse(BaseModel):
    business_id: str
    business_name: str | None = None
    is_active: bool


class VendorEnvelope(BaseModel):
    ok: bool = True
    vendor: VendorResponse


@router.post(
    "",
    response_model=VendorEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Register a vendor business and its secret",
)
async def register_vendor(
    payload: VendorCreateRequest,
    guard: VendorSessionGuard = Depends(get_vendor_guard),
) -> VendorEnvelope:
    vendor = await guard.register_vendor(
        payload.business_id,
        payload.vendor_secret,
        business_name=payload.business_name,
    )
    return VendorEnvelope(
        vendor=VendorResponse(
            business_id=vendor.business_id,
            business_name=vendor.business_name,
            is_active=vendor.is_active,
        )
    )
