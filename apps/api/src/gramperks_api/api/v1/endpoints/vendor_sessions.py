"""Vendor login and logout."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from gramperks_api.api.dependencies.vendor import extract_session_token, get_vendor_guard
from gramperks_api.services.redemptions.errors import InvalidSession
from gramperks_api.services.vendors.session_guard import VendorSessionGuard


router = APIRouter(prefix="/vendor/sessions", tags=["Vendor"])


class VendorSessionRequest(BaseModel):
    business_id: str = Field(..., min_length=1, max_length=64)
    vendor_secret: str = Field(..., min_length=1, max_length=256)


class VendorSessionResponse(BaseModel):
    ok: bool = True
    token: str
    token_type: str = "bearer"
    business_id: str
    business_name: str | None = None
    expires_at: datetime


@router.post(
    "",
    response_model=VendorSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Exchange vendor credentials for a session token",
)
async def create_vendor_session(
    payload: VendorSessionRequest,
    request: Request,
    guard: VendorSessionGuard = Depends(get_vendor_guard),
) -> VendorSessionResponse:
    issued = await guard.authenticate(
        payload.business_id,
        payload.vendor_secret,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return VendorSessionResponse(
        token=issued.token,
        business_id=issued.business_id,
        business_name=issued.business_name,
        expires_at=issued.expires_at,
    )


@router.delete("/current", summary="Revoke the calling vendor session")
async def revoke_vendor_session(
    token: str | None = Depends(extract_session_token),
    guard: VendorSessionGuard = Depends(get_vendor_guard),
) -> dict[str, bool]:
    if not token:
        raise InvalidSession("Vendor authentication required.")
    await guard.revoke(token)
    return {"ok": True}
