"""Vendor identity dependencies.

Every vendor-facing route depends on :func:`require_vendor_scope`; the business
id used by validation and approval comes only from the resolved scope, never
from the request body or query.
"""

from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from gramperks_api.core.settings import settings
from gramperks_api.db.session import get_session
from gramperks_api.services.redemptions.errors import InvalidSession
from gramperks_api.services.vendors.lockout import LockoutService
from gramperks_api.services.vendors.session_guard import VendorScope, VendorSessionGuard


_lockout_service: LockoutService | None = None


def get_lockout_service() -> LockoutService | None:
    global _lockout_service
    if not settings.vendor_lockout_enabled:
        return None
    if _lockout_service is None:
        _lockout_service = LockoutService()
    return _lockout_service


async def get_vendor_guard(
    db: AsyncSession = Depends(get_session),
    lockout: LockoutService | None = Depends(get_lockout_service),
) -> VendorSessionGuard:
    return VendorSessionGuard(db, lockout=lockout)


def extract_session_token(
    authorization: str | None = Header(None),
    x_vendor_session: str | None = Header(None, alias="X-Vendor-Session"),
) -> str | None:
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    if x_vendor_session and x_vendor_session.strip():
        return x_vendor_session.strip()
    return None


async def require_vendor_scope(
    token: str | None = Depends(extract_session_token),
    x_business_id: str | None = Header(None, alias="X-Business-Id"),
    x_vendor_secret: str | None = Header(None, alias="X-Vendor-Secret"),
    guard: VendorSessionGuard = Depends(get_vendor_guard),
) -> VendorScope:
    """Resolve the calling vendor from a session token or legacy credential headers."""

    if token:
        return await guard.resolve(token)
    if settings.vendor_legacy_header_auth_enabled and x_business_id and x_vendor_secret:
        return await guard.verify_credentials(x_business_id, x_vendor_secret)
    raise InvalidSession("Vendor authentication required.")


__all__ = [
    "extract_session_token",
    "get_lockout_service",
    "get_vendor_guard",
    "require_vendor_scope",
]
