"""Vendor authentication and server-issued session tokens.

A vendor proves its identity with a business id and secret once and receives
an opaque, short-lived session token. Only the SHA-256 of the token is stored.
Every vendor-facing call resolves to a :class:`VendorScope`, and the scope's
``business_id`` is the only business identity the redemption services trust.
"""

from __future__ import annotations

import asyncio
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional
from uuid import UUID

from loguru import logger
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gramperks_api.core.settings import settings
from gramperks_api.models.vendor import Vendor, VendorSession
from gramperks_api.observability.redemptions import RedemptionObservabilityStore, get_redemption_store
from gramperks_api.services.redemptions.cooldown import as_utc
from gramperks_api.services.redemptions.errors import (
    DuplicateVendor,
    InvalidCredentials,
    InvalidSession,
    VendorLockedOut,
)
from gramperks_api.services.redemptions.validation import Clock, utcnow
from gramperks_api.services.vendors.lockout import LockoutService


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.vendor_secret_bcrypt_rounds,
)


def hash_vendor_secret(secret: str) -> str:
    return pwd_context.hash(secret)


def verify_vendor_secret(secret: str, encoded: str) -> bool:
    try:
        return pwd_context.verify(secret, encoded)
    except ValueError:
        # Unrecognised or malformed stored hash.
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Unknown business ids still pay for one hash so timing does not reveal them.
    return pwd_context.hash(secrets.token_urlsafe(16))


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class VendorScope:
    """Business identity bound to an authenticated vendor call."""

    business_id: str
    business_name: Optional[str] = None
    session_id: Optional[UUID] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class IssuedVendorSession:
    token: str
    business_id: str
    business_name: Optional[str]
    expires_at: datetime


class VendorSessionGuard:
    def __init__(
        self,
        db: AsyncSession,
        *,
        lockout: LockoutService | None = None,
        clock: Clock = utcnow,
        ttl_seconds: int | None = None,
        telemetry: RedemptionObservabilityStore | None = None,
    ) -> None:
        self._db = db
        self._lockout = lockout
        self._clock = clock
        self._ttl = timedelta(seconds=ttl_seconds or settings.vendor_session_ttl_seconds)
        self._telemetry = telemetry or get_redemption_store()

    async def register_vendor(
        self,
        business_id: str,
        vendor_secret: str,
        *,
        business_name: str | None = None,
    ) -> Vendor:
        business_id = business_id.strip()
        if not business_id or not vendor_secret:
            raise ValueError("Vendor registration requires a business id and secret")

        existing = await self._db.execute(select(Vendor.id).where(Vendor.business_id == business_id))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateVendor()

        secret_hash = await asyncio.to_thread(hash_vendor_secret, vendor_secret)
        vendor = Vendor(business_id=business_id, business_name=business_name, secret_hash=secret_hash)
        self._db.add(vendor)
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            raise DuplicateVendor() from exc
        await self._db.refresh(vendor)
        logger.info("Registered vendor", business_id=business_id)
        return vendor

    async def authenticate(
        self,
        business_id: str,
        vendor_secret: str,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> IssuedVendorSession:
        """Verify credentials and issue a session token bound to ``business_id``."""

        vendor = await self._verify(business_id, vendor_secret)

        token = secrets.token_urlsafe(32)
        expires_at = self._clock() + self._ttl
        session = VendorSession(
            token_hash=hash_session_token(token),
            vendor_id=vendor.id,
            business_id=vendor.business_id,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._db.add(session)
        await self._db.commit()

        self._telemetry.record_vendor_auth("session_issued")
        logger.info("Issued vendor session", business_id=vendor.business_id, session_id=str(session.id))
        return IssuedVendorSession(
            token=token,
            business_id=vendor.business_id,
            business_name=vendor.business_name,
            expires_at=as_utc(expires_at),
        )

    async def verify_credentials(self, business_id: str, vendor_secret: str) -> VendorScope:
        """Per-call credential check used by clients that do not hold a session."""

        vendor = await self._verify(business_id, vendor_secret)
        return VendorScope(business_id=vendor.business_id, business_name=vendor.business_name)

    async def resolve(self, token: str) -> VendorScope:
        if not token:
            raise InvalidSession()

        stmt = (
            select(VendorSession)
            .options(selectinload(VendorSession.vendor))
            .where(VendorSession.token_hash == hash_session_token(token))
        )
        result = await self._db.execute(stmt)
        session = result.scalar_one_or_none()
        if session is None or session.revoked_at is not None:
            raise InvalidSession()
        if as_utc(session.expires_at) <= as_utc(self._clock()):
            raise InvalidSession("Vendor session has expired.")
        if session.vendor is None or not session.vendor.is_active:
            raise InvalidSession()

        return VendorScope(
            business_id=session.business_id,
            business_name=session.vendor.business_name,
            session_id=session.id,
            expires_at=as_utc(session.expires_at),
        )

    async def revoke(self, token: str) -> None:
        stmt = select(VendorSession).where(VendorSession.token_hash == hash_session_token(token))
        result = await self._db.execute(stmt)
        session = result.scalar_one_or_none()
        if session is None or session.revoked_at is not None:
            raise InvalidSession()

        session.revoked_at = self._clock()
        await self._db.commit()
        logger.info("Revoked vendor session", business_id=session.business_id, session_id=str(session.id))

    async def _verify(self, business_id: str, vendor_secret: str) -> Vendor:
        business_id = (business_id or "").strip()
        if self._lockout is not None and business_id:
            state = await self._lockout.get_state(business_id)
            if state.locked:
                self._telemetry.record_vendor_auth("locked_out")
                raise VendorLockedOut(state.retry_after_seconds)

        vendor: Vendor | None = None
        if business_id:
            result = await self._db.execute(select(Vendor).where(Vendor.business_id == business_id))
            vendor = result.scalar_one_or_none()

        encoded = vendor.secret_hash if vendor is not None else _dummy_hash()
        matches = await asyncio.to_thread(verify_vendor_secret, vendor_secret or "", encoded)

        if vendor is None or not vendor.is_active or not matches:
            self._telemetry.record_vendor_auth("invalid_credentials")
            if self._lockout is not None and business_id:
                await self._lockout.register_failure(business_id)
            logger.info("Rejected vendor credentials")
            raise InvalidCredentials()

        if self._lockout is not None:
            await self._lockout.register_success(business_id)
        return vendor


__all__ = [
    "IssuedVendorSession",
    "VendorScope",
    "VendorSessionGuard",
    "hash_session_token",
    "hash_vendor_secret",
    "pwd_context",
    "verify_vendor_secret",
]
