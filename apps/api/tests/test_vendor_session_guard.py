from datetime import timedelta

import pytest

from gramperks_api.models.vendor import VendorSession
from gramperks_api.observability.redemptions import RedemptionObservabilityStore
from gramperks_api.services.redemptions.errors import (
    DuplicateVendor,
    InvalidCredentials,
    InvalidSession,
    VendorLockedOut,
)
from gramperks_api.services.vendors.lockout import LockoutService
from gramperks_api.services.vendors.session_guard import (
    VendorSessionGuard,
    hash_session_token,
    hash_vendor_secret,
    verify_vendor_secret,
)


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._ttl: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = value
        if ex is not None:
            self._ttl[key] = ex

    async def incr(self, key: str) -> int:
        value = int(self._store.get(key, "0")) + 1
        self._store[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> None:
        self._ttl[key] = seconds

    async def ttl(self, key: str) -> int:
        if key not in self._store:
            return -2
        return self._ttl.get(key, -1)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)
        self._ttl.pop(key, None)


def _guard(session, clock, **kwargs) -> VendorSessionGuard:
    return VendorSessionGuard(session, clock=clock, ttl_seconds=3600, telemetry=RedemptionObservabilityStore(), **kwargs)


def test_secret_hash_uses_bcrypt() -> None:
    encoded = hash_vendor_secret("open-sesame")
    assert encoded.startswith("$2b$04$")
    assert encoded != hash_vendor_secret("open-sesame")
    assert verify_vendor_secret("open-sesame", encoded)
    assert not verify_vendor_secret("open-sesame ", encoded)
    assert not verify_vendor_secret("open-sesame", "pbkdf2_sha256$1000$garbage")


@pytest.mark.asyncio
async def test_session_lifecycle(session_factory, clock) -> None:
    async with session_factory() as session:
        guard = _guard(session, clock)
        await guard.register_vendor("CAFE57", "open-sesame", business_name="Cafe 57")

        issued = await guard.authenticate("CAFE57", "open-sesame", ip_address="10.0.0.5")
        assert issued.business_id == "CAFE57"
        assert issued.business_name == "Cafe 57"
        assert issued.expires_at == clock.now + timedelta(hours=1)

        scope = await guard.resolve(issued.token)
        assert scope.business_id == "CAFE57"
        assert scope.session_id is not None

        await guard.revoke(issued.token)
        with pytest.raises(InvalidSession):
            await guard.resolve(issued.token)
        with pytest.raises(InvalidSession):
            await guard.revoke(issued.token)

        stored = (await session.execute(VendorSession.__table__.select())).mappings().one()
        assert stored["token_hash"] == hash_session_token(issued.token)
        assert issued.token not in stored.values()


@pytest.mark.asyncio
async def test_expired_session_is_rejected(session_factory, clock) -> None:
    async with session_factory() as session:
        guard = _guard(session, clock)
        await guard.register_vendor("CAFE57", "open-sesame")
        issued = await guard.authenticate("CAFE57", "open-sesame")

        clock.advance(hours=1)
        with pytest.raises(InvalidSession):
            await guard.resolve(issued.token)
        with pytest.raises(InvalidSession):
            await guard.resolve("")


@pytest.mark.asyncio
async def test_credential_failures_are_indistinguishable(session_factory, clock) -> None:
    async with session_factory() as session:
        guard = _guard(session, clock)
        vendor = await guard.register_vendor("CAFE57", "open-sesame")

        with pytest.raises(InvalidCredentials) as wrong_secret:
            await guard.authenticate("CAFE57", "wrong")
        with pytest.raises(InvalidCredentials) as unknown:
            await guard.authenticate("NOBODY", "open-sesame")

        vendor.is_active = False
        await session.commit()
        with pytest.raises(InvalidCredentials) as inactive:
            await guard.verify_credentials("CAFE57", "open-sesame")

        payloads = {str(exc.value.as_payload()) for exc in (wrong_secret, unknown, inactive)}
        assert len(payloads) == 1

        with pytest.raises(DuplicateVendor):
            await guard.register_vendor("CAFE57", "another-secret")


@pytest.mark.asyncio
async def test_lockout_after_repeated_failures(session_factory, clock) -> None:
    redis = FakeRedis()
    lockout = LockoutService(redis_client=redis, threshold=3, window_seconds=60, lockout_seconds=120)  # type: ignore[arg-type]

    async with session_factory() as session:
        guard = _guard(session, clock, lockout=lockout)
        await guard.register_vendor("CAFE57", "open-sesame")

        for _ in range(3):
            with pytest.raises(InvalidCredentials):
                await guard.authenticate("CAFE57", "wrong")

        with pytest.raises(VendorLockedOut) as excinfo:
            await guard.authenticate("CAFE57", "open-sesame")
        assert excinfo.value.retry_after_seconds == 120
        assert excinfo.value.status_code == 429

        # Unknown businesses are throttled the same way.
        for _ in range(3):
            with pytest.raises(InvalidCredentials):
                await guard.authenticate("GHOST", "guess")
        with pytest.raises(VendorLockedOut):
            await guard.authenticate("GHOST", "guess")


@pytest.mark.asyncio
async def test_successful_login_clears_failed_attempts() -> None:
    redis = FakeRedis()
    lockout = LockoutService(redis_client=redis, threshold=3, window_seconds=60, lockout_seconds=120)  # type: ignore[arg-type]

    await lockout.register_failure("CAFE57")
    state = await lockout.register_failure("CAFE57")
    assert state.remaining_attempts == 1

    await lockout.register_success("CAFE57")
    state = await lockout.get_state("CAFE57")
    assert state.locked is False
    assert state.remaining_attempts == 3
