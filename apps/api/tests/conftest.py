import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

import gramperks_api.models  # noqa: E402,F401
from gramperks_api.app import create_app  # noqa: E402
from gramperks_api.db.base import Base  # noqa: E402
from gramperks_api.db.session import get_session  # noqa: E402
from gramperks_api.observability.redemptions import get_redemption_store  # noqa: E402
from gramperks_api.services.vendors import session_guard  # noqa: E402


class FrozenClock:
    """Manually advanced clock for cooldown scenarios."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture(autouse=True)
def reset_redemption_telemetry():
    store = get_redemption_store()
    store.reset()
    yield
    store.reset()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def fast_secret_hashing(monkeypatch):
    # bcrypt's minimum cost keeps vendor registration and login fast under test.
    monkeypatch.setattr(session_guard, "pwd_context", CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))
