from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from gramperks_api.core.settings import settings
from gramperks_api.db.session import get_session
from gramperks_api.domain.perks import PerkType
from gramperks_api.models.gram import Gram, GramPerk


@pytest.fixture(autouse=True)
def admin_key(monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", "producer-key")


async def _seed(session_factory) -> None:
    async with session_factory() as session:
        session.add(
            Gram(
                id="TEST1",
                slug="test-gram",
                nfc_tag_id="TAG-TEST1",
                title="Test Gram",
                image_url="https://cdn.example.com/test1.png",
                description="First of its kind",
                effects={"sparkle": "gold"},
            )
        )
        session.add(
            GramPerk(
                gram_id="TEST1",
                perk_id="cafe10",
                business_id="CAFE57",
                business_name="Cafe 57",
                type=PerkType.DISCOUNT,
                metadata_json={"discount_percent": 10},
                cooldown_seconds=86400,
            )
        )
        await session.commit()


@pytest.mark.asyncio
async def test_public_gram_lookups(app_with_db) -> None:
    app, session_factory = app_with_db
    await _seed(session_factory)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        for path in ("/api/v1/grams/TEST1", "/api/v1/grams/by-tag/TAG-TEST1", "/api/v1/grams/by-slug/test-gram"):
            response = await client.get(path)
            assert response.status_code == 200, path
            gram = response.json()["gram"]
            assert gram["id"] == "TEST1"
            assert gram["effects"] == {"sparkle": "gold"}
            assert [perk["summary"] for perk in gram["perks"]] == ["10% off"]

        response = await client.get("/api/v1/grams/by-tag/TAG-NOPE")
        assert response.status_code == 404
        assert response.json() == {"ok": False, "error": "GRAM_NOT_FOUND", "message": "Gram not found."}


@pytest.mark.asyncio
async def test_claim_once_and_list_by_owner(app_with_db) -> None:
    app, session_factory = app_with_db
    await _seed(session_factory)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/grams/TEST1/claim", json={"owner_id": "111"})
        assert response.status_code == 200
        assert response.json()["status"] == "claimed"
        assert response.json()["gram"]["owner_id"] == "111"

        response = await client.post("/api/v1/grams/TEST1/claim", json={"ownerId": "222", "channel": "share"})
        assert response.json()["status"] == "already_claimed"

        response = await client.post("/api/v1/grams/MISSING/claim", json={"owner_id": "111"})
        assert response.status_code == 404

        response = await client.get("/api/v1/grams", params={"ownerId": "111"})
        assert [gram["id"] for gram in response.json()["grams"]] == ["TEST1"]

        response = await client.get("/api/v1/grams", params={"ownerId": "222"})
        assert response.json()["grams"] == []


@pytest.mark.asyncio
async def test_gram_creation_requires_admin_key(app_with_db) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        payload = {"id": "G77", "title": "Blue Sitting Cat #2"}

        response = await client.post("/api/v1/grams", json=payload, headers={"X-API-Key": "wrong"})
        assert response.status_code == 401

        response = await client.post("/api/v1/grams", json=payload, headers={"X-API-Key": "producer-key"})
        assert response.status_code == 201
        gram = response.json()["gram"]
        assert gram["slug"] == "blue-sitting-cat-2"
        assert gram["nfc_tag_id"] == "TAG-G77"

        response = await client.post("/api/v1/grams", json=payload, headers={"X-API-Key": "producer-key"})
        assert response.status_code == 409
        assert response.json()["error"] == "DUPLICATE_GRAM"


@pytest.mark.asyncio
async def test_health_endpoints(app_with_db) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

        response = await client.get("/api/v1/readyz")
        assert response.json() == {"status": "ready", "database": "ok"}


class _UnreachableSession:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.mark.asyncio
async def test_readiness_reports_unreachable_database(app_with_db) -> None:
    app, _ = app_with_db

    async def unreachable_session():
        yield _UnreachableSession()

    app.dependency_overrides[get_session] = unreachable_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/readyz")

    assert response.status_code == 503
    assert response.json() == {"status": "error", "database": "unreachable"}
