from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from gramperks_api.app import create_app
from gramperks_api.core.logging import redact_extra
from gramperks_api.core.settings import settings
from gramperks_api.observability.redemptions import RedemptionObservabilityStore


def test_redaction_masks_vendor_credentials() -> None:
    redacted = redact_extra({"vendor_secret": "hunter2", "Token": "abc", "business_id": "CAFE57"})
    assert redacted == {"vendor_secret": "[redacted]", "Token": "[redacted]", "business_id": "CAFE57"}


def test_redemption_store_snapshot_and_reset() -> None:
    store = RedemptionObservabilityStore()
    store.record_validation("ok", perks_returned=2)
    store.record_approval("approved", business_id="CAFE57")
    store.record_approval("conflict")
    store.record_vendor_auth("invalid_credentials")

    snapshot = store.snapshot().as_dict()
    assert snapshot["validations"] == {"ok": 1, "perks_returned": 2}
    assert snapshot["approvals"] == {"approved": 1, "business:CAFE57": 1, "conflict": 1}
    assert snapshot["vendor_auth"] == {"invalid_credentials": 1}

    store.reset()
    assert store.snapshot().approvals == {}


@pytest.mark.asyncio
async def test_redemption_snapshot_requires_key() -> None:
    app = create_app()

    previous_key = settings.admin_api_key
    settings.admin_api_key = "snapshot-key"

    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/v1/observability/redemptions")
            assert response.status_code == 401

            response = await client.get(
                "/api/v1/observability/redemptions", headers={"X-API-Key": "snapshot-key"}
            )
            assert response.status_code == 200
            assert response.json()["ok"] is True
    finally:
        settings.admin_api_key = previous_key
