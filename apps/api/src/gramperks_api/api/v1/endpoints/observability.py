"""Observability endpoints for redemption telemetry."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from gramperks_api.api.dependencies.security import require_admin_api_key
from gramperks_api.observability.redemptions import get_redemption_store
from gramperks_api.services.redemptions.locks import get_redemption_locks


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/redemptions",
    dependencies=[Depends(require_admin_api_key)],
    summary="Redemption observability snapshot",
)
async def get_redemption_snapshot() -> dict[str, object]:
    """Aggregated validate/approve/auth outcomes since process start."""

    payload: dict[str, object] = {"ok": True}
    payload.update(get_redemption_store().snapshot().as_dict())
    payload["active_locks"] = len(get_redemption_locks().active_keys())
    return payload
