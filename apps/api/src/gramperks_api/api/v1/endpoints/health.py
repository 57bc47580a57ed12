from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Response, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gramperks_api.db.session import get_session


router = APIRouter()


class ReadinessPayload(BaseModel):
    status: Literal["ready", "error"]
    database: str = Field(..., description="Database connectivity status")


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(response: Response, session: AsyncSession = Depends(get_session)) -> ReadinessPayload:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as error:
        logger.warning("Readiness database probe failed", error=str(error))
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessPayload(status="error", database="unreachable")
    return ReadinessPayload(status="ready", database="ok")
