from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from gramperks_api.core.settings import settings
from gramperks_api.db.session import engine, init_models
from gramperks_api.domain.perks import InvalidPerkMetadataError
from gramperks_api.services.redemptions.errors import InvalidPerkMetadata, RedemptionError
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.environment == "development":
        await init_models()
        logger.info("Development schema ensured", database_url=engine.url.render_as_string(hide_password=True))
    else:
        logger.info("Skipping schema bootstrap", reason="migrations manage non-development databases")

    try:
        yield
    finally:
        await engine.dispose()


async def redemption_error_handler(request: Request, exc: RedemptionError) -> JSONResponse:
    headers = None
    retry_after = getattr(exc, "retry_after_seconds", None)
    if retry_after:
        headers = {"Retry-After": str(retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.as_payload(), headers=headers)


async def perk_metadata_error_handler(request: Request, exc: InvalidPerkMetadataError) -> JSONResponse:
    return await redemption_error_handler(request, InvalidPerkMetadata(exc.perk_type, exc.errors))


def create_app() -> FastAPI:
    """Application factory for the GramPerks FastAPI service."""
    configure_logging(
        service_name="gramperks-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="GramPerks API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="gramperks-api",
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    app.add_exception_handler(RedemptionError, redemption_error_handler)
    app.add_exception_handler(InvalidPerkMetadataError, perk_metadata_error_handler)
    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
