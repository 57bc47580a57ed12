from fastapi import APIRouter

from .endpoints import (
    grams,
    health,
    observability,
    vendor_perks,
    vendor_sessions,
    vendor_validation,
    vendors,
)

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(vendor_sessions.router)
router.include_router(vendor_validation.router)
router.include_router(vendor_perks.router)
router.include_router(vendors.router)
router.include_router(grams.router)
router.include_router(observability.router)
