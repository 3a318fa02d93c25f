from fastapi import APIRouter

from .endpoints import (
    checkout,
    health,
    loyalty,
    promotions,
    wallet,
)

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(promotions.router)
router.include_router(loyalty.router)
router.include_router(wallet.router)
router.include_router(checkout.router)
