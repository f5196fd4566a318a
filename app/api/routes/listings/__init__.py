from fastapi import APIRouter

from .base import router as crud_router
from .bids import router as bids_router
from .payments import router as payments_router

router = APIRouter(prefix="/listings", tags=["Listings"])
router.include_router(
    crud_router,
)
router.include_router(
    bids_router,
)
router.include_router(
    payments_router,
)
