from fastapi import APIRouter

from allerguard.api.allergens import router as allergens_router
from allerguard.api.analyze import router as analyze_router
from allerguard.api.health import router as health_router
from allerguard.api.history import router as history_router
from allerguard.api.quick_check import router as quick_check_router

router = APIRouter(prefix="/api")
router.include_router(health_router)
router.include_router(allergens_router)
router.include_router(analyze_router)
router.include_router(quick_check_router)
router.include_router(history_router)
