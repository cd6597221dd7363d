"""API module for the AI Studio.

All routers are mounted under /api.
"""

from fastapi import APIRouter

from app.api.admin import router as admin_router
from app.api.auth import router as auth_router
from app.api.credits import router as credits_router
from app.api.generation import router as generation_router
from app.api.video import router as video_router

router = APIRouter(prefix="/api")
router.include_router(auth_router)
router.include_router(admin_router)
router.include_router(generation_router)
router.include_router(video_router)
router.include_router(credits_router)

__all__ = ["router"]
