"""HTTP routes shared by the server app and the per-route functions."""

from fastapi import APIRouter

from kodbank.api import auth, health

router = APIRouter()
router.include_router(auth.router, tags=["auth"])
router.include_router(health.router, prefix="/health", tags=["health"])

__all__ = ["router"]
