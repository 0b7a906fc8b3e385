"""Versioned API router."""

from fastapi import APIRouter

from . import dms, health

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(dms.router, prefix="/dms", tags=["dms"])

__all__ = ["router"]
