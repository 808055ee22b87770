"""API route registration."""

from fastapi import APIRouter

from .updates import router as updates_router

api_router = APIRouter()

api_router.include_router(updates_router, prefix="/updates", tags=["updates"])

__all__ = ["api_router"]
