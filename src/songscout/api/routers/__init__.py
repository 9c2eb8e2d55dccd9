"""API router initialization."""

from fastapi import APIRouter

from songscout.api.routers import auth, enrichment, events, scheduler

# Mounted at /api in main.py
api_router = APIRouter()

api_router.include_router(enrichment.router)
api_router.include_router(scheduler.router)
api_router.include_router(auth.router)
api_router.include_router(events.router)

__all__ = ["api_router"]
