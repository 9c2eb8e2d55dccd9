"""Scraping session health endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from songscout.api.dependencies import get_auth_monitor
from songscout.application.services import AuthMonitor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/status")
async def get_auth_status(monitor: AuthMonitor = Depends(get_auth_monitor)) -> dict[str, Any]:
    """Persisted auth status plus the derived health flag."""
    return {**monitor.get_status().to_dict(), "healthy": monitor.is_healthy()}


# Yo, operators hit this after re-exporting cookies so the UI stops shouting before the next
# successful scrape proves it. It does NOT touch lastSuccessfulAuth.
@router.post("/reset")
async def reset_auth_failures(monitor: AuthMonitor = Depends(get_auth_monitor)) -> dict[str, Any]:
    """Reset the consecutive failure counter."""
    monitor.reset_failure_count()
    logger.info("Auth failure counter reset by operator")
    return {**monitor.get_status().to_dict(), "healthy": monitor.is_healthy()}
