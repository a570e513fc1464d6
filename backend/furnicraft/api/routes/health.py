"""Health check endpoint with collaborator connectivity probes.

Each probe has a short timeout and a failing probe only shows up as
"disconnected" — the endpoint itself always answers 200.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable

import structlog
from fastapi import APIRouter, Depends

from furnicraft import __version__
from furnicraft.api.deps import get_services
from furnicraft.services import Services

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

_CHECK_TIMEOUT = 3.0  # seconds per service check


async def _probe(name: str, check: Awaitable[bool]) -> str:
    try:
        ok = await asyncio.wait_for(check, timeout=_CHECK_TIMEOUT)
    except Exception as exc:
        logger.debug("health_probe_failed", service=name, error=str(exc))
        return "disconnected"
    return "connected" if ok else "disconnected"


@router.get("/health")
async def health_check(services: Services = Depends(get_services)) -> dict:
    """Probes the database, image storage and Flowise in parallel."""
    database, storage, flowise = await asyncio.gather(
        _probe("database", services.store.ping()),
        _probe("storage", services.storage.ping()),
        _probe("flowise", services.flowise.ping()),
    )
    return {
        "status": "ok",
        "version": __version__,
        "environment": services.settings.environment,
        "analysis_backend": services.settings.analysis_backend,
        "database": database,
        "storage": storage,
        "flowise": flowise,
    }
