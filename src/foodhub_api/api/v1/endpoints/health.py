from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from foodhub_api.core.settings import settings
from foodhub_api.db.session import get_session
from foodhub_api.services.rate_limit import InMemoryRateLimitStore


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "starting", "disabled", "error"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    try:
        await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.exception("Readiness database check failed", error=str(exc))
        components["database"] = ComponentStatus(status="error", detail="Database unreachable")
        status = "error"
    else:
        components["database"] = ComponentStatus(status="ready")

    registry = getattr(request.app.state, "rate_limiters", None)
    if registry is None:
        components["rate_limiter"] = ComponentStatus(status="error", detail="Rate limiters not configured")
        status = "error"
    else:
        components["rate_limiter"] = ComponentStatus(
            status="ready",
            detail=f"{type(registry.store).__name__} backend",
        )

    sweeper = getattr(request.app.state, "rate_limit_sweeper", None)
    if registry is not None and not isinstance(registry.store, InMemoryRateLimitStore):
        components["rate_limit_sweeper"] = ComponentStatus(
            status="disabled",
            detail="Backend expires windows itself",
        )
    elif not settings.rate_limit_sweep_enabled:
        components["rate_limit_sweeper"] = ComponentStatus(
            status="disabled",
            detail="Sweeper disabled via settings",
        )
    elif sweeper is not None and sweeper.is_running:
        components["rate_limit_sweeper"] = ComponentStatus(status="ready")
    else:
        components["rate_limit_sweeper"] = ComponentStatus(
            status="starting",
            detail="Rate limit sweeper not running",
        )
        if status == "ready":
            status = "degraded"

    return ReadinessPayload(status=status, components=components)
