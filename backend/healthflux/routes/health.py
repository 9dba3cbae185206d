"""
HealthFlux Backend — Health Check Route
========================================

What:  Liveness and dependency status for probes and monitoring.
How:   SELECT 1 through the entity store; Gemini list_models (no token cost),
       short-circuited when the circuit breaker is open.

Status levels:
    healthy:   everything reachable
    degraded:  Gemini unreachable or its circuit is open (store still fine)
    unhealthy: entity store unreachable
"""

import logging
import time

from fastapi import APIRouter, Depends

from healthflux import __version__
from healthflux.dependencies import get_llm_service, get_store
from healthflux.schemas.common import HealthResponse
from healthflux.services.entity_store import EntityStore
from healthflux.services.llm_base import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(
    store: EntityStore = Depends(get_store),
    llm: LLMService = Depends(get_llm_service),
) -> HealthResponse:
    overall = "healthy"

    db_status = "connected"
    if not await store.health_check():
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: entity store unreachable")

    llm_status = "available"
    breaker = getattr(llm, "circuit_breaker", None)
    if breaker is not None and breaker.state == breaker.OPEN:
        llm_status = "circuit_open"
    elif not await llm.health_check():
        llm_status = "unavailable"
    if llm_status != "available" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        llm_service=llm_status,
        uptime_seconds=round(time.time() - _start_time, 2),
        version=__version__,
    )
