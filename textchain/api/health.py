"""
Health check endpoints for the TextChain SMS gateway.
"""
import time
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from textchain.core.config import get_settings
from textchain.core.dependencies import (
    get_cashout_service,
    get_detached_runner,
    get_settlement_backend,
)
from textchain.core.detached import DetachedCallRunner
from textchain.core.logging import get_logger
from textchain.services.cashout_service import CashoutServiceClient
from textchain.services.settlement_backend import SettlementBackendClient

router = APIRouter()
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    uptime_seconds: float
    timestamp: datetime
    service_name: str


class DependenciesHealthResponse(BaseModel):
    """Dependencies health check response model."""

    settlement_backend: Dict[str, Any]
    cashout_service: Dict[str, Any]
    persistence_configured: bool
    storage_backend: str
    pending_detached_calls: int
    overall_status: str
    message: Optional[str] = None


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Returns service status, version, and uptime.
    """
    settings = get_settings()
    start_time = getattr(request.app.state, "start_time", time.time())

    response = HealthResponse(
        status="healthy",
        version=settings.service_version,
        uptime_seconds=time.time() - start_time,
        timestamp=datetime.utcnow(),
        service_name=settings.service_name,
    )
    logger.info("Health check completed", status=response.status, uptime_seconds=response.uptime_seconds)
    return response


@router.get("/health/dependencies", response_model=DependenciesHealthResponse)
async def dependencies_health_check(
    backend: SettlementBackendClient = Depends(get_settlement_backend),
    cashout: CashoutServiceClient = Depends(get_cashout_service),
    detached: DetachedCallRunner = Depends(get_detached_runner),
):
    """
    Report circuit breaker state for each downstream and whether persistence is configured.

    Circuit state is read locally; no downstream call is made.
    """
    settings = get_settings()
    backend_status = backend.get_circuit_status()
    cashout_status = cashout.get_circuit_status()

    degraded = not (
        settings.persistence_configured
        and backend_status["is_available"]
        and cashout_status["is_available"]
    )
    overall_status = "degraded" if degraded else "healthy"

    message = None
    if not settings.persistence_configured:
        message = "Persistence not configured; account commands reply offline"

    logger.info("Dependencies health check completed", overall_status=overall_status)
    return DependenciesHealthResponse(
        settlement_backend=backend_status,
        cashout_service=cashout_status,
        persistence_configured=settings.persistence_configured,
        storage_backend=settings.storage_backend,
        pending_detached_calls=detached.pending,
        overall_status=overall_status,
        message=message,
    )
