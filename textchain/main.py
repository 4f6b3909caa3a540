"""Main FastAPI application for the TextChain SMS gateway."""

import time

from fastapi import FastAPI

from textchain.api.health import router as health_router
from textchain.api.sms import router as sms_router
from textchain.core.config import get_settings
from textchain.core.dependencies import (
    get_cashout_service,
    get_detached_runner,
    get_settlement_backend,
)
from textchain.core.logging import get_logger, setup_logging
from textchain.core.middleware import CorrelationIDMiddleware

settings = get_settings()

# Initialize logging
setup_logging(settings.log_level)
logger = get_logger(__name__)

app = FastAPI(
    title="TextChain SMS Gateway",
    description="Interprets wallet commands received over SMS and returns the reply text",
    version=settings.service_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(CorrelationIDMiddleware)

app.include_router(health_router, prefix=settings.api_prefix, tags=["health"])
app.include_router(sms_router, prefix=settings.api_prefix, tags=["sms"])


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    app.state.start_time = time.time()
    logger.info(
        "Starting TextChain SMS gateway",
        version=settings.service_version,
        storage_backend=settings.storage_backend,
        persistence_configured=settings.persistence_configured,
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Let detached calls finish, then close downstream clients."""
    logger.info("Shutting down TextChain SMS gateway")

    await get_detached_runner().drain(timeout=settings.fire_and_forget_timeout_seconds)
    await get_settlement_backend().close()
    await get_cashout_service().close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "textchain.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
