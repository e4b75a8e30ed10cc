"""
FastAPI Application

Main entry point for the Store Analytics API: rollup trigger, payment
webhook, summary reads and health checks.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from store_analytics.config import get_settings
from store_analytics.config.logging import configure_logging
from store_analytics.database.connection import init_database, close_database
from store_analytics.serving.api.middleware import RequestContextMiddleware
from store_analytics.serving.api.routes import (
    health_router,
    rollups_router,
    summaries_router,
    webhooks_router,
)

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Store Analytics API")

    try:
        await init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.warning(f"Database init failed: {e}")

    yield

    logger.info("Shutting down...")
    await close_database()


app = FastAPI(
    title="Store Analytics API",
    description="Monthly revenue rollups and payment reconciliation",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)

# API routes
app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(rollups_router, prefix="/api/v1/rollups", tags=["Rollups"])
app.include_router(summaries_router, prefix="/api/v1/summaries", tags=["Summaries"])
app.include_router(webhooks_router, prefix="/api/v1/webhooks", tags=["Webhooks"])


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Store Analytics API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
