"""
API Routes Module
"""
from .health import router as health_router
from .rollups import router as rollups_router
from .summaries import router as summaries_router
from .webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "rollups_router",
    "summaries_router",
    "webhooks_router",
]
