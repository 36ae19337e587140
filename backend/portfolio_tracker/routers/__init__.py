# backend/portfolio_tracker/routers/__init__.py
"""
API routers.

Usage:
    from portfolio_tracker.routers import portfolio_router, lots_router, tags_router
"""

from portfolio_tracker.routers.lots import router as lots_router
from portfolio_tracker.routers.portfolio import router as portfolio_router
from portfolio_tracker.routers.tags import router as tags_router

__all__ = [
    "portfolio_router",
    "lots_router",
    "tags_router",
]
