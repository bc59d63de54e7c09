"""API router initialization."""

# Hey future me, this is the MAIN API router aggregator! It gets mounted at settings.api_prefix
# (default /api) in main.py. The health router is NOT in here, probes live at /health/* without
# the prefix.

from fastapi import APIRouter

from trackbridge.api.routers import health, links, report, resolve, verification

api_router = APIRouter()

api_router.include_router(resolve.router, prefix="/resolve", tags=["Resolve"])
api_router.include_router(links.router, prefix="/links", tags=["Smart Links"])
api_router.include_router(report.router, prefix="/report", tags=["Reports"])
api_router.include_router(
    verification.router, prefix="/verification", tags=["Verification"]
)

__all__ = [
    "api_router",
    "health",
    "links",
    "report",
    "resolve",
    "verification",
]
