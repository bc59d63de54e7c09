"""Dependency injection for API endpoints."""

from collections.abc import AsyncGenerator
from typing import cast

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from trackbridge.application.services import (
    LinkReportService,
    TrackResolutionService,
)
from trackbridge.application.workers.link_verification_worker import (
    LinkVerificationWorker,
)
from trackbridge.infrastructure.persistence.database import Database


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state.

    Uses session_scope() context manager for proper connection lifecycle management.
    FastAPI automatically handles cleanup when the request completes.
    """
    db: Database = request.app.state.db
    async with db.session_scope() as session:
        yield session


# Hey future me, every service below is built ONCE in lifecycle.py and parked on app.state.
# If it's missing, startup went wrong - answer 503 instead of an AttributeError 500.
# Tests replace them directly on app.state.
def _from_state(request: Request, name: str, label: str) -> object:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} not initialized")
    return service


def get_resolution_service(request: Request) -> TrackResolutionService:
    """Get the resolve use case from app state."""
    return cast(
        TrackResolutionService,
        _from_state(request, "resolution_service", "Resolution service"),
    )


def get_report_service(request: Request) -> LinkReportService:
    """Get the report intake from app state."""
    return cast(
        LinkReportService, _from_state(request, "report_service", "Report service")
    )


def get_verification_worker(request: Request) -> LinkVerificationWorker:
    """Get the verification worker from app state."""
    return cast(
        LinkVerificationWorker,
        _from_state(request, "verification_worker", "Verification worker"),
    )
