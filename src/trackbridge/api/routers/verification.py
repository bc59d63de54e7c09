"""Verification control endpoints (internal).

- POST /verification/run    → run one sweep right now, returns its summary
- GET  /verification/status → worker statistics
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from trackbridge.api.dependencies import get_verification_worker
from trackbridge.application.workers.link_verification_worker import (
    LinkVerificationWorker,
)

router = APIRouter()


class VerificationSummaryResponse(BaseModel):
    """Counts of one verification run."""

    checked: int
    ok: int
    fixed: int
    degraded: int
    dropped: int
    errors: int


@router.post("/run", response_model=VerificationSummaryResponse)
async def run_verification(
    worker: LinkVerificationWorker = Depends(get_verification_worker),
) -> VerificationSummaryResponse:
    """Run a verification sweep synchronously."""
    summary = await worker.run_sweep()
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Verification sweep failed, see logs",
        )
    return VerificationSummaryResponse(**summary.to_dict())


@router.get("/status")
async def verification_status(
    worker: LinkVerificationWorker = Depends(get_verification_worker),
) -> dict[str, Any]:
    """Get verification worker statistics."""
    return worker.get_stats()
