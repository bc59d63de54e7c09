"""Manual link report endpoint.

Hey future me - end users hit this from the smart link page ("this link is broken").
The response (always 200 unless the link is unknown) goes out as soon as the soft
penalty is committed, the targeted verification run happens later in the worker.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from trackbridge.api.dependencies import get_report_service
from trackbridge.api.schemas import parse_platform
from trackbridge.application.services import LinkReportService

logger = logging.getLogger(__name__)

router = APIRouter()


class ReportRequest(BaseModel):
    """Report body."""

    track_id: str = Field(
        min_length=1, max_length=64, validation_alias=AliasChoices("track_id", "trackId")
    )
    platform: str = Field(min_length=1, max_length=32)
    reason: str = Field(default="", max_length=2000)


class ReportResponse(BaseModel):
    """Report acknowledgement."""

    accepted: bool


@router.post("", response_model=ReportResponse)
async def report_link(
    body: ReportRequest,
    service: LinkReportService = Depends(get_report_service),
) -> ReportResponse:
    """Flag a link as broken.

    Raises:
        400 unknown platform, 404 link not present
    """
    accepted = await service.report(body.track_id, parse_platform(body.platform), body.reason)
    return ReportResponse(accepted=accepted)
