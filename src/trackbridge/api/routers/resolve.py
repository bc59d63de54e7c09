"""Resolve API endpoint.

Hey future me - this is the ONLY write path for new links:

- POST /resolve {source_url} → Spotify URL, URI or bare track ID
- POST /resolve {isrc}       → ISRC code (needs Spotify credentials)

Exactly one of the two. A track we already know comes straight from the Link
Store, no upstream calls. Error mapping lives in exception_handlers.py.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from trackbridge.api.dependencies import get_resolution_service
from trackbridge.api.schemas import IdentityResponse, PlatformLinkResponse
from trackbridge.application.services import TrackResolutionService

logger = logging.getLogger(__name__)

router = APIRouter()


class ResolveRequest(BaseModel):
    """Resolve request body. Exactly one field must be set."""

    source_url: str | None = Field(
        default=None,
        max_length=2048,
        validation_alias=AliasChoices("source_url", "sourceUrl"),
        description="Spotify track URL, spotify:track: URI or bare 22-char track ID",
    )
    isrc: str | None = Field(default=None, max_length=32, description="ISRC code")


class ResolveResponse(BaseModel):
    """Resolved identity plus every present link."""

    track_id: str
    created: bool
    identity: IdentityResponse
    links: list[PlatformLinkResponse]


@router.post("", response_model=ResolveResponse)
async def resolve_track(
    body: ResolveRequest,
    service: TrackResolutionService = Depends(get_resolution_service),
) -> ResolveResponse:
    """Resolve a Spotify track or ISRC into cross-platform links.

    Returns:
        Identity and links

    Raises:
        400 malformed input, 404 unknown track, 429 upstream rate limit,
        500 missing credentials, 502 upstream failure
    """
    result = await service.resolve(source_url=body.source_url, isrc=body.isrc)
    return ResolveResponse(
        track_id=result.track.id,
        created=result.created,
        identity=IdentityResponse.from_entity(result.track.identity),
        links=[PlatformLinkResponse.from_entity(link) for link in result.links],
    )
