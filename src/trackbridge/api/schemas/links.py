"""Schemas shared by the resolve and smart-link endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from trackbridge.domain.entities import PlatformLink, TrackIdentity
from trackbridge.domain.exceptions import InputError
from trackbridge.domain.value_objects import Platform


def parse_platform(raw: str) -> Platform:
    """Turn a path/body platform string into a Platform.

    Raises:
        InputError: Unknown platform name (surfaced as 400, not 422)
    """
    try:
        return Platform(raw.strip().lower())
    except ValueError as e:
        allowed = ", ".join(p.value for p in Platform)
        raise InputError(f"Unknown platform {raw!r}, expected one of: {allowed}") from e


class IdentityResponse(BaseModel):
    """Canonical track identity."""

    title: str
    artist: str
    source_platform: Platform
    source_id: str
    source_url: str | None = None
    isrc: str | None = None
    album: str | None = None
    duration_ms: int | None = None
    artwork_url: str | None = None

    @classmethod
    def from_entity(cls, identity: TrackIdentity) -> "IdentityResponse":
        """Build from a domain identity."""
        return cls(
            title=identity.title,
            artist=identity.artist,
            source_platform=identity.source_platform,
            source_id=identity.source_id,
            source_url=identity.source_url,
            isrc=identity.isrc,
            album=identity.album,
            duration_ms=identity.duration_ms,
            artwork_url=identity.artwork_url,
        )


class PlatformLinkResponse(BaseModel):
    """One stored platform link."""

    platform: Platform
    url: str
    confidence: float = Field(ge=0.0, le=1.0)
    health: str
    last_verified_at: datetime | None = None

    @classmethod
    def from_entity(cls, link: PlatformLink) -> "PlatformLinkResponse":
        """Build from a present domain link."""
        assert link.url is not None
        return cls(
            platform=link.platform,
            url=link.url,
            confidence=round(link.confidence, 4),
            health=link.health.value,
            last_verified_at=link.last_verified_at,
        )
