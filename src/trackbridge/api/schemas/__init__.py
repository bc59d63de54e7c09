"""API request/response schemas."""

from trackbridge.api.schemas.links import (
    IdentityResponse,
    PlatformLinkResponse,
    parse_platform,
)

__all__ = ["IdentityResponse", "PlatformLinkResponse", "parse_platform"]
