"""Canonical Identity Resolver: user input -> TrackIdentity."""

import logging
import re
from dataclasses import replace
from typing import Any

from trackbridge.domain.entities import SPOTIFY_TRACK_URL, TrackIdentity
from trackbridge.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    InputError,
    RateLimitExceededError,
)
from trackbridge.domain.ports import ITrackCatalog
from trackbridge.domain.value_objects import Platform
from trackbridge.domain.value_objects.platform_urls import parse_spotify_track_id

logger = logging.getLogger(__name__)

_ISRC_RE = re.compile(r"^[A-Z]{2}[A-Z0-9]{3}\d{7}$")


def normalize_isrc(raw: str | None) -> str | None:
    """Uppercase an ISRC and drop dashes/spaces. None if it isn't a valid ISRC."""
    if not raw:
        return None
    candidate = re.sub(r"[\s-]", "", raw).upper()
    return candidate if _ISRC_RE.match(candidate) else None


def _first_image_url(album: dict[str, Any]) -> str | None:
    images = album.get("images") or []
    if images and isinstance(images[0], dict):
        return images[0].get("url")
    return None


# Hey future me, this is a pure fetch-and-shape component - it never writes anything.
# None means "NotFound" (bad input or the catalog says no such track). Only genuine
# upstream failures (both metadata AND oEmbed down) bubble up as ExternalServiceError.
class CanonicalIdentityResolver:
    """Resolves Spotify track references into canonical identities."""

    def __init__(self, catalog: ITrackCatalog) -> None:
        """Initialize resolver.

        Args:
            catalog: Source-of-truth catalog client
        """
        self._catalog = catalog

    async def resolve(self, raw_input: str, *, require_isrc: bool = True) -> TrackIdentity | None:
        """Resolve a bare ID, spotify:track URI or open.spotify.com URL.

        Args:
            raw_input: User input
            require_isrc: Whether the caller needs an ISRC (for cross-platform expansion).
                Without it, missing credentials fall back to oEmbed instead of failing.

        Returns:
            TrackIdentity, or None if the input isn't a track reference or the
            track doesn't exist

        Raises:
            ConfigurationError: Credentials missing and an ISRC is required
            ExternalServiceError: Catalog and oEmbed both unreachable
        """
        track_id = parse_spotify_track_id(raw_input)
        if track_id is None:
            logger.debug("Input is not a Spotify track reference: %r", raw_input[:100])
            return None
        return await self.resolve_track_id(track_id, require_isrc=require_isrc)

    async def resolve_track_id(
        self, track_id: str, *, require_isrc: bool = True
    ) -> TrackIdentity | None:
        """Resolve an already-parsed Spotify track ID."""
        if not self._catalog.is_configured:
            if require_isrc:
                raise ConfigurationError("Spotify client credentials not configured")
            return await self._resolve_via_oembed(track_id)

        try:
            payload = await self._catalog.get_track(track_id)
        except (ExternalServiceError, RateLimitExceededError) as e:
            logger.warning("Spotify metadata lookup failed for %s, using oEmbed: %s", track_id, e)
            return await self._resolve_via_oembed(track_id)

        if payload is None:
            return None
        return self._identity_from_track(payload, fallback_id=track_id)

    async def resolve_isrc(self, isrc: str) -> TrackIdentity | None:
        """Resolve a track by ISRC through catalog search.

        Raises:
            InputError: If isrc isn't a valid ISRC
            ConfigurationError: If credentials are missing (no fallback exists)
            ExternalServiceError: Catalog unreachable or still rate limited
        """
        code = normalize_isrc(isrc)
        if code is None:
            raise InputError(f"Invalid ISRC: {isrc!r}")
        if not self._catalog.is_configured:
            raise ConfigurationError("Spotify client credentials not configured")

        try:
            payload = await self._catalog.search_by_isrc(code)
        except RateLimitExceededError as e:
            # Search has no oEmbed-style fallback, a throttled catalog is an upstream failure.
            raise ExternalServiceError("Spotify", str(e), status_code=429) from e
        if payload is None:
            return None
        identity = self._identity_from_track(payload, fallback_id="")
        if identity.isrc is None:
            # Search matched on the ISRC, so keep it even if the payload omits it.
            return replace(identity, isrc=code)
        return identity

    async def _resolve_via_oembed(self, track_id: str) -> TrackIdentity | None:
        track_url = SPOTIFY_TRACK_URL.format(track_id=track_id)
        payload = await self._catalog.get_oembed(track_url)
        if payload is None or not payload.get("title"):
            return None
        return TrackIdentity(
            title=str(payload["title"]),
            artist=str(payload.get("author_name") or ""),
            source_platform=Platform.SPOTIFY,
            source_id=track_id,
            artwork_url=payload.get("thumbnail_url"),
        )

    @staticmethod
    def _identity_from_track(payload: dict[str, Any], fallback_id: str) -> TrackIdentity:
        name = payload.get("name")
        track_id = payload.get("id") or fallback_id
        if not name or not track_id:
            raise ExternalServiceError("spotify", "track payload without name or id")

        artists = payload.get("artists") or []
        album = payload.get("album") or {}
        external_ids = payload.get("external_ids") or {}

        return TrackIdentity(
            title=str(name),
            artist=str(artists[0].get("name", "")) if artists else "",
            source_platform=Platform.SPOTIFY,
            source_id=str(track_id),
            isrc=normalize_isrc(external_ids.get("isrc")),
            album=album.get("name"),
            duration_ms=payload.get("duration_ms"),
            artwork_url=_first_image_url(album),
        )
