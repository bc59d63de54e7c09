"""Resolve use case: input -> identity -> expansion -> normalized links -> Link Store."""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from trackbridge.application.services.identity_resolver import (
    CanonicalIdentityResolver,
    normalize_isrc,
)
from trackbridge.application.services.link_expander import (
    LOOKUP_CONFIDENCE,
    CrossPlatformLinkExpander,
    lookup_key,
)
from trackbridge.domain.entities import PlatformLink, Track, TrackIdentity
from trackbridge.domain.exceptions import EntityNotFoundException, InputError
from trackbridge.domain.value_objects import Platform
from trackbridge.domain.value_objects.platform_urls import parse_spotify_track_id
from trackbridge.infrastructure.persistence.database import Database
from trackbridge.infrastructure.persistence.repositories import (
    PlatformLinkRepository,
    TrackRepository,
)

logger = logging.getLogger(__name__)

# The source link comes straight from the catalog, nothing is more trustworthy.
SOURCE_LINK_CONFIDENCE = 1.0

# A lost insert race is retried once, the retry sees the winner's rows.
STORE_ATTEMPTS = 2


@dataclass
class ResolutionResult:
    """A resolved track and its present links."""

    track: Track
    links: list[PlatformLink]
    created: bool


# Hey future me, the order of operations matters here:
# 1. Look the track up by (source_platform, source_id) or ISRC FIRST - a known track with
#    links costs zero upstream calls.
# 2. External calls (catalog, aggregator) run OUTSIDE any DB transaction.
# 3. Links are insert-if-absent. An existing row belongs to the verification engine
#    from then on, resolve never overwrites it.
class TrackResolutionService:
    """Runs the resolve flow and persists its outcome."""

    def __init__(
        self,
        database: Database,
        resolver: CanonicalIdentityResolver,
        expander: CrossPlatformLinkExpander,
    ) -> None:
        """Initialize service.

        Args:
            database: Database for session scopes
            resolver: Canonical identity resolver
            expander: Cross-platform link expander
        """
        self._db = database
        self._resolver = resolver
        self._expander = expander

    async def resolve(
        self, source_url: str | None = None, isrc: str | None = None
    ) -> ResolutionResult:
        """Resolve a Spotify URL/URI/ID or an ISRC into stored platform links.

        Raises:
            InputError: Neither or both inputs given, or input unparseable
            EntityNotFoundException: Track doesn't exist upstream
            ConfigurationError: Missing credentials
            ExternalServiceError: Catalog unreachable
        """
        if bool(source_url) == bool(isrc):
            raise InputError("Provide exactly one of source_url or isrc")

        if source_url:
            track_id = parse_spotify_track_id(source_url)
            if track_id is None:
                raise InputError(f"Not a Spotify track URL, URI or ID: {source_url[:100]!r}")
            existing = await self._find_by_source(track_id)
            identity = existing.identity if existing else None
            if identity is None:
                identity = await self._resolver.resolve_track_id(track_id)
                if identity is None:
                    raise EntityNotFoundException("Track", track_id)
        else:
            code = normalize_isrc(isrc)
            if code is None:
                raise InputError(f"Invalid ISRC: {isrc!r}")
            existing = await self._find_by_isrc(code)
            identity = existing.identity if existing else None
            if identity is None:
                identity = await self._resolver.resolve_isrc(code)
                if identity is None:
                    raise EntityNotFoundException("Track", code)

        if existing is not None:
            stored_links = await self._list_links(existing.id)
            if stored_links:
                logger.debug("Track %s already resolved, reusing stored links", existing.id)
                return ResolutionResult(track=existing, links=stored_links, created=False)

        expanded = await self._expander.expand(
            isrc=identity.isrc,
            source_url=identity.source_url,
            title=identity.title,
            artist=identity.artist,
        )
        return await self._store(identity, existing, expanded)

    async def _find_by_source(self, track_id: str) -> Track | None:
        async with self._db.session_scope() as session:
            return await TrackRepository(session).get_by_source(Platform.SPOTIFY, track_id)

    async def _find_by_isrc(self, isrc: str) -> Track | None:
        async with self._db.session_scope() as session:
            return await TrackRepository(session).get_by_isrc(isrc)

    async def _list_links(self, track_id: str) -> list[PlatformLink]:
        async with self._db.session_scope() as session:
            return await PlatformLinkRepository(session).list_for_track(track_id)

    # Hey future me, two first-time resolves of the same track can both miss the lookup in
    # resolve() and race to insert. The loser hits uq_tracks_source (or the per-platform
    # link constraint), its scope rolls back, and the next attempt reads the winner's rows.
    async def _store(
        self,
        identity: TrackIdentity,
        existing: Track | None,
        expanded: dict[Platform, str],
    ) -> ResolutionResult:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._store_once(identity, existing, expanded)
            except IntegrityError:
                if attempt >= STORE_ATTEMPTS:
                    raise
                logger.debug(
                    "Concurrent resolve stored track %s first, re-reading", identity.source_id
                )

    async def _store_once(
        self,
        identity: TrackIdentity,
        existing: Track | None,
        expanded: dict[Platform, str],
    ) -> ResolutionResult:
        expansion_confidence = LOOKUP_CONFIDENCE[lookup_key(identity.isrc, identity.source_url)]

        async with self._db.session_scope() as session:
            tracks = TrackRepository(session)
            links = PlatformLinkRepository(session)

            track = existing
            created = False
            if track is None:
                # A concurrent resolve may have inserted it meanwhile.
                track = await tracks.get_by_source(identity.source_platform, identity.source_id)
            if track is None:
                track = Track(id=str(uuid.uuid4()), identity=identity)
                await tracks.add(track)
                created = True

            inserted = 0
            if identity.source_url:
                inserted += await links.add_if_absent(
                    PlatformLink(
                        track_id=track.id,
                        platform=identity.source_platform,
                        url=identity.source_url,
                        confidence=SOURCE_LINK_CONFIDENCE,
                    )
                )
            for platform, url in expanded.items():
                if platform == identity.source_platform and identity.source_url:
                    continue
                inserted += await links.add_if_absent(
                    PlatformLink(
                        track_id=track.id,
                        platform=platform,
                        url=url,
                        confidence=expansion_confidence,
                    )
                )

            stored = await links.list_for_track(track.id)

        logger.info(
            "Resolved %r by %r: %d link(s) stored (%d new)",
            identity.title,
            identity.artist,
            len(stored),
            inserted,
        )
        return ResolutionResult(track=track, links=stored, created=created)
