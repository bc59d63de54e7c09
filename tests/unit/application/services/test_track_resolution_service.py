"""Tests for the resolve use case (real SQLite, mocked upstreams)."""

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from trackbridge.application.services.track_resolution_service import TrackResolutionService
from trackbridge.domain.entities import TrackIdentity
from trackbridge.domain.exceptions import EntityNotFoundException, InputError
from trackbridge.domain.value_objects import Platform
from trackbridge.infrastructure.persistence import (
    Database,
    PlatformLinkRepository,
    TrackRepository,
)

SPOTIFY_ID = "4uLU6hMCjMI75M1A2tKUQC"
SPOTIFY_URL = f"https://open.spotify.com/track/{SPOTIFY_ID}"
DEEZER_URL = "https://www.deezer.com/track/781592622"
TIDAL_URL = "https://tidal.com/browse/track/77646168"


@pytest.fixture
def resolver(identity: TrackIdentity) -> MagicMock:
    mock = MagicMock()
    mock.resolve_track_id = AsyncMock(return_value=identity)
    mock.resolve_isrc = AsyncMock(return_value=identity)
    return mock


@pytest.fixture
def expander() -> MagicMock:
    mock = MagicMock()
    mock.expand = AsyncMock(
        return_value={
            Platform.SPOTIFY: SPOTIFY_URL,
            Platform.DEEZER: DEEZER_URL,
            Platform.TIDAL: TIDAL_URL,
        }
    )
    return mock


@pytest.fixture
def service(db: Database, resolver: MagicMock, expander: MagicMock) -> TrackResolutionService:
    return TrackResolutionService(db, resolver, expander)


class TestResolveNewTrack:
    """First resolve of a track: identity, expansion, store."""

    async def test_stores_source_and_expanded_links(
        self, service: TrackResolutionService, expander: MagicMock
    ) -> None:
        result = await service.resolve(source_url=f"{SPOTIFY_URL}?si=abc")

        assert result.created is True
        confidences = {link.platform: link.confidence for link in result.links}
        assert confidences == {
            Platform.SPOTIFY: 1.0,
            Platform.DEEZER: 0.9,
            Platform.TIDAL: 0.9,
        }
        expander.expand.assert_awaited_once_with(
            isrc="GBARL9300135",
            source_url=SPOTIFY_URL,
            title="Never Gonna Give You Up",
            artist="Rick Astley",
        )

    async def test_links_are_persisted(self, service: TrackResolutionService, db: Database) -> None:
        result = await service.resolve(source_url=SPOTIFY_ID)

        async with db.session_scope() as session:
            stored = await PlatformLinkRepository(session).list_for_track(result.track.id)

        assert {link.url for link in stored} == {SPOTIFY_URL, DEEZER_URL, TIDAL_URL}
        assert all(link.last_verified_at is None for link in stored)

    async def test_without_isrc_expansion_is_less_trusted(
        self,
        service: TrackResolutionService,
        resolver: MagicMock,
        identity_factory: Callable[..., TrackIdentity],
    ) -> None:
        resolver.resolve_track_id.return_value = identity_factory(isrc=None)

        result = await service.resolve(source_url=SPOTIFY_ID)

        deezer = next(link for link in result.links if link.platform == Platform.DEEZER)
        assert deezer.confidence == pytest.approx(0.8)

    async def test_empty_expansion_still_stores_source_link(
        self, service: TrackResolutionService, expander: MagicMock
    ) -> None:
        expander.expand.return_value = {}

        result = await service.resolve(source_url=SPOTIFY_ID)

        assert [(link.platform, link.url) for link in result.links] == [
            (Platform.SPOTIFY, SPOTIFY_URL)
        ]

    async def test_resolve_by_isrc(
        self, service: TrackResolutionService, resolver: MagicMock
    ) -> None:
        result = await service.resolve(isrc="gb-arl-93-00135")

        assert result.created is True
        resolver.resolve_isrc.assert_awaited_once_with("GBARL9300135")
        resolver.resolve_track_id.assert_not_awaited()


class TestResolveKnownTrack:
    """A stored track with links costs no upstream calls."""

    async def test_second_resolve_reuses_links(
        self, service: TrackResolutionService, resolver: MagicMock, expander: MagicMock
    ) -> None:
        first = await service.resolve(source_url=SPOTIFY_ID)
        resolver.resolve_track_id.reset_mock()
        expander.expand.reset_mock()

        second = await service.resolve(source_url=SPOTIFY_URL)

        assert second.created is False
        assert second.track.id == first.track.id
        assert len(second.links) == 3
        resolver.resolve_track_id.assert_not_awaited()
        expander.expand.assert_not_awaited()

    async def test_isrc_hits_stored_track(
        self, service: TrackResolutionService, resolver: MagicMock, db: Database, seed
    ) -> None:
        track = await seed(db, links={Platform.DEEZER: (DEEZER_URL, 0.4)})

        result = await service.resolve(isrc="GBARL9300135")

        assert result.track.id == track.id
        assert result.links[0].confidence == pytest.approx(0.4)
        resolver.resolve_isrc.assert_not_awaited()

    async def test_stored_track_without_links_gets_expanded(
        self, service: TrackResolutionService, expander: MagicMock, db: Database, seed
    ) -> None:
        track = await seed(db)

        result = await service.resolve(source_url=SPOTIFY_ID)

        assert result.created is False
        assert result.track.id == track.id
        assert len(result.links) == 3
        expander.expand.assert_awaited_once()


class TestResolveErrors:
    """Input and not-found handling."""

    @pytest.mark.parametrize(
        "kwargs",
        [{}, {"source_url": SPOTIFY_URL, "isrc": "GBARL9300135"}, {"source_url": ""}],
    )
    async def test_exactly_one_input(self, service: TrackResolutionService, kwargs) -> None:
        with pytest.raises(InputError):
            await service.resolve(**kwargs)

    async def test_unparseable_url(self, service: TrackResolutionService) -> None:
        with pytest.raises(InputError):
            await service.resolve(source_url="https://open.spotify.com/album/xyz")

    async def test_invalid_isrc(self, service: TrackResolutionService) -> None:
        with pytest.raises(InputError):
            await service.resolve(isrc="nope")

    async def test_unknown_track(
        self, service: TrackResolutionService, resolver: MagicMock, expander: MagicMock
    ) -> None:
        resolver.resolve_track_id.return_value = None

        with pytest.raises(EntityNotFoundException):
            await service.resolve(source_url=SPOTIFY_ID)
        expander.expand.assert_not_awaited()


class TestConcurrentResolve:
    """Two first-time resolves of one track end on the same stored rows."""

    async def test_simultaneous_first_resolves_share_one_track(
        self,
        service: TrackResolutionService,
        resolver: MagicMock,
        identity: TrackIdentity,
        db: Database,
    ) -> None:
        async def slow_lookup(track_id: str) -> TrackIdentity:
            await asyncio.sleep(0.05)
            return identity

        resolver.resolve_track_id.side_effect = slow_lookup

        first, second = await asyncio.gather(
            service.resolve(source_url=SPOTIFY_ID),
            service.resolve(source_url=SPOTIFY_URL),
        )

        assert first.track.id == second.track.id
        assert sorted([first.created, second.created]) == [False, True]
        assert {link.url for link in first.links} == {SPOTIFY_URL, DEEZER_URL, TIDAL_URL}
        assert {link.url for link in second.links} == {SPOTIFY_URL, DEEZER_URL, TIDAL_URL}
        async with db.session_scope() as session:
            stored = await TrackRepository(session).get_by_source(Platform.SPOTIFY, SPOTIFY_ID)
            links = await PlatformLinkRepository(session).list_for_track(first.track.id)
        assert stored is not None
        assert stored.id == first.track.id
        assert len(links) == 3

    async def test_conflict_retried_once_then_raised(
        self, service: TrackResolutionService, mocker
    ) -> None:
        conflict = IntegrityError("INSERT INTO tracks", {}, Exception("UNIQUE constraint failed"))
        store_once = mocker.patch.object(service, "_store_once", side_effect=conflict)

        with pytest.raises(IntegrityError):
            await service.resolve(source_url=SPOTIFY_ID)
        assert store_once.await_count == 2
