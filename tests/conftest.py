"""Shared pytest fixtures."""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from trackbridge.config import (
    AcrCloudSettings,
    DatabaseSettings,
    Settings,
    SpotifySettings,
    VerificationSettings,
)
from trackbridge.domain.entities import PlatformLink, SmartLink, Track, TrackIdentity
from trackbridge.domain.ports import ILinkProbe, ProbeResult
from trackbridge.domain.value_objects import Platform
from trackbridge.infrastructure.persistence import (
    Database,
    PlatformLinkRepository,
    SmartLinkRepository,
    TrackRepository,
)
from trackbridge.main import create_app

SPOTIFY_ID = "4uLU6hMCjMI75M1A2tKUQC"

# (url, confidence) per platform
LinkSeed = dict[Platform, tuple[str, float]]
SeedTrack = Callable[..., Awaitable[Track]]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file, worker loops disabled."""
    return Settings(
        database=DatabaseSettings(
            url=f"sqlite+aiosqlite:///{tmp_path / 'trackbridge-test.db'}",
            auto_create_tables=True,
        ),
        spotify=SpotifySettings(client_id="test-client-id", client_secret="test-secret"),
        acrcloud=AcrCloudSettings(bearer_token="test-token"),
        verification=VerificationSettings(enabled=False),
    )


@pytest.fixture
async def db(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with all tables created."""
    database = Database(settings)
    await database.create_tables()
    yield database
    await database.close()


def make_identity(
    source_id: str = SPOTIFY_ID,
    title: str = "Never Gonna Give You Up",
    artist: str = "Rick Astley",
    isrc: str | None = "GBARL9300135",
) -> TrackIdentity:
    """Build a Spotify-sourced identity."""
    return TrackIdentity(
        title=title,
        artist=artist,
        source_platform=Platform.SPOTIFY,
        source_id=source_id,
        isrc=isrc,
        album="Whenever You Need Somebody",
        duration_ms=213573,
    )


async def seed_track(
    database: Database,
    *,
    links: LinkSeed | None = None,
    identity: TrackIdentity | None = None,
    slug: str | None = None,
    is_active: bool = True,
) -> Track:
    """Insert a track, its links and optionally a smart link pointing at it."""
    track = Track(id=str(uuid.uuid4()), identity=identity or make_identity())
    async with database.session_scope() as session:
        await TrackRepository(session).add(track)
        link_repo = PlatformLinkRepository(session)
        for platform, (url, confidence) in (links or {}).items():
            await link_repo.add_if_absent(
                PlatformLink(
                    track_id=track.id, platform=platform, url=url, confidence=confidence
                )
            )
        if slug is not None:
            await SmartLinkRepository(session).add(
                SmartLink(
                    id=str(uuid.uuid4()),
                    slug=slug,
                    title=track.identity.title,
                    track_id=track.id,
                    template="minimal",
                    is_active=is_active,
                )
            )
    return track


# The lifespan builds its own LinkProbe. Swapping the class keeps targeted runs queued by
# reports (the queue loop always runs) off the network.
@pytest.fixture
def app(settings: Settings, fake_probe: "FakeProbe", mocker) -> FastAPI:
    """App wired to the test settings, probing through the fake probe."""
    mocker.patch("trackbridge.infrastructure.lifecycle.LinkProbe", return_value=fake_probe)
    return create_app(settings)


# Hey future me - the lifespan runs inside TestClient's own event loop (a portal thread).
# Anything touching app.state.db has to run there too, hence client.portal.call(...).
@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """TestClient with the lifespan (db, services, worker) started."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def identity() -> TrackIdentity:
    """Default Spotify identity with an ISRC."""
    return make_identity()


@pytest.fixture
def seed() -> SeedTrack:
    """Async helper that seeds tracks, links and smart links."""
    return seed_track


@pytest.fixture
def identity_factory() -> Callable[..., TrackIdentity]:
    """Factory for Spotify identities with overridable fields."""
    return make_identity


class FakeProbe(ILinkProbe):
    """Probe answering from a url -> status map (200 for unknown urls)."""

    def __init__(self, statuses: dict[str, int | Exception] | None = None) -> None:
        self.statuses = statuses or {}
        self.checked: list[str] = []
        self.closed = False

    async def check(self, url: str) -> ProbeResult:
        self.checked.append(url)
        status = self.statuses.get(url, 200)
        if isinstance(status, Exception):
            raise status
        return ProbeResult(url=url, status_code=status, healthy=200 <= status < 400)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_probe() -> FakeProbe:
    """Fake probe; set fake_probe.statuses[url] to make a link fail."""
    return FakeProbe()
