"""Tests for the SQLAlchemy repositories (real SQLite file per test)."""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from trackbridge.domain.entities import LinkReport, PlatformLink, Track, TrackIdentity
from trackbridge.domain.value_objects import Platform
from trackbridge.infrastructure.persistence import (
    Database,
    LinkReportRepository,
    PlatformLinkRepository,
    SmartLinkRepository,
    TrackRepository,
)

DEEZER_URL = "https://www.deezer.com/track/781592622"
TIDAL_URL = "https://tidal.com/browse/track/77646168"


class TestTrackRepository:
    """Test track persistence and lookups."""

    async def test_add_and_get_by_source(self, db: Database, identity: TrackIdentity) -> None:
        track = Track(id=str(uuid.uuid4()), identity=identity)
        async with db.session_scope() as session:
            await TrackRepository(session).add(track)

        async with db.session_scope() as session:
            found = await TrackRepository(session).get_by_source(
                Platform.SPOTIFY, identity.source_id
            )

        assert found is not None
        assert found.id == track.id
        assert found.identity == identity
        assert found.created_at.tzinfo is not None

    async def test_get_by_isrc(self, db: Database, seed: Any) -> None:
        track = await seed(db)

        async with db.session_scope() as session:
            repo = TrackRepository(session)
            found = await repo.get_by_isrc("GBARL9300135")
            missing = await repo.get_by_isrc("USXXX0000000")

        assert found is not None
        assert found.id == track.id
        assert missing is None

    async def test_unknown_id(self, db: Database) -> None:
        async with db.session_scope() as session:
            assert await TrackRepository(session).get_by_id("missing") is None


class TestPlatformLinkRepository:
    """Test the Link Store."""

    async def test_add_if_absent_never_overwrites(self, db: Database, seed: Any) -> None:
        track = await seed(db, links={Platform.DEEZER: (DEEZER_URL, 0.9)})

        async with db.session_scope() as session:
            inserted = await PlatformLinkRepository(session).add_if_absent(
                PlatformLink(
                    track_id=track.id,
                    platform=Platform.DEEZER,
                    url="https://www.deezer.com/track/1",
                    confidence=0.7,
                )
            )

        async with db.session_scope() as session:
            stored = await PlatformLinkRepository(session).get(track.id, Platform.DEEZER)

        assert inserted is False
        assert stored is not None
        assert stored.url == DEEZER_URL
        assert stored.confidence == 0.9

    async def test_list_for_track_skips_absent_links(self, db: Database, seed: Any) -> None:
        track = await seed(db, links={Platform.DEEZER: (DEEZER_URL, 0.9)})
        async with db.session_scope() as session:
            await PlatformLinkRepository(session).add_if_absent(
                PlatformLink(track_id=track.id, platform=Platform.TIDAL, url=None)
            )

        async with db.session_scope() as session:
            links = await PlatformLinkRepository(session).list_for_track(track.id)

        assert [link.platform for link in links] == [Platform.DEEZER]

    async def test_update_roundtrip(self, db: Database, seed: Any) -> None:
        track = await seed(db, links={Platform.DEEZER: (DEEZER_URL, 0.9)})

        async with db.session_scope() as session:
            repo = PlatformLinkRepository(session)
            link = await repo.get(track.id, Platform.DEEZER)
            assert link is not None
            link.record_check(404)
            link.apply_penalty(0.25)
            await repo.update(link)

        async with db.session_scope() as session:
            stored = await PlatformLinkRepository(session).get(track.id, Platform.DEEZER)

        assert stored is not None
        assert stored.confidence == pytest.approx(0.65)
        assert stored.last_checked_status == 404
        assert stored.last_checked_at is not None
        assert stored.last_checked_at.tzinfo is not None
        assert stored.last_verified_at is None

    async def test_verification_batch_order_and_filter(self, db: Database, seed: Any) -> None:
        """Never-verified first, then oldest verification; dropped links excluded."""
        track = await seed(
            db,
            links={
                Platform.DEEZER: (DEEZER_URL, 0.9),
                Platform.TIDAL: (TIDAL_URL, 0.9),
                Platform.YOUTUBE: ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", 0.9),
                Platform.NAPSTER: ("https://web.napster.com/track/tra.1", 0.0),
            },
        )
        now = datetime.now(UTC)
        async with db.session_scope() as session:
            repo = PlatformLinkRepository(session)
            for platform, age in ((Platform.DEEZER, 1), (Platform.TIDAL, 5)):
                link = await repo.get(track.id, platform)
                assert link is not None
                link.last_verified_at = now - timedelta(days=age)
                await repo.update(link)

        async with db.session_scope() as session:
            batch = await PlatformLinkRepository(session).list_verification_batch(10)

        assert [link.platform for link in batch] == [
            Platform.YOUTUBE,
            Platform.TIDAL,
            Platform.DEEZER,
        ]

    async def test_verification_batch_limit(self, db: Database, seed: Any) -> None:
        await seed(
            db,
            links={Platform.DEEZER: (DEEZER_URL, 0.9), Platform.TIDAL: (TIDAL_URL, 0.9)},
        )
        async with db.session_scope() as session:
            batch = await PlatformLinkRepository(session).list_verification_batch(1)
        assert len(batch) == 1


class TestSmartLinkRepository:
    """Test smart link reads and the click counter."""

    async def test_get_active_and_increment(self, db: Database, seed: Any) -> None:
        await seed(db, slug="rick")

        async with db.session_scope() as session:
            repo = SmartLinkRepository(session)
            smart_link = await repo.get_active_by_slug("rick")
            assert smart_link is not None
            await repo.increment_clicks(smart_link.id)
            await repo.increment_clicks(smart_link.id)

        async with db.session_scope() as session:
            reloaded = await SmartLinkRepository(session).get_active_by_slug("rick")

        assert reloaded is not None
        assert reloaded.click_count == 2

    async def test_inactive_slug_is_invisible(self, db: Database, seed: Any) -> None:
        await seed(db, slug="hidden", is_active=False)

        async with db.session_scope() as session:
            assert await SmartLinkRepository(session).get_active_by_slug("hidden") is None


class TestLinkReportRepository:
    """Test report audit rows."""

    async def test_add_and_count(self, db: Database, seed: Any) -> None:
        track = await seed(db, links={Platform.DEEZER: (DEEZER_URL, 0.9)})

        async with db.session_scope() as session:
            repo = LinkReportRepository(session)
            for reason in ("dead", "wrong song"):
                await repo.add(
                    LinkReport(
                        id=str(uuid.uuid4()),
                        track_id=track.id,
                        platform=Platform.DEEZER,
                        reason=reason,
                    )
                )

        async with db.session_scope() as session:
            repo = LinkReportRepository(session)
            assert await repo.count_for_link(track.id, Platform.DEEZER) == 2
            assert await repo.count_for_link(track.id, Platform.TIDAL) == 0
