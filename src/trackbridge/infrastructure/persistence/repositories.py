"""Repository implementations using SQLAlchemy."""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trackbridge.domain.entities import (
    LinkReport,
    PlatformLink,
    SmartLink,
    Track,
    TrackIdentity,
)
from trackbridge.domain.exceptions import EntityNotFoundException, ValidationException
from trackbridge.domain.ports import (
    ILinkReportRepository,
    IPlatformLinkRepository,
    ISmartLinkRepository,
    ITrackRepository,
)
from trackbridge.domain.value_objects import Platform
from trackbridge.infrastructure.persistence.models import (
    LinkReportModel,
    PlatformLinkModel,
    SmartLinkModel,
    TrackModel,
    ensure_utc_aware,
)

logger = logging.getLogger(__name__)


def _platform(value: str, row_id: str) -> Platform:
    try:
        return Platform(value)
    except ValueError as e:
        raise ValidationException(f"Invalid platform '{value}' on row {row_id}") from e


class TrackRepository(ITrackRepository):
    """SQLAlchemy implementation of Track repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, track: Track) -> None:
        """Add a new track."""
        identity = track.identity
        model = TrackModel(
            id=track.id,
            source_platform=identity.source_platform.value,
            source_id=identity.source_id,
            title=identity.title,
            artist=identity.artist,
            isrc=identity.isrc,
            album=identity.album,
            duration_ms=identity.duration_ms,
            artwork_url=identity.artwork_url,
            created_at=track.created_at,
        )
        self.session.add(model)
        await self.session.flush()

    async def get_by_id(self, track_id: str) -> Track | None:
        """Get a track by its store id."""
        model = await self.session.get(TrackModel, track_id)
        return self._to_entity(model) if model else None

    async def get_by_source(self, source_platform: Platform, source_id: str) -> Track | None:
        """Get a track by its source catalog reference."""
        stmt = select(TrackModel).where(
            TrackModel.source_platform == source_platform.value,
            TrackModel.source_id == source_id,
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_isrc(self, isrc: str) -> Track | None:
        """Get the first stored track carrying an ISRC."""
        stmt = (
            select(TrackModel)
            .where(TrackModel.isrc == isrc)
            .order_by(TrackModel.created_at.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    @staticmethod
    def _to_entity(model: TrackModel) -> Track:
        identity = TrackIdentity(
            title=model.title,
            artist=model.artist,
            source_platform=_platform(model.source_platform, model.id),
            source_id=model.source_id,
            isrc=model.isrc,
            album=model.album,
            duration_ms=model.duration_ms,
            artwork_url=model.artwork_url,
        )
        created_at = ensure_utc_aware(model.created_at)
        assert created_at is not None
        return Track(id=model.id, identity=identity, created_at=created_at)


# Hey future me, the Link Store. Writers are the resolution flow (add_if_absent only, it
# never touches an existing row) and the verification/report services (update). Nothing
# here deletes, dead links stay with confidence 0.
class PlatformLinkRepository(IPlatformLinkRepository):
    """SQLAlchemy implementation of PlatformLink repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add_if_absent(self, link: PlatformLink) -> bool:
        """Insert a link unless (track_id, platform) already has one."""
        existing = await self._get_model(link.track_id, link.platform)
        if existing is not None:
            return False
        self.session.add(
            PlatformLinkModel(
                track_id=link.track_id,
                platform=link.platform.value,
                url=link.url,
                confidence=link.confidence,
                last_checked_status=link.last_checked_status,
                last_verified_at=link.last_verified_at,
                last_checked_at=link.last_checked_at,
            )
        )
        await self.session.flush()
        return True

    async def get(self, track_id: str, platform: Platform) -> PlatformLink | None:
        """Get the link for one track and platform."""
        model = await self._get_model(track_id, platform)
        return self._to_entity(model) if model else None

    async def list_for_track(self, track_id: str) -> list[PlatformLink]:
        """List all present links of a track, ordered by platform."""
        stmt = (
            select(PlatformLinkModel)
            .where(
                PlatformLinkModel.track_id == track_id,
                PlatformLinkModel.url.is_not(None),
            )
            .order_by(PlatformLinkModel.platform)
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def list_verification_batch(self, limit: int) -> list[PlatformLink]:
        """List the stalest present, non-dropped links.

        Never-verified links (NULL last_verified_at) come first, then oldest
        verification first. Ties break on created_at and id so the selection
        is deterministic.
        """
        stmt = (
            select(PlatformLinkModel)
            .where(
                PlatformLinkModel.url.is_not(None),
                PlatformLinkModel.confidence > 0,
            )
            .order_by(
                PlatformLinkModel.last_verified_at.asc().nulls_first(),
                PlatformLinkModel.created_at.asc(),
                PlatformLinkModel.id.asc(),
            )
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def update(self, link: PlatformLink) -> None:
        """Overwrite url, confidence and verification fields (last write wins)."""
        model = await self._get_model(link.track_id, link.platform)
        if model is None:
            raise EntityNotFoundException("PlatformLink", f"{link.track_id}/{link.platform.value}")

        model.url = link.url
        model.confidence = link.confidence
        model.last_checked_status = link.last_checked_status
        model.last_verified_at = link.last_verified_at
        model.last_checked_at = link.last_checked_at

    async def _get_model(self, track_id: str, platform: Platform) -> PlatformLinkModel | None:
        stmt = select(PlatformLinkModel).where(
            PlatformLinkModel.track_id == track_id,
            PlatformLinkModel.platform == platform.value,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _to_entity(model: PlatformLinkModel) -> PlatformLink:
        return PlatformLink(
            track_id=model.track_id,
            platform=_platform(model.platform, model.id),
            url=model.url,
            confidence=model.confidence,
            last_checked_status=model.last_checked_status,
            last_verified_at=ensure_utc_aware(model.last_verified_at),
            last_checked_at=ensure_utc_aware(model.last_checked_at),
        )


class SmartLinkRepository(ISmartLinkRepository):
    """SQLAlchemy implementation of SmartLink repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, smart_link: SmartLink) -> None:
        """Add a smart link."""
        self.session.add(
            SmartLinkModel(
                id=smart_link.id,
                slug=smart_link.slug,
                title=smart_link.title,
                template=smart_link.template,
                cover_image_url=smart_link.cover_image_url,
                is_active=smart_link.is_active,
                click_count=smart_link.click_count,
                track_id=smart_link.track_id,
            )
        )
        await self.session.flush()

    async def get_active_by_slug(self, slug: str) -> SmartLink | None:
        """Get an active smart link by slug."""
        stmt = select(SmartLinkModel).where(
            SmartLinkModel.slug == slug,
            SmartLinkModel.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if not model:
            return None
        return SmartLink(
            id=model.id,
            slug=model.slug,
            title=model.title,
            track_id=model.track_id,
            template=model.template,
            cover_image_url=model.cover_image_url,
            is_active=model.is_active,
            click_count=model.click_count,
        )

    # UPDATE ... SET click_count = click_count + 1 so concurrent visits never lose a click.
    async def increment_clicks(self, smart_link_id: str) -> None:
        """Atomically bump the click counter."""
        stmt = (
            update(SmartLinkModel)
            .where(SmartLinkModel.id == smart_link_id)
            .values(click_count=SmartLinkModel.click_count + 1)
        )
        await self.session.execute(stmt)


class LinkReportRepository(ILinkReportRepository):
    """SQLAlchemy implementation of LinkReport repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, report: LinkReport) -> None:
        """Persist a report."""
        self.session.add(
            LinkReportModel(
                id=report.id,
                track_id=report.track_id,
                platform=report.platform.value,
                reason=report.reason,
                created_at=report.created_at,
            )
        )
        await self.session.flush()

    async def count_for_link(self, track_id: str, platform: Platform) -> int:
        """Count reports filed against one link."""
        stmt = select(func.count(LinkReportModel.id)).where(
            LinkReportModel.track_id == track_id,
            LinkReportModel.platform == platform.value,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
