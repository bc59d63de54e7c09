"""SQLAlchemy ORM models for TrackBridge."""

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite drops tzinfo on the way back! Run every datetime read from the DB
# through this before comparing it with datetime.now(UTC).
def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Yo, one row per distinct source track. (source_platform, source_id) is unique so a second
# /resolve for the same Spotify track reuses the row instead of hitting the catalog again.
class TrackModel(Base):
    """Resolved canonical track identity."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    source_platform: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    artist: Mapped[str] = mapped_column(String(512), nullable=False)
    isrc: Mapped[str | None] = mapped_column(String(12), nullable=True, index=True)
    album: Mapped[str | None] = mapped_column(String(512), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    artwork_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    links: Mapped[list["PlatformLinkModel"]] = relationship(
        back_populates="track", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("source_platform", "source_id", name="uq_tracks_source"),
    )


# Listen up, this is the table the verification engine lives on. Rows are NEVER deleted:
# a dead link has confidence 0 and keeps its history. url NULL means "absent".
# ix_platform_links_staleness backs the batch query (ORDER BY last_verified_at NULLS FIRST).
class PlatformLinkModel(Base):
    """Per-(track, platform) link with confidence and verification state."""

    __tablename__ = "platform_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False
    )
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_checked_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_verified_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    last_checked_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    track: Mapped[TrackModel] = relationship(back_populates="links")

    __table_args__ = (
        UniqueConstraint("track_id", "platform", name="uq_platform_links_track_platform"),
        Index("ix_platform_links_staleness", "last_verified_at"),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_platform_links_confidence"
        ),
    )


class SmartLinkModel(Base):
    """User-facing smart link (owned by the editor, read here)."""

    __tablename__ = "smart_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    slug: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    template: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cover_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    click_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )


class LinkReportModel(Base):
    """Audit trail of user reports against platform links."""

    __tablename__ = "link_reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False
    )
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (Index("ix_link_reports_track_platform", "track_id", "platform"),)
