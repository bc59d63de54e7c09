"""Domain entities."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from trackbridge.domain.value_objects import Platform

SPOTIFY_TRACK_URL = "https://open.spotify.com/track/{track_id}"


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


def is_healthy_status(status_code: int | None) -> bool:
    """Check if a probe status counts as healthy (2xx-3xx)."""
    return status_code is not None and 200 <= status_code < 400


# Yo, TrackIdentity is the canonical description of a track. FROZEN on purpose: a
# re-resolution builds a new value, nobody patches a working identity in place.
@dataclass(frozen=True)
class TrackIdentity:
    """Canonical track identity resolved from the source catalog."""

    title: str
    artist: str
    source_platform: Platform
    source_id: str
    isrc: str | None = None
    album: str | None = None
    duration_ms: int | None = None
    artwork_url: str | None = None

    @property
    def source_url(self) -> str | None:
        """Canonical web URL of the source track."""
        if self.source_platform == Platform.SPOTIFY:
            return SPOTIFY_TRACK_URL.format(track_id=self.source_id)
        return None


@dataclass
class Track:
    """A persisted track: identity plus its store id."""

    id: str
    identity: TrackIdentity
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class LinkHealth(str, Enum):
    """Verification state of a platform link."""

    UNVERIFIED = "unverified"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DROPPED = "dropped"


# Hey future me, PlatformLink is the row the whole verification engine works on.
# Invariants:
# - confidence always in [0, 1] (clamped in __post_init__ and by every mutator)
# - url None means "absent", which is NOT the same as a present link with confidence 0
# - rows are never deleted, a dead link just sits at confidence 0
@dataclass
class PlatformLink:
    """Per-(track, platform) link with confidence and verification state."""

    track_id: str
    platform: Platform
    url: str | None
    confidence: float = 0.0
    last_checked_status: int | None = None
    last_verified_at: datetime | None = None
    last_checked_at: datetime | None = None

    def __post_init__(self) -> None:
        self.confidence = clamp_confidence(self.confidence)

    @property
    def is_present(self) -> bool:
        """Check if the link has a URL at all."""
        return self.url is not None

    @property
    def health(self) -> LinkHealth:
        """Derive the verification state from the stored fields."""
        if self.confidence <= 0.0:
            return LinkHealth.DROPPED
        if self.last_checked_at is None and self.last_verified_at is None:
            return LinkHealth.UNVERIFIED
        if self.last_checked_status is not None and not is_healthy_status(
            self.last_checked_status
        ):
            return LinkHealth.DEGRADED
        return LinkHealth.HEALTHY

    def apply_penalty(self, amount: float) -> float:
        """Lower confidence by amount, never below 0.

        Returns:
            The new confidence
        """
        self.confidence = clamp_confidence(self.confidence - amount)
        return self.confidence

    def record_check(self, status_code: int, checked_at: datetime | None = None) -> None:
        """Store a probe result.

        A healthy status also moves last_verified_at. An unhealthy one only
        records the status, confidence handling is up to the caller.
        """
        now = checked_at or datetime.now(UTC)
        self.last_checked_status = status_code
        self.last_checked_at = now
        if is_healthy_status(status_code):
            self.last_verified_at = now

    def recover(self, step: float, ceiling: float) -> float:
        """Earn back confidence after a healthy check, capped at ceiling.

        Never lowers a confidence that is already above the ceiling.
        """
        if self.confidence < ceiling:
            self.confidence = clamp_confidence(min(self.confidence + step, ceiling))
        return self.confidence

    def replace_url(
        self, url: str, confidence: float, verified_at: datetime | None = None
    ) -> None:
        """Swap in a freshly re-resolved URL and trust it."""
        now = verified_at or datetime.now(UTC)
        self.url = url
        self.confidence = clamp_confidence(confidence)
        # New URL hasn't been probed yet, the old status belongs to the old URL.
        self.last_checked_status = None
        self.last_verified_at = now
        self.last_checked_at = now


@dataclass
class SmartLink:
    """User-facing composite link (created by the editor, read here)."""

    id: str
    slug: str
    title: str
    track_id: str
    template: str | None = None
    cover_image_url: str | None = None
    is_active: bool = True
    click_count: int = 0


@dataclass
class LinkReport:
    """A user report flagging a link as broken."""

    id: str
    track_id: str
    platform: Platform
    reason: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class VerificationSummary:
    """Outcome counts of one verification run."""

    checked: int = 0
    ok: int = 0
    fixed: int = 0
    degraded: int = 0
    dropped: int = 0
    errors: int = 0

    def merge(self, other: "VerificationSummary") -> None:
        """Add another summary's counts to this one."""
        self.checked += other.checked
        self.ok += other.ok
        self.fixed += other.fixed
        self.degraded += other.degraded
        self.dropped += other.dropped
        self.errors += other.errors

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for logging and API output."""
        return {
            "checked": self.checked,
            "ok": self.ok,
            "fixed": self.fixed,
            "degraded": self.degraded,
            "dropped": self.dropped,
            "errors": self.errors,
        }


__all__ = [
    "LinkHealth",
    "LinkReport",
    "PlatformLink",
    "SmartLink",
    "Track",
    "TrackIdentity",
    "VerificationSummary",
    "clamp_confidence",
    "is_healthy_status",
]
