"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from trackbridge.domain.entities import (
    LinkReport,
    PlatformLink,
    SmartLink,
    Track,
)
from trackbridge.domain.value_objects import Platform


# Hey future me, repository ports never commit. The caller owns the transaction
# (Database.session_scope) so one verification step is one atomic row write.
class ITrackRepository(ABC):
    """Repository interface for resolved tracks."""

    @abstractmethod
    async def add(self, track: Track) -> None:
        """Add a new track."""
        pass

    @abstractmethod
    async def get_by_id(self, track_id: str) -> Track | None:
        """Get a track by its store id."""
        pass

    @abstractmethod
    async def get_by_source(self, source_platform: Platform, source_id: str) -> Track | None:
        """Get a track by its source catalog reference."""
        pass

    @abstractmethod
    async def get_by_isrc(self, isrc: str) -> Track | None:
        """Get the first stored track carrying an ISRC."""
        pass


class IPlatformLinkRepository(ABC):
    """Repository interface for per-(track, platform) links."""

    @abstractmethod
    async def add_if_absent(self, link: PlatformLink) -> bool:
        """Insert a link unless one exists for (track_id, platform).

        Returns:
            True if a row was inserted
        """
        pass

    @abstractmethod
    async def get(self, track_id: str, platform: Platform) -> PlatformLink | None:
        """Get the link for one track and platform."""
        pass

    @abstractmethod
    async def list_for_track(self, track_id: str) -> list[PlatformLink]:
        """List all present links of a track."""
        pass

    @abstractmethod
    async def list_verification_batch(self, limit: int) -> list[PlatformLink]:
        """List the stalest present, non-dropped links (never-verified first)."""
        pass

    @abstractmethod
    async def update(self, link: PlatformLink) -> None:
        """Overwrite url, confidence and verification fields of a link."""
        pass


class ISmartLinkRepository(ABC):
    """Repository interface for smart links (read side plus click counter)."""

    @abstractmethod
    async def add(self, smart_link: SmartLink) -> None:
        """Add a smart link."""
        pass

    @abstractmethod
    async def get_active_by_slug(self, slug: str) -> SmartLink | None:
        """Get an active smart link by slug."""
        pass

    @abstractmethod
    async def increment_clicks(self, smart_link_id: str) -> None:
        """Atomically bump the click counter."""
        pass


class ILinkReportRepository(ABC):
    """Repository interface for user link reports."""

    @abstractmethod
    async def add(self, report: LinkReport) -> None:
        """Persist a report."""
        pass

    @abstractmethod
    async def count_for_link(self, track_id: str, platform: Platform) -> int:
        """Count reports filed against one link."""
        pass


class ITrackCatalog(ABC):
    """Source-of-truth catalog (Spotify) used by the identity resolver.

    Methods return raw API payloads. None means "doesn't exist" (400/404),
    ExternalServiceError means the catalog itself failed.
    """

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Check if app credentials are available for the metadata endpoint."""
        pass

    @abstractmethod
    async def get_track(self, track_id: str) -> dict[str, Any] | None:
        """Get full track metadata."""
        pass

    @abstractmethod
    async def search_by_isrc(self, isrc: str) -> dict[str, Any] | None:
        """Find the first catalog track carrying an ISRC."""
        pass

    @abstractmethod
    async def get_oembed(self, track_url: str) -> dict[str, Any] | None:
        """Get unauthenticated embed metadata (title, author_name, thumbnail_url)."""
        pass


class ILinkAggregator(ABC):
    """Third-party cross-platform lookup service."""

    @abstractmethod
    async def lookup(
        self,
        isrc: str | None = None,
        source_url: str | None = None,
        query: str | None = None,
    ) -> dict[str, Any] | None:
        """Look up one track. Returns the first result record, or None."""
        pass


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one link health probe."""

    url: str
    status_code: int
    healthy: bool
    final_url: str | None = None
    error: str | None = None


class ILinkProbe(ABC):
    """Checks whether a stored URL is still alive."""

    @abstractmethod
    async def check(self, url: str) -> ProbeResult:
        """Probe a URL. Must not raise for network failures."""
        pass


__all__ = [
    "ILinkAggregator",
    "ILinkProbe",
    "ILinkReportRepository",
    "IPlatformLinkRepository",
    "ISmartLinkRepository",
    "ITrackCatalog",
    "ITrackRepository",
    "ProbeResult",
]
