"""Infrastructure persistence layer."""

from .database import Database
from .models import (
    Base,
    LinkReportModel,
    PlatformLinkModel,
    SmartLinkModel,
    TrackModel,
)
from .repositories import (
    LinkReportRepository,
    PlatformLinkRepository,
    SmartLinkRepository,
    TrackRepository,
)

__all__ = [
    "Base",
    "Database",
    "LinkReportModel",
    "LinkReportRepository",
    "PlatformLinkModel",
    "PlatformLinkRepository",
    "SmartLinkModel",
    "SmartLinkRepository",
    "TrackModel",
    "TrackRepository",
]
