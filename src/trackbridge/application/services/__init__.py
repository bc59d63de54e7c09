"""Application services."""

from trackbridge.application.services.identity_resolver import (
    CanonicalIdentityResolver,
    normalize_isrc,
)
from trackbridge.application.services.link_expander import CrossPlatformLinkExpander
from trackbridge.application.services.link_report_service import LinkReportService
from trackbridge.application.services.link_verification_service import (
    LinkVerificationService,
)
from trackbridge.application.services.track_resolution_service import (
    ResolutionResult,
    TrackResolutionService,
)

__all__ = [
    "CanonicalIdentityResolver",
    "CrossPlatformLinkExpander",
    "LinkReportService",
    "LinkVerificationService",
    "ResolutionResult",
    "TrackResolutionService",
    "normalize_isrc",
]
