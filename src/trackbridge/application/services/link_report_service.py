"""Manual Report Intake: an end user flags a broken link."""

import logging
import uuid

from trackbridge.application.workers.verification_queue import VerificationQueue
from trackbridge.domain.entities import LinkReport
from trackbridge.domain.exceptions import EntityNotFoundException
from trackbridge.domain.value_objects import Platform
from trackbridge.infrastructure.persistence.database import Database
from trackbridge.infrastructure.persistence.repositories import (
    LinkReportRepository,
    PlatformLinkRepository,
)

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 500


class LinkReportService:
    """Applies a soft penalty and queues a targeted verification run."""

    def __init__(
        self, database: Database, queue: VerificationQueue, report_penalty: float
    ) -> None:
        """Initialize service.

        Args:
            database: Database for the report transaction
            queue: Job channel consumed by the verification worker
            report_penalty: Confidence penalty per report (smaller than the sweep decay)
        """
        self._db = database
        self._queue = queue
        self._penalty = report_penalty

    async def report(self, track_id: str, platform: Platform, reason: str) -> bool:
        """File a report against one link.

        The penalty and the audit row are committed BEFORE the targeted run is
        queued, and the run is never awaited.

        Returns:
            True (accepted)

        Raises:
            EntityNotFoundException: If the link isn't present; nothing is written then
        """
        async with self._db.session_scope() as session:
            links = PlatformLinkRepository(session)
            link = await links.get(track_id, platform)
            if link is None or not link.is_present:
                raise EntityNotFoundException("PlatformLink", f"{track_id}/{platform.value}")

            link.apply_penalty(self._penalty)
            await links.update(link)
            await LinkReportRepository(session).add(
                LinkReport(
                    id=str(uuid.uuid4()),
                    track_id=track_id,
                    platform=platform,
                    reason=reason.strip()[:MAX_REASON_LENGTH],
                )
            )

        queued = self._queue.enqueue(track_id)
        logger.info(
            "Link reported: %s/%s (confidence now %.2f, targeted run %s)",
            track_id,
            platform.value,
            link.confidence,
            "queued" if queued else "dropped",
            extra={"track_id": track_id, "platform": platform.value},
        )
        return True
