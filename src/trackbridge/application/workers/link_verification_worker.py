"""Link Verification Worker - runs the self-healing sweep on a timer.

Hey future me - two loops live in this worker:
- the SWEEP loop: every interval_seconds, verify the stalest batch of links
- the QUEUE loop: targeted single-track runs handed over by the report endpoint

The queue loop always runs, reports must lead to a run even when scheduled sweeps are
switched off. Both call the same LinkVerificationService, which serializes aggregator calls
internally, so a report racing with the nightly sweep is fine (last write wins).
Errors are logged and the loop keeps going, a bad sweep never kills the worker.
"""

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from trackbridge.application.services.link_verification_service import (
    LinkVerificationService,
)
from trackbridge.application.workers.verification_queue import VerificationQueue
from trackbridge.domain.entities import VerificationSummary
from trackbridge.infrastructure.observability.logging import set_correlation_id

logger = logging.getLogger(__name__)


class LinkVerificationWorker:
    """Runs scheduled sweeps and targeted runs.

    Lifecycle:
    - Created in lifecycle.py during app startup
    - Runs as asyncio task via start()
    - Stopped via stop() plus task cancellation during shutdown
    """

    def __init__(
        self,
        service: LinkVerificationService,
        queue: VerificationQueue,
        interval_seconds: int = 24 * 60 * 60,
        initial_delay_seconds: float = 60.0,
    ) -> None:
        """Initialize the worker.

        Args:
            service: Verification service doing the actual work
            queue: Targeted-run job channel
            interval_seconds: Seconds between scheduled sweeps
            initial_delay_seconds: Wait before the first sweep after startup
        """
        self._service = service
        self._queue = queue
        self._interval = interval_seconds
        self._initial_delay = initial_delay_seconds
        self._running = False
        self._sweeps_scheduled = False
        self._stats: dict[str, Any] = {
            "sweeps_completed": 0,
            "targeted_runs_completed": 0,
            "errors": 0,
            "last_sweep_at": None,
            "last_sweep_summary": None,
            "totals": VerificationSummary().to_dict(),
        }

    async def start(self, run_sweeps: bool = True) -> None:
        """Run the loops until stop() is called or the task is cancelled.

        Args:
            run_sweeps: Also run the scheduled sweep loop (targeted runs always run)
        """
        self._running = True
        self._sweeps_scheduled = run_sweeps
        logger.info(
            "LinkVerificationWorker started (sweeps=%s, interval=%ds, batch_size=%d, "
            "concurrency=%d)",
            "on" if run_sweeps else "off",
            self._interval,
            self._service.settings.batch_size,
            self._service.settings.concurrency,
        )
        loops = [self._queue_loop()]
        if run_sweeps:
            loops.append(self._sweep_loop())
        await asyncio.gather(*loops)

    def stop(self) -> None:
        """Signal the worker to stop."""
        self._running = False
        logger.info("LinkVerificationWorker stopping...")

    async def _sweep_loop(self) -> None:
        await asyncio.sleep(self._initial_delay)
        while self._running:
            await self.run_sweep()
            await asyncio.sleep(self._interval)

    async def _queue_loop(self) -> None:
        while self._running:
            track_id = await self._queue.get()
            try:
                await self.run_targeted(track_id)
            finally:
                self._queue.task_done()

    async def run_sweep(self) -> VerificationSummary | None:
        """Run one scheduled sweep now (also used by the manual trigger)."""
        set_correlation_id(f"sweep-{uuid.uuid4().hex[:12]}")
        try:
            summary = await self._service.verify_batch()
        except Exception as e:
            self._stats["errors"] += 1
            logger.exception("Verification sweep failed: %s", e)
            return None

        self._stats["sweeps_completed"] += 1
        self._stats["last_sweep_at"] = datetime.now(UTC).isoformat()
        self._stats["last_sweep_summary"] = summary.to_dict()
        self._add_to_totals(summary)
        return summary

    async def run_targeted(self, track_id: str) -> VerificationSummary | None:
        """Run a targeted verification for one track."""
        set_correlation_id(f"verify-{track_id[:8]}-{uuid.uuid4().hex[:6]}")
        try:
            summary = await self._service.verify_track(track_id)
        except Exception as e:
            self._stats["errors"] += 1
            logger.exception("Targeted verification failed for %s: %s", track_id, e)
            return None

        self._stats["targeted_runs_completed"] += 1
        self._add_to_totals(summary)
        return summary

    def _add_to_totals(self, summary: VerificationSummary) -> None:
        totals = self._stats["totals"]
        for key, value in summary.to_dict().items():
            totals[key] = totals.get(key, 0) + value

    def get_stats(self) -> dict[str, Any]:
        """Get worker statistics."""
        return {
            **self._stats,
            "running": self._running,
            "sweeps_scheduled": self._sweeps_scheduled,
            "interval_seconds": self._interval,
            "queue_size": self._queue.qsize(),
            "queue_dropped": self._queue.dropped,
        }


def create_link_verification_worker(
    service: LinkVerificationService,
    queue: VerificationQueue,
    interval_seconds: int = 24 * 60 * 60,
) -> LinkVerificationWorker:
    """Create a LinkVerificationWorker with the given configuration."""
    return LinkVerificationWorker(
        service=service,
        queue=queue,
        interval_seconds=interval_seconds,
    )
