"""In-process job channel for targeted (single-track) verification runs."""

import asyncio
import logging

logger = logging.getLogger(__name__)


# Hey future me, this is the handoff between the report endpoint and the verification
# worker. enqueue() never blocks and never waits for the run - the HTTP response goes
# out immediately. A track already waiting in the queue is not queued twice.
class VerificationQueue:
    """Bounded FIFO of track ids waiting for a targeted verification run."""

    def __init__(self, maxsize: int = 1000) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._pending: set[str] = set()
        self.dropped = 0

    def enqueue(self, track_id: str) -> bool:
        """Queue a track without waiting.

        Returns:
            True if the track is (now or already) queued, False if the queue was full
        """
        if track_id in self._pending:
            return True
        try:
            self._queue.put_nowait(track_id)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Verification queue full, dropping targeted run for %s", track_id)
            return False
        self._pending.add(track_id)
        return True

    async def get(self) -> str:
        """Wait for the next track id."""
        track_id = await self._queue.get()
        self._pending.discard(track_id)
        return track_id

    def task_done(self) -> None:
        """Mark the last job returned by get() as finished."""
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    def qsize(self) -> int:
        """Number of jobs waiting."""
        return self._queue.qsize()

    def is_pending(self, track_id: str) -> bool:
        """Check whether a track is waiting in the queue."""
        return track_id in self._pending
