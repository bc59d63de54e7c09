"""Tests for the targeted verification job channel."""

from trackbridge.application.workers import VerificationQueue


async def test_fifo_and_pending_tracking() -> None:
    queue = VerificationQueue()
    queue.enqueue("track-a")
    queue.enqueue("track-b")

    assert queue.is_pending("track-a")
    assert await queue.get() == "track-a"
    assert not queue.is_pending("track-a")
    assert await queue.get() == "track-b"


async def test_waiting_track_is_not_queued_twice() -> None:
    queue = VerificationQueue()

    assert queue.enqueue("track-a") is True
    assert queue.enqueue("track-a") is True

    assert queue.qsize() == 1


async def test_track_can_be_requeued_once_taken() -> None:
    queue = VerificationQueue()
    queue.enqueue("track-a")
    await queue.get()

    queue.enqueue("track-a")

    assert queue.qsize() == 1


async def test_full_queue_drops_without_blocking() -> None:
    queue = VerificationQueue(maxsize=1)
    queue.enqueue("track-a")

    assert queue.enqueue("track-b") is False
    assert queue.dropped == 1
    assert not queue.is_pending("track-b")


async def test_join_waits_for_task_done() -> None:
    queue = VerificationQueue()
    queue.enqueue("track-a")
    await queue.get()
    queue.task_done()

    await queue.join()
