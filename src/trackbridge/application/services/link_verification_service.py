"""Verification Scheduler core: probe stored links, decay, re-resolve, write back.

Per-link state machine (see PlatformLink.health):

    Unverified -> Healthy | Degraded
    Healthy    -> Healthy | Degraded
    Degraded   -> Healthy (re-resolution or passing checks) | Dropped (confidence 0)

One run:
1. Probe every selected link concurrently (bounded by a semaphore).
2. Write each outcome in its own transaction: healthy links get status,
   timestamps and a small recovery step; broken ones lose decay_step.
3. For every track with broken links, ask the expander ONCE (serialized by a
   lock across runs) and overwrite links it returns a different URL for.
"""

import asyncio
import logging
from datetime import UTC, datetime

from trackbridge.application.services.link_expander import CrossPlatformLinkExpander
from trackbridge.config import VerificationSettings
from trackbridge.domain.entities import PlatformLink, VerificationSummary
from trackbridge.domain.exceptions import ConfigurationError
from trackbridge.domain.ports import ILinkProbe, ProbeResult
from trackbridge.domain.value_objects import Platform
from trackbridge.infrastructure.integrations.link_probe import TRANSPORT_ERROR_STATUS
from trackbridge.infrastructure.persistence.database import Database
from trackbridge.infrastructure.persistence.repositories import (
    PlatformLinkRepository,
    TrackRepository,
)

logger = logging.getLogger(__name__)


class LinkVerificationService:
    """Checks stored links and repairs broken ones."""

    def __init__(
        self,
        database: Database,
        probe: ILinkProbe,
        expander: CrossPlatformLinkExpander,
        settings: VerificationSettings,
    ) -> None:
        """Initialize service.

        Args:
            database: Database for per-link session scopes
            probe: Link liveness probe
            expander: Expander used for re-resolution
            settings: Verification tuning (batch size, decay, concurrency, timeouts)
        """
        self._db = database
        self._probe = probe
        self._expander = expander
        self.settings = settings
        # Shared by batch and targeted runs, keeps aggregator calls one at a time.
        self._resolve_lock = asyncio.Lock()

    async def verify_batch(self, limit: int | None = None) -> VerificationSummary:
        """Run one scheduled sweep over the stalest links."""
        async with self._db.session_scope() as session:
            links = await PlatformLinkRepository(session).list_verification_batch(
                limit or self.settings.batch_size
            )

        summary = await self._verify_links(links)
        logger.info(
            "Verification sweep finished: checked=%d ok=%d fixed=%d degraded=%d "
            "dropped=%d errors=%d",
            summary.checked,
            summary.ok,
            summary.fixed,
            summary.degraded,
            summary.dropped,
            summary.errors,
            extra=summary.to_dict(),
        )
        return summary

    async def verify_track(self, track_id: str) -> VerificationSummary:
        """Verify every present link of one track, dropped ones included."""
        async with self._db.session_scope() as session:
            links = await PlatformLinkRepository(session).list_for_track(track_id)

        summary = await self._verify_links(links)
        logger.info(
            "Targeted verification for track %s: ok=%d fixed=%d degraded=%d dropped=%d",
            track_id,
            summary.ok,
            summary.fixed,
            summary.degraded,
            summary.dropped,
            extra={"track_id": track_id, **summary.to_dict()},
        )
        return summary

    async def _verify_links(self, links: list[PlatformLink]) -> VerificationSummary:
        summary = VerificationSummary()
        if not links:
            return summary

        results = await self._probe_all(links)

        broken: dict[str, list[PlatformLink]] = {}
        for link, result in zip(links, results, strict=True):
            summary.checked += 1
            try:
                if result.healthy:
                    if await self._record_healthy(link, result):
                        summary.ok += 1
                else:
                    updated = await self._record_failure(link, result)
                    if updated is not None:
                        broken.setdefault(link.track_id, []).append(updated)
            except Exception:
                # One bad row must not take the batch down.
                logger.exception(
                    "Failed to record check for %s/%s", link.track_id, link.platform.value
                )
                summary.errors += 1

        for track_id, track_links in broken.items():
            summary.merge(await self._repair_track(track_id, track_links))
        return summary

    async def _probe_all(self, links: list[PlatformLink]) -> list[ProbeResult]:
        semaphore = asyncio.Semaphore(self.settings.concurrency)

        async def _probe_one(link: PlatformLink) -> ProbeResult:
            assert link.url is not None
            async with semaphore:
                try:
                    return await self._probe.check(link.url)
                except Exception as e:
                    logger.warning("Probe crashed for %s: %s", link.url, e)
                    return ProbeResult(
                        url=link.url,
                        status_code=TRANSPORT_ERROR_STATUS,
                        healthy=False,
                        error=type(e).__name__,
                    )

        return await asyncio.gather(*(_probe_one(link) for link in links))

    # Both writers re-read the row first: a report or a repair may have touched it while
    # we were probing. If the URL changed, our probe result is stale and gets skipped.
    async def _record_healthy(self, link: PlatformLink, result: ProbeResult) -> bool:
        async with self._db.session_scope() as session:
            repo = PlatformLinkRepository(session)
            current = await repo.get(link.track_id, link.platform)
            if current is None or current.url != link.url:
                return False
            current.record_check(result.status_code)
            current.recover(self.settings.recovery_step, self.settings.fresh_confidence)
            await repo.update(current)
            return True

    async def _record_failure(
        self, link: PlatformLink, result: ProbeResult
    ) -> PlatformLink | None:
        async with self._db.session_scope() as session:
            repo = PlatformLinkRepository(session)
            current = await repo.get(link.track_id, link.platform)
            if current is None or current.url != link.url:
                return None
            current.record_check(result.status_code)
            current.apply_penalty(self.settings.decay_step)
            await repo.update(current)

        logger.info(
            "Link check failed for %s/%s (status %d%s), confidence now %.2f",
            link.track_id,
            link.platform.value,
            result.status_code,
            f", {result.error}" if result.error else "",
            current.confidence,
        )
        return current

    async def _re_resolve(self, track_id: str) -> dict[Platform, str]:
        async with self._db.session_scope() as session:
            track = await TrackRepository(session).get_by_id(track_id)
        if track is None:
            logger.warning("Broken links reference unknown track %s", track_id)
            return {}

        identity = track.identity
        try:
            return await asyncio.wait_for(
                self._expander.expand(
                    isrc=identity.isrc,
                    source_url=identity.source_url,
                    title=identity.title,
                    artist=identity.artist,
                ),
                timeout=self.settings.resolve_timeout,
            )
        except TimeoutError:
            logger.warning("Re-resolution timed out for track %s", track_id)
        except ConfigurationError as e:
            logger.error("Re-resolution impossible, %s", e.message)
        except Exception:
            logger.exception("Re-resolution failed for track %s", track_id)
        return {}

    async def _repair_track(
        self, track_id: str, links: list[PlatformLink]
    ) -> VerificationSummary:
        summary = VerificationSummary()
        async with self._resolve_lock:
            expansion = await self._re_resolve(track_id)

        for link in links:
            try:
                new_url = expansion.get(link.platform)
                if new_url and await self._replace_url(link, new_url):
                    summary.fixed += 1
                    logger.info(
                        "Repaired %s link for track %s: %s -> %s",
                        link.platform.value,
                        track_id,
                        link.url,
                        new_url,
                    )
                elif link.confidence <= 0.0:
                    summary.dropped += 1
                else:
                    summary.degraded += 1
            except Exception:
                logger.exception("Failed to repair %s/%s", track_id, link.platform.value)
                summary.errors += 1
        return summary

    async def _replace_url(self, link: PlatformLink, new_url: str) -> bool:
        async with self._db.session_scope() as session:
            repo = PlatformLinkRepository(session)
            current = await repo.get(link.track_id, link.platform)
            # Same URL again is no repair, the link stays decayed.
            if current is None or current.url == new_url:
                return False
            current.replace_url(
                new_url, self.settings.fresh_confidence, verified_at=datetime.now(UTC)
            )
            await repo.update(current)
            return True
