"""Application lifecycle management for startup and shutdown tasks.

This module handles the FastAPI lifespan context manager that wires the
whole object graph together:

- Database (plus optional create_all for dev/test)
- Spotify catalog client (owns the client-credentials token cache)
- ACRCloud aggregation client
- Link probe (own httpx client, independent of the shared pool)
- Resolver, expander, resolution and verification services
- Verification queue + worker (scheduled sweeps and targeted runs)

Everything lands on app.state so api/dependencies.py can hand it to endpoints.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from datetime import UTC, datetime

from fastapi import FastAPI

from trackbridge.application.services import (
    CanonicalIdentityResolver,
    CrossPlatformLinkExpander,
    LinkReportService,
    LinkVerificationService,
    TrackResolutionService,
)
from trackbridge.application.workers import VerificationQueue
from trackbridge.application.workers.link_verification_worker import (
    create_link_verification_worker,
)
from trackbridge.config import Settings, get_settings
from trackbridge.infrastructure.integrations.acrcloud_client import AcrCloudClient
from trackbridge.infrastructure.integrations.http_pool import HttpClientPool
from trackbridge.infrastructure.integrations.link_probe import LinkProbe
from trackbridge.infrastructure.integrations.spotify_client import SpotifyCatalogClient
from trackbridge.infrastructure.observability import configure_logging
from trackbridge.infrastructure.persistence import Database

logger = logging.getLogger(__name__)

# Worker shutdown gets this long before the task is cancelled hard.
WORKER_SHUTDOWN_TIMEOUT = 5.0


def _log_missing_credentials(settings: Settings) -> None:
    # Not fatal at startup: reads of stored links still work without upstream access.
    # Resolve calls fail with a ConfigurationError (500) until credentials are set.
    if not settings.spotify.is_configured:
        logger.warning(
            "Spotify credentials not configured, resolve will fail "
            "(set TRACKBRIDGE_SPOTIFY__CLIENT_ID / TRACKBRIDGE_SPOTIFY__CLIENT_SECRET)"
        )
    if not settings.acrcloud.is_configured:
        logger.warning(
            "ACRCloud token not configured, link expansion and repair will fail "
            "(set TRACKBRIDGE_ACRCLOUD__BEARER_TOKEN)"
        )


# Listen future me, @asynccontextmanager makes this a CONTEXT MANAGER for FastAPI lifespan!
# Everything before `yield` runs at STARTUP, everything after runs at SHUTDOWN. The settings
# object is taken from app.state when create_app() put one there (tests do), otherwise the
# cached env-based settings are used.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    app.state.settings = settings

    configure_logging(
        settings.observability.log_level,
        settings.observability.log_json_format,
        settings.app_name,
    )
    logger.info("Starting %s", settings.app_name)
    _log_missing_credentials(settings)

    db: Database | None = None
    link_probe: LinkProbe | None = None
    worker_task: asyncio.Task[None] | None = None

    try:
        db = Database(settings)
        app.state.db = db
        if settings.database.auto_create_tables:
            await db.create_tables()
            logger.info("Database tables created (auto_create_tables)")

        catalog = SpotifyCatalogClient(settings.spotify)
        aggregator = AcrCloudClient(settings.acrcloud)
        link_probe = LinkProbe(timeout=settings.verification.probe_timeout)

        identity_resolver = CanonicalIdentityResolver(catalog)
        link_expander = CrossPlatformLinkExpander(aggregator)
        verification_service = LinkVerificationService(
            database=db,
            probe=link_probe,
            expander=link_expander,
            settings=settings.verification,
        )
        verification_queue = VerificationQueue(maxsize=settings.verification.queue_max_size)

        app.state.spotify_client = catalog
        app.state.acrcloud_client = aggregator
        app.state.link_probe = link_probe
        app.state.identity_resolver = identity_resolver
        app.state.link_expander = link_expander
        app.state.resolution_service = TrackResolutionService(
            database=db, resolver=identity_resolver, expander=link_expander
        )
        app.state.verification_service = verification_service
        app.state.verification_queue = verification_queue
        app.state.report_service = LinkReportService(
            database=db,
            queue=verification_queue,
            report_penalty=settings.verification.report_penalty,
        )

        # The worker task always runs: reports hand targeted runs to its queue loop.
        # verification.enabled only switches the scheduled sweeps on or off.
        verification_worker = create_link_verification_worker(
            service=verification_service,
            queue=verification_queue,
            interval_seconds=settings.verification.interval_seconds,
        )
        app.state.verification_worker = verification_worker
        worker_task = asyncio.create_task(
            verification_worker.start(run_sweeps=settings.verification.enabled)
        )
        if settings.verification.enabled:
            logger.info(
                "Link verification worker started (sweep every %ds)",
                settings.verification.interval_seconds,
            )
        else:
            logger.info("Link verification worker started, scheduled sweeps disabled")
        app.state.verification_task = worker_task

        app.state.startup_time = datetime.now(UTC)
        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        # 1. Stop the verification worker (the queue loop blocks in get(), so cancel after)
        if worker_task is not None:
            app.state.verification_worker.stop()
            worker_task.cancel()
            with suppress(asyncio.CancelledError, TimeoutError):
                await asyncio.wait_for(worker_task, timeout=WORKER_SHUTDOWN_TIMEOUT)
            logger.info("Link verification worker stopped")

        # 2. Close the probe's own HTTP client
        if link_probe is not None:
            try:
                await link_probe.close()
            except Exception as e:
                logger.exception("Error closing link probe: %s", e)

        # 3. Close HTTP client pool (release all TCP connections)
        try:
            await HttpClientPool.close()
            logger.info("HTTP client pool closed")
        except Exception as e:
            logger.exception("Error closing HTTP client pool: %s", e)

        # 4. Close database connection
        if db is not None:
            try:
                await db.close()
                logger.info("Database connection closed")
            except Exception as e:
                logger.exception("Error closing database: %s", e)
