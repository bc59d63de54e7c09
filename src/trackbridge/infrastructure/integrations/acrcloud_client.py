"""ACRCloud external-metadata client (cross-platform link aggregation).

One lookup = one HTTP request. The response lists, per platform, what ACRCloud
knows about the track; parsing and deep-link filtering live in the expander.
"""

import logging
from typing import Any

import httpx

from trackbridge.config import AcrCloudSettings
from trackbridge.domain.exceptions import ConfigurationError
from trackbridge.domain.ports import ILinkAggregator
from trackbridge.infrastructure.integrations.http_pool import HttpClientPool
from trackbridge.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

TRACKS_PATH = "/api/external-metadata/tracks"


class AcrCloudClient(ILinkAggregator):
    """Client for ACRCloud's external metadata lookup."""

    def __init__(
        self,
        settings: AcrCloudSettings,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize ACRCloud client.

        Args:
            settings: ACRCloud configuration
            client: Optional HTTP client (defaults to the shared pool)
            rate_limiter: Optional limiter (defaults to RateLimiter.for_acrcloud())
        """
        self.settings = settings
        self._client = client
        self._rate_limiter = rate_limiter or RateLimiter.for_acrcloud()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await HttpClientPool.get_client()

    @staticmethod
    def _lookup_params(
        isrc: str | None, source_url: str | None, query: str | None
    ) -> dict[str, str] | None:
        # ISRC is the most precise key, free-text query the least.
        if isrc:
            return {"isrc": isrc}
        if source_url:
            return {"source_url": source_url}
        if query:
            return {"query": query}
        return None

    # Hey future me - anything that goes wrong upstream comes back as None ("nothing found"),
    # never as an exception. The one exception is a missing token: that's a config bug and
    # must blow up BEFORE we send anything.
    async def lookup(
        self,
        isrc: str | None = None,
        source_url: str | None = None,
        query: str | None = None,
    ) -> dict[str, Any] | None:
        """Look up one track by ISRC, source URL or free-text query.

        Args:
            isrc: ISRC (preferred)
            source_url: Canonical source URL
            query: "artist title" free-text search

        Returns:
            The first result record, or None if nothing usable came back

        Raises:
            ConfigurationError: If no bearer token is configured
        """
        if not self.settings.is_configured:
            raise ConfigurationError("ACRCloud bearer token not configured")

        params = self._lookup_params(isrc, source_url, query)
        if params is None:
            return None
        params.update({"format": "json", "platforms": ",".join(self.settings.platform_list)})

        client = await self._get_client()
        url = f"{self.settings.base_url.rstrip('/')}{TRACKS_PATH}"
        retried = False
        while True:
            try:
                async with self._rate_limiter:
                    response = await client.get(
                        url,
                        params=params,
                        headers={
                            "Authorization": f"Bearer {self.settings.bearer_token}",
                            "Accept": "application/json",
                        },
                        timeout=self.settings.timeout,
                    )
            except httpx.HTTPError as e:
                logger.warning("ACRCloud lookup failed (%s): %s", next(iter(params)), e)
                return None

            if response.status_code != 429:
                break
            if retried:
                logger.warning("ACRCloud still rate limited after retry, skipping this round")
                return None
            retried = True
            retry_after = response.headers.get("Retry-After", "")
            await self._rate_limiter.handle_rate_limit_response(
                int(retry_after) if retry_after.isdigit() else None
            )

        if not 200 <= response.status_code < 300:
            logger.warning(
                "ACRCloud lookup returned %d: %s",
                response.status_code,
                response.text[:200],
            )
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("ACRCloud lookup returned malformed JSON")
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            logger.debug("ACRCloud lookup returned no results for %s", params)
            return None
        return data[0]
