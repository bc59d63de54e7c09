"""Spotify catalog client (source of truth for track identities).

Uses the client-credentials grant only. No user login is involved anywhere in
this service, the token belongs to the app.
"""

import logging
from typing import Any, NoReturn

import httpx

from trackbridge.config import SpotifySettings
from trackbridge.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    RateLimitExceededError,
)
from trackbridge.domain.ports import ITrackCatalog
from trackbridge.infrastructure.integrations.http_pool import HttpClientPool
from trackbridge.infrastructure.integrations.token_cache import ClientCredentialsTokenCache
from trackbridge.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SERVICE_NAME = "spotify"


class SpotifyCatalogClient(ITrackCatalog):
    """Client for the Spotify Web API track endpoints and oEmbed."""

    def __init__(
        self,
        settings: SpotifySettings,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
        token_cache: ClientCredentialsTokenCache | None = None,
    ) -> None:
        """Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            client: Optional HTTP client (defaults to the shared pool)
            rate_limiter: Optional limiter (defaults to RateLimiter.for_spotify())
            token_cache: Optional token cache (defaults to one fed by the token endpoint)
        """
        self.settings = settings
        self._client = client
        self._rate_limiter = rate_limiter or RateLimiter.for_spotify()
        self.token_cache = token_cache or ClientCredentialsTokenCache(
            self._fetch_app_token,
            refresh_margin_seconds=settings.token_refresh_margin_seconds,
        )

    @property
    def is_configured(self) -> bool:
        """Check if client credentials are configured."""
        return self.settings.is_configured

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await HttpClientPool.get_client()

    async def _fetch_app_token(self) -> tuple[str, int]:
        """Run the client-credentials grant.

        Raises:
            ConfigurationError: If credentials are missing or rejected
            ExternalServiceError: If the token endpoint fails
        """
        if not self.settings.is_configured:
            raise ConfigurationError("Spotify client_id/client_secret not configured")

        client = await self._get_client()
        try:
            response = await client.post(
                self.settings.token_url,
                data={"grant_type": "client_credentials"},
                auth=(self.settings.client_id, self.settings.client_secret),
                timeout=self.settings.timeout,
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(SERVICE_NAME, f"token request failed: {e}") from e

        if response.status_code in (400, 401):
            raise ConfigurationError("Spotify rejected the configured client credentials")
        if response.status_code != 200:
            raise ExternalServiceError(
                SERVICE_NAME,
                f"token endpoint returned {response.status_code}",
                response.status_code,
            )

        payload = self._json(response)
        access_token = payload.get("access_token")
        if not access_token:
            raise ExternalServiceError(SERVICE_NAME, "token response without access_token")
        return str(access_token), int(payload.get("expires_in", 3600))

    # Hey future me - every authenticated catalog call goes through here. It handles the
    # rate limiter, retries 429s (Retry-After honoured) and retries ONCE on 401 with a
    # fresh token. Transport failures become ExternalServiceError so callers only ever
    # deal with domain exceptions.
    async def _api_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        max_retries: int = 2,
    ) -> httpx.Response:
        """Make a rate-limited, authenticated catalog request.

        Args:
            method: HTTP method
            path: Path below api_base_url, e.g. "/tracks/{id}"
            params: Query parameters
            max_retries: Max retries on 429

        Returns:
            The final httpx.Response (any status)
        """
        client = await self._get_client()
        url = f"{self.settings.api_base_url}{path}"
        reauthenticated = False
        attempt = 0

        while True:
            token = await self.token_cache.get()
            try:
                async with self._rate_limiter:
                    response = await client.request(
                        method,
                        url,
                        params=params,
                        headers={"Authorization": f"Bearer {token}"},
                        timeout=self.settings.timeout,
                    )
            except httpx.HTTPError as e:
                raise ExternalServiceError(SERVICE_NAME, f"{method} {path} failed: {e}") from e

            if response.status_code == 401 and not reauthenticated:
                logger.info("Spotify token rejected, refreshing once")
                self.token_cache.invalidate()
                reauthenticated = True
                continue

            if response.status_code == 429:
                # HTTP-date and fractional values fall back to our own backoff
                retry_after_str = response.headers.get("Retry-After", "")
                retry_after = int(retry_after_str) if retry_after_str.isdigit() else None
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        f"Spotify API rate limited after {max_retries} retries",
                        retry_after=retry_after,
                    )
                attempt += 1
                await self._rate_limiter.handle_rate_limit_response(retry_after)
                continue

            return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalServiceError(SERVICE_NAME, "malformed JSON response") from e
        if not isinstance(payload, dict):
            raise ExternalServiceError(SERVICE_NAME, "unexpected JSON payload")
        return payload

    def _raise_for_unexpected(self, response: httpx.Response, what: str) -> NoReturn:
        raise ExternalServiceError(
            SERVICE_NAME,
            f"{what} returned {response.status_code}",
            response.status_code,
        )

    async def get_track(self, track_id: str) -> dict[str, Any] | None:
        """Get full track metadata.

        Returns:
            Track payload, or None if the catalog says it doesn't exist (400/404)
        """
        response = await self._api_request("GET", f"/tracks/{track_id}")
        if response.status_code in (400, 404):
            return None
        if response.status_code != 200:
            self._raise_for_unexpected(response, "track lookup")
        return self._json(response)

    async def search_by_isrc(self, isrc: str) -> dict[str, Any] | None:
        """Find the first catalog track with this ISRC."""
        response = await self._api_request(
            "GET",
            "/search",
            params={"q": f"isrc:{isrc}", "type": "track", "limit": 1},
        )
        if response.status_code in (400, 404):
            return None
        if response.status_code != 200:
            self._raise_for_unexpected(response, "ISRC search")
        items = self._json(response).get("tracks", {}).get("items") or []
        return items[0] if items else None

    async def get_oembed(self, track_url: str) -> dict[str, Any] | None:
        """Get unauthenticated embed metadata for a track URL.

        Returns:
            Payload with title/author_name/thumbnail_url, or None on a 4xx
        """
        client = await self._get_client()
        try:
            response = await client.get(
                self.settings.oembed_url,
                params={"url": track_url},
                timeout=self.settings.timeout,
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(SERVICE_NAME, f"oEmbed request failed: {e}") from e

        if 400 <= response.status_code < 500:
            return None
        if response.status_code != 200:
            self._raise_for_unexpected(response, "oEmbed")
        return self._json(response)
