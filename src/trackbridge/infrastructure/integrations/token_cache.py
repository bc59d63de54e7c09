"""Expiry-aware cache for an app-level (client-credentials) access token."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# (access_token, expires_in_seconds)
TokenFetcher = Callable[[], Awaitable[tuple[str, int]]]


@dataclass(frozen=True)
class CachedToken:
    """An access token and the monotonic time it expires at."""

    access_token: str
    expires_at: float


# Hey future me, this is the ONLY state that survives between requests in the resolver.
# get() is single-flight: when the token is about to expire, N concurrent callers cause
# exactly ONE refresh. Everybody else waits on the lock and then reuses the fresh token.
# Refresh kicks in once less than refresh_margin_seconds validity is left.
class ClientCredentialsTokenCache:
    """Process-memory token cache with proactive single-flight refresh."""

    def __init__(
        self,
        fetch: TokenFetcher,
        refresh_margin_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            fetch: Coroutine function returning (access_token, expires_in)
            refresh_margin_seconds: Refresh when less validity than this remains
            clock: Monotonic clock (injectable for tests)
        """
        self._fetch = fetch
        self._margin = refresh_margin_seconds
        self._clock = clock
        self._token: CachedToken | None = None
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    def _is_fresh(self, token: CachedToken | None) -> bool:
        return token is not None and token.expires_at - self._clock() >= self._margin

    async def get(self) -> str:
        """Get a valid access token, refreshing it if needed."""
        token = self._token
        if self._is_fresh(token):
            assert token is not None
            return token.access_token

        async with self._lock:
            # Another caller may have refreshed while we waited.
            token = self._token
            if self._is_fresh(token):
                assert token is not None
                return token.access_token

            access_token, expires_in = await self._fetch()
            self._token = CachedToken(access_token, self._clock() + expires_in)
            self.refresh_count += 1
            logger.debug("Access token refreshed, valid for %ds", expires_in)
            return access_token

    def invalidate(self) -> None:
        """Drop the cached token (e.g. after a 401)."""
        self._token = None
