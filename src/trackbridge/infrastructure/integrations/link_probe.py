"""HEAD-based liveness probe for stored platform links."""

import asyncio
import logging

import httpx

from trackbridge.domain.entities import is_healthy_status
from trackbridge.domain.ports import ILinkProbe, ProbeResult

logger = logging.getLogger(__name__)

# Sentinels, never valid HTTP status codes.
TIMEOUT_STATUS = 0
TRANSPORT_ERROR_STATUS = -1
SEARCH_REDIRECT_STATUS = -2

# Some CDNs answer HEAD with these even though GET works fine.
_HEAD_NOT_SUPPORTED = {405, 501}

DEFAULT_USER_AGENT = "TrackBridge-LinkCheck/1.0 (+https://trackbridge.app)"


def _looks_like_search_page(final_url: str) -> bool:
    path = httpx.URL(final_url).path.lower()
    return "/search" in path


# Hey future me, this probe NEVER raises for network trouble. Sentinel statuses:
# 0 timeout, -1 any other transport failure, -2 bounced to a search page. The whole
# probe (redirect chain included) is bounded by one deadline, a hung check can't
# stall the batch.
class LinkProbe(ILinkProbe):
    """Checks links with HEAD (GET fallback), following redirects."""

    def __init__(
        self,
        timeout: float = 8.0,
        client: httpx.AsyncClient | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """Initialize probe.

        Args:
            timeout: Deadline per check in seconds
            client: Optional HTTP client (tests inject one with a MockTransport)
            user_agent: User-Agent sent with probes
        """
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._user_agent = user_agent

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self.timeout),
                headers={"User-Agent": self._user_agent},
                limits=httpx.Limits(max_connections=32, max_keepalive_connections=8),
            )
        return self._client

    async def close(self) -> None:
        """Close the probe's own HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(self, url: str) -> tuple[int, str]:
        client = self._get_client()
        response = await client.head(url, follow_redirects=True)
        if response.status_code in _HEAD_NOT_SUPPORTED:
            async with client.stream("GET", url, follow_redirects=True) as streamed:
                return streamed.status_code, str(streamed.url)
        return response.status_code, str(response.url)

    async def check(self, url: str) -> ProbeResult:
        """Probe one URL.

        Returns:
            ProbeResult; healthy means 2xx-3xx and not bounced to a search page
        """
        try:
            status_code, final_url = await asyncio.wait_for(self._request(url), self.timeout)
        except (TimeoutError, httpx.TimeoutException):
            logger.debug("Probe timed out: %s", url)
            return ProbeResult(url=url, status_code=TIMEOUT_STATUS, healthy=False, error="timeout")
        except httpx.HTTPError as e:
            logger.debug("Probe transport error for %s: %s", url, e)
            return ProbeResult(
                url=url,
                status_code=TRANSPORT_ERROR_STATUS,
                healthy=False,
                error=type(e).__name__,
            )

        if is_healthy_status(status_code) and _looks_like_search_page(final_url):
            return ProbeResult(
                url=url,
                status_code=SEARCH_REDIRECT_STATUS,
                healthy=False,
                final_url=final_url,
                error=f"redirected to search page ({status_code})",
            )

        return ProbeResult(
            url=url,
            status_code=status_code,
            healthy=is_healthy_status(status_code),
            final_url=final_url,
        )
