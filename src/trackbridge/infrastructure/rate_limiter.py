"""Token-bucket rate limiter for outbound API calls.

Hey future me - every upstream we talk to (Spotify catalog, ACRCloud lookup) has a
rate limit, and ACRCloud is the strict one. Each client owns one limiter:

    async with limiter:
        response = await client.get(url)

On a 429 call handle_rate_limit_response(retry_after) - it honours Retry-After,
otherwise backs off exponentially. A successful `async with` block resets the backoff.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    max_tokens: int = 10  # Bucket size (burst)
    refill_rate: float = 2.0  # Tokens per second (sustained)
    max_backoff_seconds: float = 600.0  # Spotify can send Retry-After of several minutes
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token bucket rate limiter with adaptive 429 backoff."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_spotify(cls) -> "RateLimiter":
        """Create rate limiter for the Spotify Web API (about 3 req/s, we use 2)."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=10,
                refill_rate=2.0,
                max_backoff_seconds=600.0,
                initial_backoff_seconds=1.0,
            ),
            name="spotify",
        )

    @classmethod
    def for_acrcloud(cls) -> "RateLimiter":
        """Create rate limiter for the ACRCloud metadata API.

        Small plans allow only a handful of requests per second and no real
        burst, so the bucket is tiny.
        """
        return cls(
            config=RateLimiterConfig(
                max_tokens=2,
                refill_rate=1.0,
                max_backoff_seconds=120.0,
                initial_backoff_seconds=2.0,
            ),
            name="acrcloud",
        )

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            float(self.config.max_tokens), self._tokens + elapsed * self.config.refill_rate
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        async with self._lock:
            self._refill_tokens()
            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug("RateLimiter[%s]: waiting %.2fs for a token", self.name, wait_time)
                # Sleeping while holding the lock keeps waiters in FIFO order.
                await asyncio.sleep(wait_time)
                self._refill_tokens()
            self._tokens -= 1.0

    async def handle_rate_limit_response(self, retry_after: int | None = None) -> float:
        """Wait after a 429 response.

        Args:
            retry_after: Retry-After header value in seconds, if the API sent one

        Returns:
            The wait time actually used
        """
        async with self._lock:
            wait_time = float(retry_after) if retry_after is not None else self._current_backoff
            wait_time = min(wait_time, self.config.max_backoff_seconds)
            logger.warning(
                "RateLimiter[%s]: 429 received, waiting %.1fs before retry",
                self.name,
                wait_time,
            )
            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            self._tokens = 0.0

        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after a successful request."""
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        """Current available tokens (debugging)."""
        self._refill_tokens()
        return self._tokens


__all__ = ["RateLimiter", "RateLimiterConfig"]
