"""Tests for the token-bucket rate limiter."""

import pytest

from trackbridge.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig


class TestRateLimiter:
    """Test token accounting and 429 backoff."""

    async def test_acquire_consumes_tokens(self) -> None:
        limiter = RateLimiter(RateLimiterConfig(max_tokens=3, refill_rate=0.001))

        await limiter.acquire()
        await limiter.acquire()

        assert limiter.available_tokens == pytest.approx(1.0, abs=0.01)

    async def test_retry_after_is_honoured(self) -> None:
        limiter = RateLimiter(RateLimiterConfig(max_tokens=2, refill_rate=1000.0))

        waited = await limiter.handle_rate_limit_response(retry_after=0)

        assert waited == 0.0

    async def test_backoff_grows_and_is_capped(self, mocker) -> None:
        sleep = mocker.patch("trackbridge.infrastructure.rate_limiter.asyncio.sleep")
        limiter = RateLimiter(
            RateLimiterConfig(
                initial_backoff_seconds=1.0,
                backoff_multiplier=2.0,
                max_backoff_seconds=3.0,
            )
        )

        waits = [await limiter.handle_rate_limit_response() for _ in range(4)]

        assert waits == [1.0, 2.0, 3.0, 3.0]
        assert sleep.await_count == 4

    async def test_successful_block_resets_backoff(self, mocker) -> None:
        mocker.patch("trackbridge.infrastructure.rate_limiter.asyncio.sleep")
        limiter = RateLimiter(RateLimiterConfig(max_tokens=5, refill_rate=1000.0))
        await limiter.handle_rate_limit_response()
        await limiter.handle_rate_limit_response()

        async with limiter:
            pass

        assert await limiter.handle_rate_limit_response() == 1.0

    def test_presets(self) -> None:
        assert RateLimiter.for_spotify().name == "spotify"
        acrcloud = RateLimiter.for_acrcloud()
        assert acrcloud.name == "acrcloud"
        assert acrcloud.config.max_tokens < RateLimiter.for_spotify().config.max_tokens
