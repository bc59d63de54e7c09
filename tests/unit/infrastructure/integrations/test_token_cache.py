"""Tests for the client-credentials token cache."""

import asyncio

import pytest

from trackbridge.infrastructure.integrations.token_cache import ClientCredentialsTokenCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestClientCredentialsTokenCache:
    """Test caching, proactive refresh and single-flight behaviour."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    async def test_token_is_reused_while_fresh(self, clock: FakeClock) -> None:
        calls = 0

        async def fetch() -> tuple[str, int]:
            nonlocal calls
            calls += 1
            return f"token-{calls}", 3600

        cache = ClientCredentialsTokenCache(fetch, refresh_margin_seconds=60, clock=clock)

        assert await cache.get() == "token-1"
        clock.now += 3000
        assert await cache.get() == "token-1"
        assert cache.refresh_count == 1

    async def test_refresh_inside_margin(self, clock: FakeClock) -> None:
        """Less than the margin left means refresh, before the token actually expires."""
        calls = 0

        async def fetch() -> tuple[str, int]:
            nonlocal calls
            calls += 1
            return f"token-{calls}", 3600

        cache = ClientCredentialsTokenCache(fetch, refresh_margin_seconds=60, clock=clock)
        await cache.get()

        clock.now += 3541
        assert await cache.get() == "token-2"
        assert cache.refresh_count == 2

    async def test_concurrent_callers_share_one_refresh(self, clock: FakeClock) -> None:
        calls = 0

        async def fetch() -> tuple[str, int]:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "shared-token", 3600

        cache = ClientCredentialsTokenCache(fetch, clock=clock)

        tokens = await asyncio.gather(*(cache.get() for _ in range(20)))

        assert set(tokens) == {"shared-token"}
        assert calls == 1

    async def test_invalidate_forces_refresh(self, clock: FakeClock) -> None:
        calls = 0

        async def fetch() -> tuple[str, int]:
            nonlocal calls
            calls += 1
            return f"token-{calls}", 3600

        cache = ClientCredentialsTokenCache(fetch, clock=clock)
        await cache.get()
        cache.invalidate()

        assert await cache.get() == "token-2"

    async def test_fetch_errors_propagate_and_nothing_is_cached(self, clock: FakeClock) -> None:
        async def fetch() -> tuple[str, int]:
            raise RuntimeError("token endpoint down")

        cache = ClientCredentialsTokenCache(fetch, clock=clock)

        with pytest.raises(RuntimeError):
            await cache.get()
        assert cache.refresh_count == 0
