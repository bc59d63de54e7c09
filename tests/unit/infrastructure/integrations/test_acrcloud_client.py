"""Tests for the ACRCloud external-metadata client."""

from collections.abc import Callable

import httpx
import pytest

from trackbridge.config import AcrCloudSettings
from trackbridge.domain.exceptions import ConfigurationError
from trackbridge.infrastructure.integrations.acrcloud_client import TRACKS_PATH, AcrCloudClient
from trackbridge.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig

RECORD = {
    "name": "Never Gonna Give You Up",
    "isrc": "GBARL9300135",
    "external_metadata": {
        "deezer": [{"link": "https://www.deezer.com/track/781592622"}],
    },
}


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    settings: AcrCloudSettings | None = None,
) -> AcrCloudClient:
    return AcrCloudClient(
        settings or AcrCloudSettings(bearer_token="acr-token", platforms="deezer,tidal"),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        rate_limiter=RateLimiter(RateLimiterConfig(max_tokens=100, refill_rate=100.0)),
    )


async def test_missing_token_raises_before_any_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _make_client(handler, AcrCloudSettings())

    with pytest.raises(ConfigurationError):
        await client.lookup(isrc="GBARL9300135")


async def test_lookup_by_isrc_sends_expected_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [RECORD]})

    record = await _make_client(handler).lookup(
        isrc="GBARL9300135", source_url="https://open.spotify.com/track/x"
    )

    assert record == RECORD
    request = seen[0]
    assert request.url.path == TRACKS_PATH
    assert request.url.params["isrc"] == "GBARL9300135"
    assert "source_url" not in request.url.params
    assert request.url.params["format"] == "json"
    assert request.url.params["platforms"] == "deezer,tidal"
    assert request.headers["Authorization"] == "Bearer acr-token"


async def test_query_is_used_when_nothing_better_exists() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [RECORD]})

    await _make_client(handler).lookup(query="Rick Astley Never Gonna Give You Up")

    assert seen[0].url.params["query"] == "Rick Astley Never Gonna Give You Up"


async def test_no_lookup_key_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert await _make_client(handler).lookup() is None


@pytest.mark.parametrize(
    ("status", "kwargs"),
    [
        (429, {"headers": {"Retry-After": "0"}}),
        (500, {"text": "boom"}),
        (200, {"text": "not json"}),
        (200, {"json": {"data": []}}),
        (200, {"json": {"data": "nope"}}),
        (200, {"json": ["unexpected"]}),
    ],
)
async def test_upstream_problems_mean_nothing_found(status: int, kwargs: dict) -> None:
    client = _make_client(lambda request: httpx.Response(status, **kwargs))
    assert await client.lookup(isrc="GBARL9300135") is None


async def test_transport_error_means_nothing_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    assert await _make_client(handler).lookup(isrc="GBARL9300135") is None


async def test_rate_limited_lookup_is_retried_once() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"data": [RECORD]})

    assert await _make_client(handler).lookup(isrc="GBARL9300135") == RECORD
    assert calls == 2


async def test_persistent_rate_limit_gives_up_after_one_retry() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(429, headers={"Retry-After": "0"})

    assert await _make_client(handler).lookup(isrc="GBARL9300135") is None
    assert calls == 2
