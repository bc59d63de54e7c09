"""Tests for the HEAD-based link probe."""

from collections.abc import Callable

import httpx

from trackbridge.infrastructure.integrations.link_probe import (
    SEARCH_REDIRECT_STATUS,
    TIMEOUT_STATUS,
    TRANSPORT_ERROR_STATUS,
    LinkProbe,
)

URL = "https://www.deezer.com/track/781592622"


def _probe(handler: Callable[[httpx.Request], httpx.Response]) -> LinkProbe:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return LinkProbe(timeout=2.0, client=client)


async def test_healthy_head() -> None:
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(200)

    result = await _probe(handler).check(URL)

    assert result.healthy
    assert result.status_code == 200
    assert methods == ["HEAD"]


async def test_not_found_is_unhealthy() -> None:
    result = await _probe(lambda request: httpx.Response(404)).check(URL)

    assert not result.healthy
    assert result.status_code == 404


async def test_head_not_allowed_falls_back_to_get() -> None:
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        if request.method == "HEAD":
            return httpx.Response(405)
        return httpx.Response(200, text="<html></html>")

    result = await _probe(handler).check(URL)

    assert result.healthy
    assert methods == ["HEAD", "GET"]


async def test_redirect_to_track_page_is_healthy() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "deezer.page.link":
            return httpx.Response(302, headers={"Location": URL})
        return httpx.Response(200)

    result = await _probe(handler).check("https://deezer.page.link/abc")

    assert result.healthy
    assert result.final_url == URL


async def test_redirect_to_search_page_is_unhealthy() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/track/"):
            return httpx.Response(
                301, headers={"Location": "https://www.deezer.com/search/never%20gonna"}
            )
        return httpx.Response(200)

    result = await _probe(handler).check(URL)

    assert not result.healthy
    assert result.status_code == SEARCH_REDIRECT_STATUS
    assert result.final_url is not None
    assert "/search/" in result.final_url


async def test_transport_error_sentinel() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await _probe(handler).check(URL)

    assert not result.healthy
    assert result.status_code == TRANSPORT_ERROR_STATUS
    assert result.error == "ConnectError"


async def test_timeout_sentinel() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    result = await _probe(handler).check(URL)

    assert not result.healthy
    assert result.status_code == TIMEOUT_STATUS
    assert result.error == "timeout"


async def test_close_leaves_injected_client_open() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    probe = LinkProbe(client=client)

    await probe.close()

    assert not client.is_closed
    await client.aclose()
