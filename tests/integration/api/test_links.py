"""Integration tests for the public smart link endpoints."""

from functools import partial

import pytest
from fastapi.testclient import TestClient

from trackbridge.domain.entities import Track
from trackbridge.domain.value_objects import Platform

SPOTIFY_ID = "4uLU6hMCjMI75M1A2tKUQC"
SPOTIFY_URL = f"https://open.spotify.com/track/{SPOTIFY_ID}"
DEEZER_URL = "https://www.deezer.com/track/781592622"
TIDAL_URL = "https://tidal.com/browse/track/77646168"

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1"
)
DESKTOP_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/124.0 Safari/537.36"


@pytest.fixture
def track(client: TestClient, seed) -> Track:
    """Track with three links (one dropped) behind the slug 'rick'."""
    return client.portal.call(
        partial(
            seed,
            client.app.state.db,
            slug="rick",
            links={
                Platform.SPOTIFY: (SPOTIFY_URL, 1.0),
                Platform.DEEZER: (DEEZER_URL, 0.7),
                Platform.TIDAL: (TIDAL_URL, 0.0),
            },
        )
    )


class TestGetSmartLink:
    """Test GET /api/links/{slug}."""

    def test_desktop_gets_web_urls(self, client: TestClient, track: Track) -> None:
        response = client.get("/api/links/rick", headers={"User-Agent": DESKTOP_UA})

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Never Gonna Give You Up"
        assert data["template"] == "minimal"
        assert data["track_id"] == track.id
        assert data["client_os"] == "other"
        assert [link["platform"] for link in data["links"]] == ["spotify", "deezer"]
        assert data["links"][0]["deep_link"] == SPOTIFY_URL

    def test_iphone_gets_spotify_app_uri(self, client: TestClient, track: Track) -> None:
        data = client.get("/api/links/rick", headers={"User-Agent": IPHONE_UA}).json()

        assert data["client_os"] == "ios"
        links = {link["platform"]: link for link in data["links"]}
        assert links["spotify"]["deep_link"] == f"spotify://track/{SPOTIFY_ID}"
        assert links["spotify"]["url"] == SPOTIFY_URL
        assert links["deezer"]["deep_link"] == DEEZER_URL

    def test_dropped_links_are_hidden(self, client: TestClient, track: Track) -> None:
        data = client.get("/api/links/rick").json()

        assert "tidal" not in {link["platform"] for link in data["links"]}

    def test_visits_are_counted(self, client: TestClient, track: Track) -> None:
        assert client.get("/api/links/rick").json()["click_count"] == 1
        assert client.get("/api/links/rick").json()["click_count"] == 2

    def test_unknown_slug_is_404(self, client: TestClient) -> None:
        assert client.get("/api/links/nope").status_code == 404

    def test_inactive_slug_is_404(self, client: TestClient, seed) -> None:
        client.portal.call(partial(seed, client.app.state.db, slug="gone", is_active=False))

        assert client.get("/api/links/gone").status_code == 404


class TestOpenSmartLink:
    """Test GET /api/links/{slug}/open/{platform}."""

    def test_redirects_to_app_on_ios(self, client: TestClient, track: Track) -> None:
        response = client.get(
            "/api/links/rick/open/spotify",
            headers={"User-Agent": IPHONE_UA},
            follow_redirects=False,
        )

        assert response.status_code == 307
        assert response.headers["location"] == f"spotify://track/{SPOTIFY_ID}"

    def test_redirects_to_web_url(self, client: TestClient, track: Track) -> None:
        response = client.get("/api/links/rick/open/deezer", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == DEEZER_URL

    def test_redirect_counts_a_click(self, client: TestClient, track: Track) -> None:
        client.get("/api/links/rick/open/deezer", follow_redirects=False)

        assert client.get("/api/links/rick").json()["click_count"] == 2

    def test_dropped_platform_is_404(self, client: TestClient, track: Track) -> None:
        response = client.get("/api/links/rick/open/tidal", follow_redirects=False)

        assert response.status_code == 404

    def test_unknown_platform_is_400(self, client: TestClient, track: Track) -> None:
        response = client.get("/api/links/rick/open/myspace", follow_redirects=False)

        assert response.status_code == 400
