"""Platform URL normalization, deep-link shape checks and OS-aware deep links.

Every supported platform has exactly one PlatformRule. A rule knows how to
turn whatever a user or an upstream API hands us (native URI, web URL with
tracking junk, bare ID) into ONE canonical web URL, and how to tell a real
deep link apart from a "search this platform" page.

Contract of normalize():
- never raises, unrecognized input comes back unchanged (only trimmed)
- idempotent, normalize(p, normalize(p, x)) == normalize(p, x)
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import SplitResult, parse_qs, urlsplit

from trackbridge.domain.value_objects import ClientOS, Platform

_SPOTIFY_ID = r"[A-Za-z0-9]{22}"
_SPOTIFY_KINDS = r"track|album|artist|playlist|episode|show"
_YOUTUBE_ID = r"[A-Za-z0-9_-]{11}"
_ASIN = r"[A-Z0-9]{10}"

# Priority order matters: bare ID, then URI, then URL. First match wins.
_SPOTIFY_BARE_ID_RE = re.compile(rf"^({_SPOTIFY_ID})$")
_SPOTIFY_URI_RE = re.compile(rf"^spotify:(?://)?({_SPOTIFY_KINDS})[:/]({_SPOTIFY_ID})$")
_SPOTIFY_URL_RE = re.compile(
    rf"^https?://open\.spotify\.com/(?:intl-[a-z]{{2}}(?:-[a-z]{{2}})?/)?(?:embed/)?"
    rf"({_SPOTIFY_KINDS})/({_SPOTIFY_ID})(?:[/?#].*)?$",
    re.IGNORECASE,
)
_SPOTIFY_TRACK_PATH_RE = re.compile(rf"^/(?:intl-[a-z-]+/)?track/{_SPOTIFY_ID}/?$")

_YOUTUBE_BARE_ID_RE = re.compile(rf"^{_YOUTUBE_ID}$")
_YOUTUBE_URI_RE = re.compile(rf"^vnd\.youtube:(?://)?({_YOUTUBE_ID})$")
_YOUTUBE_PATH_ID_RE = re.compile(rf"^/(?:shorts|embed|live|v)/({_YOUTUBE_ID})(?:/.*)?$")
_YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com"}
_YOUTUBE_MUSIC_HOST = "music.youtube.com"

_APPLE_HOSTS = {"music.apple.com", "geo.music.apple.com", "itunes.apple.com"}
_APPLE_STOREFRONT = "us"

_DEEZER_PATH_RE = re.compile(
    r"^(?:/[a-z]{2}(?:-[a-z]{2})?)?/(track|album|artist|playlist)/(\d+)/?$"
)
_DEEZER_URI_RE = re.compile(r"^deezer://(?:www\.)?deezer\.com/(track|album|artist|playlist)/(\d+)$")

_TIDAL_HOSTS = {"tidal.com", "www.tidal.com", "listen.tidal.com"}
_TIDAL_URI_RE = re.compile(r"^tidal://(track|album|artist|playlist|video)/([\w-]+)$")
_TIDAL_TRACK_IN_PATH_RE = re.compile(r"/track/(\d+)(?:/|$)")
_TIDAL_PATH_RE = re.compile(r"^(?:/browse)?/(album|artist|playlist|video)/([\w-]+)/?$")

_AMAZON_HOST_RE = re.compile(r"^music\.amazon\.[a-z.]+$")
_AMAZON_BARE_ASIN_RE = re.compile(r"^B0[A-Z0-9]{8}$")
_AMAZON_TRACKS_RE = re.compile(rf"^/tracks/({_ASIN})/?$")
_AMAZON_ALBUMS_RE = re.compile(rf"^/albums/({_ASIN})/?$")

_SOUNDCLOUD_HOSTS = {"soundcloud.com", "www.soundcloud.com", "m.soundcloud.com"}
_SOUNDCLOUD_RESERVED_ROOTS = {
    "charts",
    "discover",
    "messages",
    "notifications",
    "pages",
    "people",
    "search",
    "settings",
    "stream",
    "tags",
    "upload",
    "you",
}
_SOUNDCLOUD_RESERVED_LEAVES = {
    "albums",
    "followers",
    "following",
    "likes",
    "popular-tracks",
    "reposts",
    "sets",
    "tracks",
}

_NAPSTER_BARE_ID_RE = re.compile(r"^tra\.\d+$", re.IGNORECASE)
_NAPSTER_TRACK_PATH_RE = re.compile(r"/track/([\w.-]+)")

_MOBILE_IOS_RE = re.compile(r"iphone|ipad|ipod", re.IGNORECASE)
_MOBILE_ANDROID_RE = re.compile(r"android", re.IGNORECASE)


# =============================================================================
# Small URL helpers
# =============================================================================


def _split_web_url(raw: str) -> SplitResult | None:
    """Split raw into URL parts if it is an http(s) URL with a host."""
    try:
        parts = urlsplit(raw)
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return None
    return parts


def _host(parts: SplitResult) -> str:
    return (parts.hostname or "").lower()


def _query_param(parts: SplitResult, name: str) -> str | None:
    values = parse_qs(parts.query).get(name)
    return values[0] if values else None


def _strip_query(parts: SplitResult, host: str | None = None) -> str:
    """Rebuild a URL as https with no query and no fragment."""
    return f"https://{host or _host(parts)}{parts.path}"


# =============================================================================
# Spotify
# =============================================================================


def parse_spotify_track_id(raw: str) -> str | None:
    """Extract a Spotify track ID from a bare ID, a URI or a web URL.

    Args:
        raw: User input, e.g. "3n3Ppam7vgaVa1iaRUc9Lp",
            "spotify:track:3n3Ppam7vgaVa1iaRUc9Lp" or
            "https://open.spotify.com/track/3n3Ppam7vgaVa1iaRUc9Lp?si=abc"

    Returns:
        The 22-character track ID, or None if raw isn't a track reference
    """
    value = raw.strip()
    if match := _SPOTIFY_BARE_ID_RE.match(value):
        return match.group(1)
    if (match := _SPOTIFY_URI_RE.match(value)) and match.group(1) == "track":
        return match.group(2)
    if (match := _SPOTIFY_URL_RE.match(value)) and match.group(1).lower() == "track":
        return match.group(2)
    return None


def _normalize_spotify(raw: str) -> str:
    if match := _SPOTIFY_BARE_ID_RE.match(raw):
        return f"https://open.spotify.com/track/{match.group(1)}"
    if match := _SPOTIFY_URI_RE.match(raw):
        return f"https://open.spotify.com/{match.group(1)}/{match.group(2)}"
    if match := _SPOTIFY_URL_RE.match(raw):
        return f"https://open.spotify.com/{match.group(1).lower()}/{match.group(2)}"
    return raw


def _is_spotify_deep_link(parts: SplitResult) -> bool:
    return _host(parts) == "open.spotify.com" and bool(
        _SPOTIFY_TRACK_PATH_RE.match(parts.path)
    )


def _spotify_track_id(parts: SplitResult) -> str | None:
    return parse_spotify_track_id(parts.geturl())


# =============================================================================
# Apple Music
# =============================================================================


def _normalize_apple_music(raw: str) -> str:
    if raw.isdigit():
        return f"https://music.apple.com/{_APPLE_STOREFRONT}/song/{raw}"
    candidate = raw
    if raw.lower().startswith(("music://", "itms://", "itmss://")):
        candidate = "https://" + raw.split("://", 1)[1]
    parts = _split_web_url(candidate)
    if parts is None or _host(parts) not in _APPLE_HOSTS:
        return raw
    path = parts.path.rstrip("/")
    # "?i=" selects the song inside an album page, everything else is tracking.
    song_id = _query_param(parts, "i")
    if song_id and song_id.isdigit():
        return f"https://music.apple.com{path}?i={song_id}"
    return f"https://music.apple.com{path}"


def _is_apple_music_deep_link(parts: SplitResult) -> bool:
    if _host(parts) not in _APPLE_HOSTS:
        return False
    song_id = _query_param(parts, "i")
    return "/song/" in parts.path or bool(song_id and song_id.isdigit())


def _apple_music_track_id(parts: SplitResult) -> str | None:
    song_id = _query_param(parts, "i")
    if song_id and song_id.isdigit():
        return song_id
    if "/song/" in parts.path:
        tail = parts.path.rstrip("/").rsplit("/", 1)[-1]
        return tail if tail.isdigit() else None
    return None


# =============================================================================
# YouTube / YouTube Music
# =============================================================================


def _youtube_video_id(raw: str) -> str | None:
    if _YOUTUBE_BARE_ID_RE.match(raw):
        return raw
    if match := _YOUTUBE_URI_RE.match(raw):
        return match.group(1)
    parts = _split_web_url(raw)
    if parts is None:
        return None
    host = _host(parts)
    if host == "youtu.be":
        candidate = parts.path.lstrip("/").split("/", 1)[0]
        return candidate if _YOUTUBE_BARE_ID_RE.match(candidate) else None
    if host not in _YOUTUBE_HOSTS and host != _YOUTUBE_MUSIC_HOST:
        return None
    if parts.path.rstrip("/") == "/watch":
        candidate = _query_param(parts, "v")
        return candidate if candidate and _YOUTUBE_BARE_ID_RE.match(candidate) else None
    if match := _YOUTUBE_PATH_ID_RE.match(parts.path):
        return match.group(1)
    return None


def _normalize_youtube(raw: str) -> str:
    video_id = _youtube_video_id(raw)
    return f"https://www.youtube.com/watch?v={video_id}" if video_id else raw


def _normalize_youtube_music(raw: str) -> str:
    video_id = _youtube_video_id(raw)
    return f"https://music.youtube.com/watch?v={video_id}" if video_id else raw


def _has_watch_id(parts: SplitResult) -> bool:
    video_id = _query_param(parts, "v")
    return parts.path == "/watch" and bool(video_id and _YOUTUBE_BARE_ID_RE.match(video_id))


def _is_youtube_deep_link(parts: SplitResult) -> bool:
    return _host(parts) in _YOUTUBE_HOSTS and _has_watch_id(parts)


def _is_youtube_music_deep_link(parts: SplitResult) -> bool:
    return _host(parts) == _YOUTUBE_MUSIC_HOST and _has_watch_id(parts)


def _youtube_track_id(parts: SplitResult) -> str | None:
    return _youtube_video_id(parts.geturl())


# =============================================================================
# Deezer
# =============================================================================


def _is_deezer_host(host: str) -> bool:
    return host == "deezer.com" or host.endswith(".deezer.com")


def _normalize_deezer(raw: str) -> str:
    if raw.isdigit():
        return f"https://www.deezer.com/track/{raw}"
    if match := _DEEZER_URI_RE.match(raw):
        return f"https://www.deezer.com/{match.group(1)}/{match.group(2)}"
    parts = _split_web_url(raw)
    if parts is None or not _is_deezer_host(_host(parts)):
        return raw
    if match := _DEEZER_PATH_RE.match(parts.path):
        return f"https://www.deezer.com/{match.group(1)}/{match.group(2)}"
    # Short links (link.deezer.com, deezer.page.link) carry state in the query.
    if _host(parts) in ("www.deezer.com", "deezer.com"):
        return _strip_query(parts)
    return raw


def _is_deezer_deep_link(parts: SplitResult) -> bool:
    match = _DEEZER_PATH_RE.match(parts.path)
    return _is_deezer_host(_host(parts)) and bool(match and match.group(1) == "track")


def _deezer_track_id(parts: SplitResult) -> str | None:
    match = _DEEZER_PATH_RE.match(parts.path)
    return match.group(2) if match and match.group(1) == "track" else None


# =============================================================================
# Tidal
# =============================================================================


def _normalize_tidal(raw: str) -> str:
    if raw.isdigit():
        return f"https://tidal.com/browse/track/{raw}"
    if match := _TIDAL_URI_RE.match(raw):
        return f"https://tidal.com/browse/{match.group(1)}/{match.group(2)}"
    parts = _split_web_url(raw)
    if parts is None or _host(parts) not in _TIDAL_HOSTS:
        return raw
    if match := _TIDAL_TRACK_IN_PATH_RE.search(parts.path):
        return f"https://tidal.com/browse/track/{match.group(1)}"
    if match := _TIDAL_PATH_RE.match(parts.path):
        return f"https://tidal.com/browse/{match.group(1)}/{match.group(2)}"
    return _strip_query(parts)


def _is_tidal_deep_link(parts: SplitResult) -> bool:
    return _host(parts) in _TIDAL_HOSTS and bool(_TIDAL_TRACK_IN_PATH_RE.search(parts.path))


def _tidal_track_id(parts: SplitResult) -> str | None:
    match = _TIDAL_TRACK_IN_PATH_RE.search(parts.path)
    return match.group(1) if match else None


# =============================================================================
# Amazon Music
# =============================================================================


def _normalize_amazon_music(raw: str) -> str:
    if _AMAZON_BARE_ASIN_RE.match(raw):
        return f"https://music.amazon.com/tracks/{raw}"
    parts = _split_web_url(raw)
    if parts is None or not _AMAZON_HOST_RE.match(_host(parts)):
        return raw
    host = _host(parts)
    if match := _AMAZON_TRACKS_RE.match(parts.path):
        return f"https://{host}/tracks/{match.group(1)}"
    if match := _AMAZON_ALBUMS_RE.match(parts.path):
        track_asin = _query_param(parts, "trackAsin")
        album_url = f"https://{host}/albums/{match.group(1)}"
        if track_asin and re.fullmatch(_ASIN, track_asin):
            return f"{album_url}?trackAsin={track_asin}"
        return album_url
    return _strip_query(parts)


def _is_amazon_music_deep_link(parts: SplitResult) -> bool:
    if not _AMAZON_HOST_RE.match(_host(parts)):
        return False
    return bool(_AMAZON_TRACKS_RE.match(parts.path)) or bool(
        _AMAZON_ALBUMS_RE.match(parts.path) and _query_param(parts, "trackAsin")
    )


def _amazon_music_track_id(parts: SplitResult) -> str | None:
    if match := _AMAZON_TRACKS_RE.match(parts.path):
        return match.group(1)
    return _query_param(parts, "trackAsin")


# =============================================================================
# SoundCloud
# =============================================================================


def _normalize_soundcloud(raw: str) -> str:
    parts = _split_web_url(raw)
    if parts is None:
        return raw
    host = _host(parts)
    if host in _SOUNDCLOUD_HOSTS:
        return f"https://soundcloud.com{parts.path.rstrip('/')}"
    if host.endswith(".soundcloud.com"):
        return _strip_query(parts)
    return raw


def _soundcloud_segments(parts: SplitResult) -> list[str]:
    return [segment for segment in parts.path.split("/") if segment]


def _is_soundcloud_deep_link(parts: SplitResult) -> bool:
    if _host(parts) not in _SOUNDCLOUD_HOSTS:
        return False
    segments = _soundcloud_segments(parts)
    return (
        len(segments) == 2
        and segments[0].lower() not in _SOUNDCLOUD_RESERVED_ROOTS
        and segments[1].lower() not in _SOUNDCLOUD_RESERVED_LEAVES
    )


def _soundcloud_track_id(parts: SplitResult) -> str | None:
    # No numeric id in public URLs, "artist/slug" is the stable handle.
    if not _is_soundcloud_deep_link(parts):
        return None
    return "/".join(_soundcloud_segments(parts))


# =============================================================================
# Napster
# =============================================================================


def _is_napster_host(host: str) -> bool:
    return host == "napster.com" or host.endswith(".napster.com")


def _normalize_napster(raw: str) -> str:
    if _NAPSTER_BARE_ID_RE.match(raw):
        return f"https://web.napster.com/track/{raw.lower()}"
    parts = _split_web_url(raw)
    if parts is None or not _is_napster_host(_host(parts)):
        return raw
    return _strip_query(parts)


def _is_napster_deep_link(parts: SplitResult) -> bool:
    return _is_napster_host(_host(parts)) and bool(_NAPSTER_TRACK_PATH_RE.search(parts.path))


def _napster_track_id(parts: SplitResult) -> str | None:
    match = _NAPSTER_TRACK_PATH_RE.search(parts.path)
    return match.group(1) if match else None


# =============================================================================
# Rule table
# =============================================================================


@dataclass(frozen=True)
class PlatformRule:
    """Normalization and shape rules for one platform."""

    normalize: Callable[[str], str]
    is_deep_link: Callable[[SplitResult], bool]
    track_id: Callable[[SplitResult], str | None]


_RULES: dict[Platform, PlatformRule] = {
    Platform.SPOTIFY: PlatformRule(_normalize_spotify, _is_spotify_deep_link, _spotify_track_id),
    Platform.APPLE_MUSIC: PlatformRule(
        _normalize_apple_music, _is_apple_music_deep_link, _apple_music_track_id
    ),
    Platform.YOUTUBE: PlatformRule(_normalize_youtube, _is_youtube_deep_link, _youtube_track_id),
    Platform.YOUTUBE_MUSIC: PlatformRule(
        _normalize_youtube_music, _is_youtube_music_deep_link, _youtube_track_id
    ),
    Platform.DEEZER: PlatformRule(_normalize_deezer, _is_deezer_deep_link, _deezer_track_id),
    Platform.TIDAL: PlatformRule(_normalize_tidal, _is_tidal_deep_link, _tidal_track_id),
    Platform.AMAZON_MUSIC: PlatformRule(
        _normalize_amazon_music, _is_amazon_music_deep_link, _amazon_music_track_id
    ),
    Platform.SOUNDCLOUD: PlatformRule(
        _normalize_soundcloud, _is_soundcloud_deep_link, _soundcloud_track_id
    ),
    Platform.NAPSTER: PlatformRule(_normalize_napster, _is_napster_deep_link, _napster_track_id),
}

_uncovered = set(Platform) - set(_RULES)
if _uncovered:
    raise RuntimeError(f"No URL rule for platform(s): {sorted(p.value for p in _uncovered)}")


# =============================================================================
# Public API
# =============================================================================


def normalize(platform: Platform, raw: str) -> str:
    """Normalize raw input into the platform's canonical web URL.

    Args:
        platform: Target platform
        raw: URI, web URL or bare ID

    Returns:
        Canonical URL, or the trimmed input when nothing matched
    """
    value = raw.strip()
    if not value:
        return value
    return _RULES[platform].normalize(value)


def is_deep_link(platform: Platform, url: str) -> bool:
    """Check if url points straight at a track (not a search/landing page)."""
    parts = _split_web_url(url.strip())
    if parts is None:
        return False
    return _RULES[platform].is_deep_link(parts)


def extract_track_id(platform: Platform, url: str) -> str | None:
    """Get the platform's track identifier out of a web URL."""
    parts = _split_web_url(url.strip())
    if parts is None:
        return None
    return _RULES[platform].track_id(parts)


def classify_user_agent(user_agent: str | None) -> ClientOS:
    """Classify a User-Agent header into iOS, Android or other."""
    if not user_agent:
        return ClientOS.OTHER
    if _MOBILE_IOS_RE.search(user_agent):
        return ClientOS.IOS
    if _MOBILE_ANDROID_RE.search(user_agent):
        return ClientOS.ANDROID
    return ClientOS.OTHER


@dataclass(frozen=True)
class DeepLink:
    """Where to send a client: a native app URI if reliable, else the web URL."""

    web_url: str
    app_uri: str | None = None

    @property
    def primary(self) -> str:
        """URL to open first."""
        return self.app_uri or self.web_url


# Hey future me, ONLY Spotify gets a native scheme. The other apps' schemes break between
# app versions and then the tap silently does nothing. Web URLs still open the apps via
# universal links / app links, so don't "fix" this by adding more schemes.
def build_deep_link(platform: Platform, web_url: str, client_os: ClientOS) -> DeepLink:
    """Build an OS-aware deep link for a canonical web URL.

    Args:
        platform: Platform the URL belongs to
        web_url: Canonical web URL
        client_os: Coarse OS of the caller (see classify_user_agent)

    Returns:
        DeepLink with app_uri set only where native handoff reliably works
    """
    if platform == Platform.SPOTIFY and client_os in (ClientOS.IOS, ClientOS.ANDROID):
        track_id = extract_track_id(platform, web_url)
        if track_id:
            return DeepLink(web_url=web_url, app_uri=f"spotify://track/{track_id}")
    return DeepLink(web_url=web_url)


__all__ = [
    "DeepLink",
    "PlatformRule",
    "build_deep_link",
    "classify_user_agent",
    "extract_track_id",
    "is_deep_link",
    "normalize",
    "parse_spotify_track_id",
]
