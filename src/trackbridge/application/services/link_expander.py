"""Cross-Platform Link Expander: ISRC / source URL -> per-platform deep links."""

import logging
from typing import Any

from rapidfuzz import fuzz, utils

from trackbridge.domain.ports import ILinkAggregator
from trackbridge.domain.value_objects import Platform
from trackbridge.domain.value_objects.platform_urls import is_deep_link, normalize

logger = logging.getLogger(__name__)

# ACRCloud platform keys (plus a few spellings seen in the wild) -> our platforms.
PLATFORM_KEYS: dict[str, Platform] = {
    "spotify": Platform.SPOTIFY,
    "applemusic": Platform.APPLE_MUSIC,
    "apple_music": Platform.APPLE_MUSIC,
    "youtube": Platform.YOUTUBE,
    "youtubemusic": Platform.YOUTUBE_MUSIC,
    "youtube_music": Platform.YOUTUBE_MUSIC,
    "deezer": Platform.DEEZER,
    "tidal": Platform.TIDAL,
    "amazonmusic": Platform.AMAZON_MUSIC,
    "amazon_music": Platform.AMAZON_MUSIC,
    "amazon": Platform.AMAZON_MUSIC,
    "soundcloud": Platform.SOUNDCLOUD,
    "napster": Platform.NAPSTER,
}

# Starting confidence of a freshly expanded link, by what the lookup was keyed on.
LOOKUP_CONFIDENCE = {"isrc": 0.9, "source_url": 0.8, "query": 0.7}

HINT_TITLE_WEIGHT = 0.6
HINT_ARTIST_WEIGHT = 0.4
HINT_MATCH_THRESHOLD = 0.7


def lookup_key(isrc: str | None, source_url: str | None) -> str:
    """Name the key an expansion would be looked up by."""
    if isrc:
        return "isrc"
    if source_url:
        return "source_url"
    return "query"


def _similarity(left: str, right: str) -> float:
    return fuzz.ratio(left, right, processor=utils.default_process) / 100.0


def hint_score(
    title: str, artist: str | None, candidate_title: str, candidate_artist: str | None
) -> float:
    """Weighted title/artist similarity in [0, 1].

    Without an artist on either side the title carries the full weight.
    """
    title_score = _similarity(title, candidate_title)
    if not artist or not candidate_artist:
        return title_score
    return HINT_TITLE_WEIGHT * title_score + HINT_ARTIST_WEIGHT * _similarity(
        artist, candidate_artist
    )


def extract_candidates(record: dict[str, Any]) -> dict[Platform, list[str]]:
    """Collect raw link candidates per platform from an aggregation record.

    Entries may be lists or single objects; a "link"/"url" wins over a bare
    "id" (which the normalizer promotes to a URL where the platform allows).
    """
    candidates: dict[Platform, list[str]] = {}

    def _add(platform: Platform, value: Any) -> None:
        if isinstance(value, str | int) and str(value).strip():
            candidates.setdefault(platform, []).append(str(value).strip())

    external_metadata = record.get("external_metadata")
    if isinstance(external_metadata, dict):
        for key, value in external_metadata.items():
            platform = PLATFORM_KEYS.get(str(key).lower())
            if platform is None:
                continue
            entries = value if isinstance(value, list) else [value]
            for entry in entries:
                if isinstance(entry, dict):
                    _add(platform, entry.get("link") or entry.get("url") or entry.get("id"))
                else:
                    _add(platform, entry)

    # Older payloads put plain URLs here.
    external_urls = record.get("external_urls")
    if isinstance(external_urls, dict):
        for key, value in external_urls.items():
            platform = PLATFORM_KEYS.get(str(key).lower())
            if platform is not None:
                _add(platform, value)

    return candidates


def _record_artist(record: dict[str, Any]) -> str | None:
    artists = record.get("artists")
    if isinstance(artists, list) and artists and isinstance(artists[0], dict):
        return artists[0].get("name")
    return None


# Hey future me - the golden rule here: a MISSING link beats a WRONG link. The aggregator
# happily returns "search this platform" URLs next to real deep links; everything that
# fails is_deep_link() after normalization is thrown away. expand() never returns an
# entry that fails that check.
class CrossPlatformLinkExpander:
    """Expands one track into deep links on every platform the aggregator knows."""

    def __init__(self, aggregator: ILinkAggregator) -> None:
        """Initialize expander.

        Args:
            aggregator: Cross-platform lookup service client
        """
        self._aggregator = aggregator

    async def expand(
        self,
        isrc: str | None = None,
        source_url: str | None = None,
        *,
        title: str | None = None,
        artist: str | None = None,
    ) -> dict[Platform, str]:
        """Look up deep links for a track (exactly one aggregator request).

        Args:
            isrc: ISRC, preferred key
            source_url: Canonical source URL, used when there's no ISRC
            title: Title hint, used for a free-text lookup when neither key is known
            artist: Artist hint for the free-text lookup

        Returns:
            Mapping platform -> canonical deep link (possibly empty)

        Raises:
            ConfigurationError: If the aggregator has no credential
        """
        query: str | None = None
        if not isrc and not source_url:
            if not title:
                return {}
            query = f"{artist or ''} {title}".strip()

        record = await self._aggregator.lookup(isrc=isrc, source_url=source_url, query=query)
        if not record:
            return {}

        if query is not None and title and not self._matches_hints(record, title, artist):
            return {}

        links = self.select_deep_links(record)
        logger.debug(
            "Expanded %s lookup into %d link(s): %s",
            lookup_key(isrc, source_url),
            len(links),
            ", ".join(sorted(p.value for p in links)),
        )
        return links

    @staticmethod
    def select_deep_links(record: dict[str, Any]) -> dict[Platform, str]:
        """Normalize candidates and keep the first real deep link per platform."""
        links: dict[Platform, str] = {}
        for platform, raw_values in extract_candidates(record).items():
            for raw in raw_values:
                url = normalize(platform, raw)
                if is_deep_link(platform, url):
                    links[platform] = url
                    break
                logger.debug("Dropping non-deep %s link: %s", platform.value, raw)

        # YouTube Music plays any YouTube video id.
        if Platform.YOUTUBE in links and Platform.YOUTUBE_MUSIC not in links:
            derived = normalize(Platform.YOUTUBE_MUSIC, links[Platform.YOUTUBE])
            if is_deep_link(Platform.YOUTUBE_MUSIC, derived):
                links[Platform.YOUTUBE_MUSIC] = derived
        return links

    @staticmethod
    def _matches_hints(record: dict[str, Any], title: str, artist: str | None) -> bool:
        candidate_title = record.get("name") or record.get("title")
        if not candidate_title:
            return False
        score = hint_score(title, artist, str(candidate_title), _record_artist(record))
        if score < HINT_MATCH_THRESHOLD:
            logger.info(
                "Rejecting free-text match %r for %r (score %.2f < %.2f)",
                candidate_title,
                title,
                score,
                HINT_MATCH_THRESHOLD,
            )
            return False
        return True
