"""Domain value objects."""

from enum import Enum


# Hey future me, Platform is the CLOSED set of streaming services we link to. Values are
# stored as strings in the DB and used in API payloads. Adding a member means adding a
# normalizer rule too, platform_urls refuses to import otherwise.
class Platform(str, Enum):
    """Streaming platform a link points to."""

    SPOTIFY = "spotify"
    APPLE_MUSIC = "apple_music"
    YOUTUBE = "youtube"
    YOUTUBE_MUSIC = "youtube_music"
    DEEZER = "deezer"
    TIDAL = "tidal"
    AMAZON_MUSIC = "amazon_music"
    SOUNDCLOUD = "soundcloud"
    NAPSTER = "napster"


class ClientOS(str, Enum):
    """Coarse OS classification derived from a User-Agent header."""

    IOS = "ios"
    ANDROID = "android"
    OTHER = "other"


__all__ = ["ClientOS", "Platform"]
