"""Configuration module for TrackBridge."""

from .settings import (
    AcrCloudSettings,
    DatabaseSettings,
    ObservabilitySettings,
    Settings,
    SpotifySettings,
    VerificationSettings,
    get_settings,
)

__all__ = [
    "AcrCloudSettings",
    "DatabaseSettings",
    "ObservabilitySettings",
    "Settings",
    "SpotifySettings",
    "VerificationSettings",
    "get_settings",
]
