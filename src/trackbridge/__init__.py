"""TrackBridge - cross-platform track link resolution and verification."""

__version__ = "0.1.0"
