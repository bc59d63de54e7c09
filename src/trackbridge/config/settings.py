"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./trackbridge.db"
    echo: bool = False
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=3600, ge=-1)
    pool_pre_ping: bool = True
    # Dev/test shortcut. Production schemas come from alembic.
    auto_create_tables: bool = False


class SpotifySettings(BaseModel):
    """Spotify catalog (source of truth) settings.

    Only app-level client-credentials are used here, never a user token.
    """

    client_id: str = ""
    client_secret: str = ""
    token_url: str = "https://accounts.spotify.com/api/token"
    api_base_url: str = "https://api.spotify.com/v1"
    oembed_url: str = "https://open.spotify.com/oembed"
    timeout: float = Field(default=10.0, gt=0)
    token_refresh_margin_seconds: int = Field(default=60, ge=0)

    @property
    def is_configured(self) -> bool:
        """Check if client credentials are present."""
        return bool(self.client_id and self.client_secret)


class AcrCloudSettings(BaseModel):
    """ACRCloud external-metadata (aggregation lookup) settings."""

    base_url: str = "https://eu-api-v2.acrcloud.com"
    bearer_token: str = ""
    # ACRCloud platform keys, comma separated (that's also the wire format).
    platforms: str = "spotify,applemusic,youtube,deezer,tidal,amazonmusic,soundcloud,napster"
    timeout: float = Field(default=12.0, gt=0)

    @property
    def is_configured(self) -> bool:
        """Check if the bearer token is present."""
        return bool(self.bearer_token)

    @property
    def platform_list(self) -> list[str]:
        """Get platform keys as a list."""
        return [item.strip() for item in self.platforms.split(",") if item.strip()]


class VerificationSettings(BaseModel):
    """Link verification (self-healing) settings."""

    enabled: bool = True
    interval_seconds: int = Field(default=24 * 60 * 60, ge=60)
    batch_size: int = Field(default=200, ge=1)
    concurrency: int = Field(default=8, ge=1, le=32)
    probe_timeout: float = Field(default=8.0, gt=0)
    resolve_timeout: float = Field(default=15.0, gt=0)
    decay_step: float = Field(default=0.25, gt=0, le=1)
    report_penalty: float = Field(default=0.1, gt=0, le=1)
    recovery_step: float = Field(default=0.05, ge=0, le=1)
    fresh_confidence: float = Field(default=0.95, gt=0, le=1)
    queue_max_size: int = Field(default=1000, ge=1)

    @model_validator(mode="after")
    def _report_is_softer_than_decay(self) -> "VerificationSettings":
        if self.report_penalty >= self.decay_step:
            raise ValueError("report_penalty must be smaller than decay_step")
        return self


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_level: str = "INFO"
    log_json_format: bool = False
    log_request_body: bool = False


class Settings(BaseSettings):
    """Root settings object.

    Nested sections are read from env vars like
    TRACKBRIDGE_SPOTIFY__CLIENT_ID or TRACKBRIDGE_VERIFICATION__BATCH_SIZE.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRACKBRIDGE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "TrackBridge"
    debug: bool = False
    api_prefix: str = "/api"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    acrcloud: AcrCloudSettings = Field(default_factory=AcrCloudSettings)
    verification: VerificationSettings = Field(default_factory=VerificationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
