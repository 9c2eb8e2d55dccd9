"""Application settings.

Hey future me - ALL configuration comes from environment variables (or .env).
Nested groups use a double underscore: SCHEDULER__ENABLED=true,
REGISTRY__USERNAME=..., DATABASE__URL=... . Missing credentials are NOT an
error at load time! Each source client checks `is_configured()` and skips
its phase instead of blowing up the whole pipeline.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./songscout.db"
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


class SpotifySettings(BaseModel):
    """Spotify Web API credentials and scraping session cookies."""

    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    # JSON list of browser cookies exported from a logged-in session
    cookies_json: SecretStr = SecretStr("")
    cookies_file: Path = Path("spotify_cookies.json")

    def is_configured(self) -> bool:
        """Check whether API client credentials are present."""
        return bool(self.client_id and self.client_secret.get_secret_value())


class ScraperSettings(BaseModel):
    """Browser automation settings shared by credits and portal scraping."""

    headless: bool = True
    navigation_timeout_seconds: float = 15.0
    selector_timeout_seconds: float = 10.0
    track_timeout_seconds: float = 45.0
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )


class MusicBrainzSettings(BaseModel):
    """MusicBrainz client identification (required by their API policy)."""

    app_name: str = "SongScout"
    app_version: str = "0.1.0"
    contact: str = "ops@songscout.local"
    fuzzy_match_threshold: float = 90.0


class ChartmetricSettings(BaseModel):
    """Chartmetric analytics API settings."""

    api_key: SecretStr = SecretStr("")
    base_url: str = "https://api.chartmetric.com"

    def is_configured(self) -> bool:
        """Check whether a refresh token is present."""
        return bool(self.api_key.get_secret_value())


class PortalFallbackPolicy(str, Enum):
    """When the registry portal scraper is used after the API path."""

    ALWAYS = "always"  # any API failure or empty result
    ON_EMPTY = "on_empty"  # only when the API answered without data
    NEVER = "never"


class RegistrySettings(BaseModel):
    """Mechanical licensing registry (The MLC) settings."""

    username: str = ""
    password: SecretStr = SecretStr("")
    api_base_url: str = "https://public-api.themlc.com"
    portal_url: str = "https://portal.themlc.com/search"
    portal_fallback: PortalFallbackPolicy = PortalFallbackPolicy.ON_EMPTY

    def is_configured(self) -> bool:
        """Check whether API credentials are present."""
        return bool(self.username and self.password.get_secret_value())


class VaultSettings(BaseModel):
    """Credential vault and auth-status persistence settings."""

    encryption_key: SecretStr = SecretStr("")
    session_secret: SecretStr = SecretStr("")
    auth_status_path: Path = Path("auth-status.json")

    def secret(self) -> str:
        """Return the configured key material (ENCRYPTION_KEY wins)."""
        return (
            self.encryption_key.get_secret_value()
            or self.session_secret.get_secret_value()
        )


class EnrichmentSettings(BaseModel):
    """Enrichment pipeline tuning."""

    phase_concurrency: int = Field(default=3, ge=1, le=10)
    sub_batch_size: int = Field(default=50, ge=1, le=50)
    chartmetric_staleness_days: int = 7
    queue_poll_interval_seconds: float = 2.0
    request_timeout_seconds: float = 30.0


class SchedulerSettings(BaseModel):
    """Cron cadences for the automatic pipeline.

    Cron strings are standard 5-field crontab expressions.
    """

    enabled: bool = False
    timezone: str = "America/New_York"
    # Every 15 minutes inside the Friday morning maintenance window
    playlist_refresh_cron: str = "*/15 9-12 * * fri"
    playlist_batch_size: int = 4
    retry_cron: str = "0 3 * * *"
    retry_after_days: int = 7
    retry_daily_cap: int = 100
    snapshot_cron: str = "0 6 * * sun"
    snapshot_chunk_size: int = 50


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_json_format: bool = False


class ApiSettings(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 8765


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "songscout"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    scraper: ScraperSettings = Field(default_factory=ScraperSettings)
    musicbrainz: MusicBrainzSettings = Field(default_factory=MusicBrainzSettings)
    chartmetric: ChartmetricSettings = Field(default_factory=ChartmetricSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    vault: VaultSettings = Field(default_factory=VaultSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    api: ApiSettings = Field(default_factory=ApiSettings)


# Hey future me - cached so every get_settings() call returns the SAME object.
# Tests that need different values should build Settings(...) directly instead
# of monkeypatching env vars and fighting this cache.
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
