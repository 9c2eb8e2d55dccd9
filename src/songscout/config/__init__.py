"""Configuration module for SongScout."""

from .settings import (
    ChartmetricSettings,
    DatabaseSettings,
    EnrichmentSettings,
    MusicBrainzSettings,
    PortalFallbackPolicy,
    RegistrySettings,
    SchedulerSettings,
    ScraperSettings,
    Settings,
    SpotifySettings,
    VaultSettings,
    get_settings,
)

__all__ = [
    "ChartmetricSettings",
    "DatabaseSettings",
    "EnrichmentSettings",
    "MusicBrainzSettings",
    "PortalFallbackPolicy",
    "RegistrySettings",
    "SchedulerSettings",
    "ScraperSettings",
    "Settings",
    "SpotifySettings",
    "VaultSettings",
    "get_settings",
]
