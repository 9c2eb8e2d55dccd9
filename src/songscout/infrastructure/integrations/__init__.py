"""External source client implementations."""

from songscout.infrastructure.integrations.browser import BrowserSession
from songscout.infrastructure.integrations.chartmetric_client import ChartmetricClient
from songscout.infrastructure.integrations.mlc_client import MLCApiClient
from songscout.infrastructure.integrations.mlc_portal_scraper import MLCPortalScraper
from songscout.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from songscout.infrastructure.integrations.registry_lookup import RegistryLookup
from songscout.infrastructure.integrations.spotify_client import (
    SpotifyCatalogClient,
    SpotifyClient,
    SpotifyPlaylistFetcher,
)
from songscout.infrastructure.integrations.spotify_credits_scraper import (
    SpotifyCreditsScraper,
)

__all__ = [
    "BrowserSession",
    "ChartmetricClient",
    "MLCApiClient",
    "MLCPortalScraper",
    "MusicBrainzClient",
    "RegistryLookup",
    "SpotifyCatalogClient",
    "SpotifyClient",
    "SpotifyCreditsScraper",
    "SpotifyPlaylistFetcher",
]
