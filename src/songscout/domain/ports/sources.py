"""Source client ports.

Hey future me - every external source sits behind one of these interfaces.
The phase executors only ever talk to the interface, so the heuristic browser
scrapers and the authenticated JSON APIs are interchangeable from the
orchestration's point of view. Failures are signalled with the exceptions in
songscout.domain.exceptions (SourceUnavailableError, NoDataFoundError,
AuthExpiredError, MalformedResponseError, ConfigurationMissingError).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from songscout.domain.entities import AuthStatus, CookieSource, PlaylistEntry


@dataclass
class CatalogTrack:
    """Track as returned by the streaming catalog API."""

    spotify_id: str
    name: str
    artists: list[str] = field(default_factory=list)
    isrc: str | None = None
    label: str | None = None
    release_date: str | None = None
    popularity: int | None = None
    url: str | None = None


@dataclass
class CreditsResult:
    """Writer/publisher text scraped from a credits page."""

    songwriters: list[str] = field(default_factory=list)
    producers: list[str] = field(default_factory=list)
    publishers: list[str] = field(default_factory=list)
    label: str | None = None
    stream_count: int | None = None

    def is_empty(self) -> bool:
        """True when nothing useful was extracted."""
        return not (self.songwriters or self.producers or self.publishers or self.label)


@dataclass
class ArtistMatch:
    """Canonical artist resolved in the musicological database."""

    musicbrainz_id: str
    name: str
    score: float = 100.0
    exact: bool = True


@dataclass
class AnalyticsResult:
    """Streaming analytics for one recording."""

    chartmetric_id: str
    spotify_streams: int | None = None
    streaming_velocity: float | None = None
    wow_growth_pct: float | None = None
    popularity: int | None = None
    youtube_views: int | None = None


@dataclass
class RegistryPublisher:
    """Publisher share on a registered work."""

    name: str
    collection_share: float | None = None
    ipi: str | None = None


@dataclass
class RegistryWriter:
    """Writer credited on a registered work."""

    name: str
    ipi: str | None = None


@dataclass
class RegistryWork:
    """Musical work found in the mechanical licensing registry."""

    song_code: str | None = None
    iswc: str | None = None
    title: str | None = None
    publishers: list[RegistryPublisher] = field(default_factory=list)
    writers: list[RegistryWriter] = field(default_factory=list)
    source: str = "api"  # "api" or "portal"

    @property
    def publisher_names(self) -> list[str]:
        """Publisher names in registry order."""
        return [p.name for p in self.publishers if p.name]

    @property
    def total_collection_share(self) -> float | None:
        """Sum of known collection shares (None if no share was reported)."""
        shares = [p.collection_share for p in self.publishers if p.collection_share is not None]
        return round(sum(shares), 2) if shares else None


class ICatalogClient(ABC):
    """Streaming catalog API (phase 1)."""

    @abstractmethod
    async def search_track_by_name_and_artist(
        self, track_name: str, artist_name: str
    ) -> CatalogTrack | None:
        """Best match for a track/artist pair, or None."""
        pass

    @abstractmethod
    async def get_tracks(self, track_ids: list[str]) -> list[CatalogTrack | None]:
        """Batch lookup (max 50); positions of unknown ids hold None."""
        pass


class ICreditsSource(ABC):
    """Credits page scraper (phase 2)."""

    @abstractmethod
    async def fetch_credits(self, track_url: str) -> CreditsResult:
        """Scrape credits for a track page."""
        pass


class IMusicologyClient(ABC):
    """Musicological database (phase 3)."""

    @abstractmethod
    async def resolve_artist(self, name: str) -> ArtistMatch | None:
        """Resolve a performer/writer name to a canonical id."""
        pass

    @abstractmethod
    async def get_artist_links(self, musicbrainz_id: str) -> dict[str, str]:
        """Social/website links keyed by link type."""
        pass


class IAnalyticsClient(ABC):
    """Charting/analytics service (phase 4)."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are present."""
        pass

    @abstractmethod
    async def get_track_analytics(self, isrc: str) -> AnalyticsResult | None:
        """Streaming figures for a recording, or None if unknown."""
        pass


class IRegistrySource(ABC):
    """Mechanical licensing registry (phase 5)."""

    @abstractmethod
    async def lookup_by_isrc(self, isrc: str) -> RegistryWork | None:
        """Work registered for a recording, or None if nothing was found."""
        pass


class IPlaylistFetcher(ABC):
    """Black-box playlist membership fetcher."""

    @abstractmethod
    async def fetch_playlist(self, playlist_id: str) -> list[PlaylistEntry]:
        """Current tracks of a playlist."""
        pass


class ISnapshotCapturer(ABC):
    """Performance snapshot side effect."""

    @abstractmethod
    async def capture_snapshot(self) -> dict[str, Any]:
        """Capture a snapshot of all enriched tracks; returns a summary."""
        pass


@dataclass
class SessionCookies:
    """Browser session cookies plus where they came from."""

    cookies: list[dict[str, Any]] = field(default_factory=list)
    source: CookieSource = CookieSource.NONE
    expiry: datetime | None = None  # earliest expiry of the auth cookies


class ISessionCookieProvider(ABC):
    """Hands out the logged-in browser session for the credits scraper."""

    @abstractmethod
    def load_session_cookies(self) -> SessionCookies:
        """Load cookies from the configured secret, else the fallback file."""
        pass


class IAuthMonitor(ABC):
    """Health record of the scraping session."""

    @abstractmethod
    def record_success(self, source: CookieSource, expiry: datetime | None = None) -> None:
        """Reset the failure counter after a session-bound call worked."""
        pass

    @abstractmethod
    def record_failure(self, http_status: int | None = None, message: str | None = None) -> str:
        """Count a failure; returns the operator-facing remediation diagnostic."""
        pass

    @abstractmethod
    def is_healthy(self) -> bool:
        """False after any failure or once the cookies have expired."""
        pass

    @abstractmethod
    def get_status(self) -> AuthStatus:
        """Snapshot of the current auth status."""
        pass

    @abstractmethod
    def has_ever_succeeded(self) -> bool:
        """Whether a session-bound call has worked at least once."""
        pass
