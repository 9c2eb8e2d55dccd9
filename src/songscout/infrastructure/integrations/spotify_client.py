"""Spotify Web API client (catalog metadata, playlist membership, token refresh)."""

import base64
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from songscout.config import SpotifySettings
from songscout.domain.exceptions import (
    AuthExpiredError,
    ConfigurationMissingError,
    MalformedResponseError,
    SourceUnavailableError,
)
from songscout.domain.entities import PlaylistEntry
from songscout.domain.ports import CatalogTrack, ICatalogClient, IPlaylistFetcher
from songscout.infrastructure.integrations.base import json_body, send_with_retry
from songscout.infrastructure.rate_limiter import RateLimiter, get_spotify_limiter

logger = logging.getLogger(__name__)

SOURCE = "spotify"
MAX_BATCH_SIZE = 50


def _to_catalog_track(data: dict[str, Any]) -> CatalogTrack:
    try:
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")
        album = data.get("album") or {}
        return CatalogTrack(
            spotify_id=data["id"],
            name=data.get("name", ""),
            artists=[a.get("name", "") for a in data.get("artists") or [] if a],
            isrc=(data.get("external_ids") or {}).get("isrc"),
            label=album.get("label"),
            release_date=album.get("release_date"),
            popularity=data.get("popularity"),
            url=(data.get("external_urls") or {}).get("spotify"),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise MalformedResponseError(f"Unexpected track object: {e}", SOURCE) from e


class SpotifyClient:
    """Low-level HTTP client for the Spotify Web API.

    Hey future me - this class knows NOTHING about where tokens live. Pass the access token
    into every call. The credential vault owns the token lifecycle and hands out
    SpotifyCatalogClient instances that bind a fresh token to this client.
    """

    API_BASE_URL = "https://api.spotify.com/v1"
    TOKEN_URL = "https://accounts.spotify.com/api/token"

    def __init__(
        self,
        settings: SpotifySettings,
        timeout: float = 30.0,
        limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            timeout: Per-request timeout in seconds
            limiter: Rate limiter (defaults to the process-wide Spotify limiter)
        """
        self.settings = settings
        self.timeout = timeout
        self.limiter = limiter or get_spotify_limiter()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _api_get(
        self, path: str, access_token: str, params: dict[str, Any] | None = None
    ) -> Any:
        client = await self._get_client()
        response = await send_with_retry(
            client,
            "GET",
            f"{self.API_BASE_URL}{path}",
            limiter=self.limiter,
            source=SOURCE,
            params=params,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code == 401:
            raise AuthExpiredError(
                "Spotify access token rejected", source=SOURCE, http_status=401
            )
        if response.status_code >= 400:
            raise SourceUnavailableError(
                f"Spotify API error {response.status_code} on {path}", SOURCE
            )
        return json_body(response, SOURCE)

    # Listen up, a revoked refresh token comes back as 400 {"error": "invalid_grant"}. That's
    # the "a human has to re-run OAuth" case, so it becomes AuthExpiredError with
    # error_code=invalid_grant (requires_reauth is True). Network trouble stays
    # SourceUnavailableError so the next call can simply try again.
    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        """Exchange a refresh token for a new access token.

        Args:
            refresh_token: Refresh token from a previous authorization

        Returns:
            Token response (access_token, expires_in, optionally a rotated refresh_token)

        Raises:
            ConfigurationMissingError: If client credentials are not configured
            AuthExpiredError: If the refresh token is invalid or access is denied
            SourceUnavailableError: On network errors or 5xx
        """
        if not self.settings.is_configured():
            raise ConfigurationMissingError("Spotify client credentials not configured", SOURCE)

        basic = base64.b64encode(
            f"{self.settings.client_id}:"
            f"{self.settings.client_secret.get_secret_value()}".encode()
        ).decode()

        client = await self._get_client()
        response = await send_with_retry(
            client,
            "POST",
            self.TOKEN_URL,
            limiter=self.limiter,
            source=SOURCE,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": f"Basic {basic}",
            },
        )

        if response.status_code in (400, 401, 403):
            error_code = "access_denied"
            description = "Spotify refused the refresh token"
            try:
                payload = response.json()
                error_code = payload.get("error", error_code)
                description = payload.get("error_description", description)
            except ValueError:
                pass
            raise AuthExpiredError(
                f"{description}. Re-authorize the Spotify application.",
                source=SOURCE,
                http_status=response.status_code,
                error_code=error_code,
            )
        if response.status_code >= 400:
            raise SourceUnavailableError(
                f"Spotify token endpoint error {response.status_code}", SOURCE
            )

        data = json_body(response, SOURCE)
        if not isinstance(data, dict) or "access_token" not in data:
            raise MalformedResponseError("Token response without access_token", SOURCE)
        return data

    async def search_track(
        self, track_name: str, artist_name: str, access_token: str
    ) -> CatalogTrack | None:
        """Search the best match for a track/artist pair.

        Returns:
            First search hit, or None when the search is empty
        """
        data = await self._api_get(
            "/search",
            access_token,
            params={"q": f"track:{track_name} artist:{artist_name}", "type": "track", "limit": 1},
        )
        tracks = (data or {}).get("tracks") or {}
        items = tracks.get("items") if isinstance(tracks, dict) else None
        if items is not None and not isinstance(items, list):
            raise MalformedResponseError("Search response 'items' is not a list", SOURCE)
        if not items:
            return None
        return _to_catalog_track(items[0])

    async def get_tracks(
        self, track_ids: list[str], access_token: str
    ) -> list[CatalogTrack | None]:
        """Get up to 50 tracks in one request.

        Hey future me - Spotify answers unknown/removed ids with a null entry at that
        position. We keep the position (None) so callers can zip results back onto their
        ids; one dead track never fails the batch.
        """
        if not track_ids:
            return []
        if len(track_ids) > MAX_BATCH_SIZE:
            raise ValueError(f"At most {MAX_BATCH_SIZE} ids per request, got {len(track_ids)}")

        data = await self._api_get("/tracks", access_token, params={"ids": ",".join(track_ids)})
        tracks = (data or {}).get("tracks")
        if not isinstance(tracks, list):
            raise MalformedResponseError("Batch track response without 'tracks' list", SOURCE)

        results: list[CatalogTrack | None] = [
            _to_catalog_track(item) if item else None for item in tracks
        ]
        # Pad with None if the API returned fewer entries than requested
        results.extend([None] * (len(track_ids) - len(results)))
        return results[: len(track_ids)]


class SpotifyCatalogClient(ICatalogClient):
    """Catalog port bound to a currently valid access token."""

    def __init__(self, client: SpotifyClient, access_token: str) -> None:
        self._client = client
        self._access_token = access_token

    async def search_track_by_name_and_artist(
        self, track_name: str, artist_name: str
    ) -> CatalogTrack | None:
        """Best match for a track/artist pair, or None."""
        return await self._client.search_track(track_name, artist_name, self._access_token)

    async def get_tracks(self, track_ids: list[str]) -> list[CatalogTrack | None]:
        """Batch lookup (max 50); positions of unknown ids hold None."""
        return await self._client.get_tracks(track_ids, self._access_token)

    async def get_playlist_entries(
        self, playlist_id: str, access_token: str, page_size: int = 100
    ) -> list[PlaylistEntry]:
        """All tracks currently on a playlist (follows pagination).

        Local files and removed tracks (no id, no URL) are skipped.
        """
        entries: list[PlaylistEntry] = []
        offset = 0
        while True:
            data = await self._api_get(
                f"/playlists/{playlist_id}/tracks",
                access_token,
                params={"limit": page_size, "offset": offset},
            )
            items = (data or {}).get("items")
            if not isinstance(items, list):
                raise MalformedResponseError("Playlist response without 'items' list", SOURCE)

            for item in items:
                track = (item or {}).get("track") or {}
                url = (track.get("external_urls") or {}).get("spotify")
                if not track.get("id") or not url:
                    continue
                images = (track.get("album") or {}).get("images") or []
                entries.append(
                    PlaylistEntry(
                        playlist_id=playlist_id,
                        track_name=track.get("name", ""),
                        artist_name=", ".join(
                            a.get("name", "") for a in track.get("artists") or [] if a
                        ),
                        source_url=url,
                        album_art=images[0].get("url") if images else None,
                    )
                )

            if not data.get("next"):
                return entries
            offset += page_size


class SpotifyPlaylistFetcher(IPlaylistFetcher):
    """Playlist membership via the Web API.

    token_getter hands out a valid access token per call (the credential vault's
    get_access_token), so a long refresh batch survives token rotation.
    """

    def __init__(
        self, client: SpotifyClient, token_getter: Callable[[], Awaitable[str]]
    ) -> None:
        self._client = client
        self._token_getter = token_getter

    async def fetch_playlist(self, playlist_id: str) -> list[PlaylistEntry]:
        """Current tracks of a playlist."""
        access_token = await self._token_getter()
        entries = await self._client.get_playlist_entries(playlist_id, access_token)
        logger.info(f"Fetched {len(entries)} tracks from playlist {playlist_id}")
        return entries
