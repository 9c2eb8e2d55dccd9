"""Chartmetric analytics API client."""

import logging
import time
from typing import Any

import httpx

from songscout.config import ChartmetricSettings
from songscout.domain.exceptions import (
    AuthExpiredError,
    ConfigurationMissingError,
    MalformedResponseError,
    SourceUnavailableError,
)
from songscout.domain.ports import AnalyticsResult, IAnalyticsClient
from songscout.infrastructure.integrations.base import json_body, json_objects, send_with_retry
from songscout.infrastructure.rate_limiter import RateLimiter, get_chartmetric_limiter

logger = logging.getLogger(__name__)

SOURCE = "chartmetric"
# Refresh the access token once 90% of its lifetime has passed
TOKEN_LIFETIME_FRACTION = 0.9


def _unwrap(data: Any) -> Any:
    """Chartmetric wraps payloads as {"obj": ...}, sometimes inside {"data": ...}."""
    if isinstance(data, dict) and "data" in data and isinstance(data["data"], dict):
        data = data["data"]
    if isinstance(data, dict) and "obj" in data:
        return data["obj"]
    return data


def _series_values(stats: Any) -> list[float]:
    """Flatten a stats response into its numeric values, oldest first.

    Stats come back either as a list of {"value": n, "timestp": ...} points or as a list of
    series objects with a nested "data" list of such points.
    """
    if isinstance(stats, dict):
        stats = [stats]
    if not isinstance(stats, list):
        return []
    points: list[Any] = []
    for item in stats:
        if isinstance(item, dict) and isinstance(item.get("data"), list):
            points.extend(item["data"])
        else:
            points.append(item)

    values: list[float] = []
    for point in points:
        raw = point.get("value") if isinstance(point, dict) else point
        if isinstance(raw, int | float) and not isinstance(raw, bool):
            values.append(float(raw))
    return values


def compute_stream_metrics(values: list[float]) -> tuple[int | None, float | None, float | None]:
    """Derive (streams, velocity, week-over-week %) from a cumulative stream series.

    streams is the newest value, velocity the difference to the previous one, and the WoW
    percentage that difference relative to the previous value (None if it was 0).
    """
    if not values:
        return None, None, None
    latest = values[-1]
    if len(values) < 2:
        return int(latest), None, None
    previous = values[-2]
    velocity = latest - previous
    wow = round(velocity / previous * 100, 2) if previous else None
    return int(latest), velocity, wow


class ChartmetricClient(IAnalyticsClient):
    """HTTP client for the Chartmetric API.

    Hey future me - Chartmetric auth is a two-step dance: the long-lived API key is a
    REFRESH token, POSTed to /api/token to get a short-lived bearer token. We cache that
    bearer token until 90% of its lifetime has passed, then quietly fetch a new one. A 401
    on a data call drops the cached token and retries once before giving up.
    """

    def __init__(
        self,
        settings: ChartmetricSettings,
        timeout: float = 30.0,
        limiter: RateLimiter | None = None,
    ) -> None:
        self.settings = settings
        self.timeout = timeout
        self.limiter = limiter or get_chartmetric_limiter()
        self._client: httpx.AsyncClient | None = None
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    def is_configured(self) -> bool:
        """Whether an API key is present."""
        return self.settings.is_configured()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url, timeout=self.timeout
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        if not self.is_configured():
            raise ConfigurationMissingError("Chartmetric API key not configured", SOURCE)

        client = await self._get_client()
        response = await send_with_retry(
            client,
            "POST",
            "/api/token",
            limiter=self.limiter,
            source=SOURCE,
            json={"refreshtoken": self.settings.api_key.get_secret_value()},
        )
        if response.status_code in (400, 401, 403):
            raise AuthExpiredError(
                "Chartmetric rejected the API key", source=SOURCE, http_status=response.status_code
            )
        if response.status_code >= 400:
            raise SourceUnavailableError(
                f"Chartmetric token endpoint error {response.status_code}", SOURCE
            )

        data = json_body(response, SOURCE)
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise MalformedResponseError("Chartmetric token response without token", SOURCE)
        try:
            expires_in = float(data.get("expires_in") or 3600)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(
                "Chartmetric token expires_in is not a number", SOURCE
            ) from e
        self._access_token = token
        self._token_expires_at = time.monotonic() + expires_in * TOKEN_LIFETIME_FRACTION
        logger.debug(f"Chartmetric token refreshed (valid {expires_in:.0f}s)")
        return token

    async def _api_get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        client = await self._get_client()
        for attempt in range(2):
            token = await self._get_access_token()
            response = await send_with_retry(
                client,
                "GET",
                path,
                limiter=self.limiter,
                source=SOURCE,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            if response.status_code == 401 and attempt == 0:
                self._access_token = None
                continue
            if response.status_code == 404:
                return None
            if response.status_code == 401:
                raise AuthExpiredError(
                    "Chartmetric token rejected twice", source=SOURCE, http_status=401
                )
            if response.status_code >= 400:
                raise SourceUnavailableError(
                    f"Chartmetric error {response.status_code} on {path}", SOURCE
                )
            return _unwrap(json_body(response, SOURCE))
        return None

    async def resolve_track_id(self, isrc: str) -> str | None:
        """Map an ISRC onto a Chartmetric track id."""
        obj = await self._api_get(f"/api/track/isrc/{isrc}/get-ids")
        entries = json_objects([obj] if isinstance(obj, dict) else obj, SOURCE, "ISRC id lookup")
        for entry in entries:
            ids = entry.get("chartmetric_ids")
            if not ids:
                continue
            if not isinstance(ids, list) or not isinstance(ids[0], int | str):
                raise MalformedResponseError(
                    f"Chartmetric chartmetric_ids has an unexpected shape: {ids!r}", SOURCE
                )
            return str(ids[0])
        return None

    async def get_track_analytics(self, isrc: str) -> AnalyticsResult | None:
        """Streaming stats for a recording.

        Returns:
            AnalyticsResult, or None when Chartmetric does not know the ISRC

        Raises:
            ConfigurationMissingError: No API key
            AuthExpiredError: API key rejected
            SourceUnavailableError: Network/5xx/rate-limit exhaustion
        """
        chartmetric_id = await self.resolve_track_id(isrc)
        if chartmetric_id is None:
            return None

        spotify_stats = await self._api_get(
            f"/api/track/{chartmetric_id}/spotify/stats", {"type": "streams"}
        )
        streams, velocity, wow = compute_stream_metrics(_series_values(spotify_stats))

        popularity_stats = await self._api_get(
            f"/api/track/{chartmetric_id}/spotify/stats", {"type": "popularity"}
        )
        popularity_values = _series_values(popularity_stats)
        popularity = int(popularity_values[-1]) if popularity_values else None

        # YouTube is a nice-to-have: its failure never loses the Spotify figures
        youtube_views: int | None = None
        try:
            youtube_values = _series_values(
                await self._api_get(f"/api/track/{chartmetric_id}/youtube/stats")
            )
            youtube_views = int(youtube_values[-1]) if youtube_values else None
        except SourceUnavailableError as e:
            logger.warning(f"Chartmetric YouTube stats unavailable for {chartmetric_id}: {e}")

        return AnalyticsResult(
            chartmetric_id=chartmetric_id,
            spotify_streams=streams,
            streaming_velocity=velocity,
            wow_growth_pct=wow,
            popularity=popularity,
            youtube_views=youtube_views,
        )
