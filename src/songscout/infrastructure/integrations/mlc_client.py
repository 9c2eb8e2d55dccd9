"""Mechanical licensing registry (The MLC) public API client."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from songscout.config import RegistrySettings
from songscout.domain.exceptions import (
    AuthExpiredError,
    ConfigurationMissingError,
    MalformedResponseError,
    SourceUnavailableError,
)
from songscout.domain.ports import RegistryPublisher, RegistryWork, RegistryWriter
from songscout.infrastructure.integrations.base import (
    json_body,
    json_objects,
    send_with_retry,
)
from songscout.infrastructure.rate_limiter import RateLimiter, get_registry_limiter

logger = logging.getLogger(__name__)

SOURCE = "mlc_api"
# Tokens are treated as expired this long before the server says so
TOKEN_EXPIRY_MARGIN = timedelta(minutes=5)


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _writer_name(writer: dict[str, Any]) -> str:
    first = _text(writer.get("writerFirstName"))
    last = _text(writer.get("writerLastName"))
    return " ".join(part for part in (first, last) if part)


def _share(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _expires_in(value: Any) -> int:
    if value is None or value == "":
        return 3600
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(
            f"Registry token expiresIn is not a number: {value!r}", SOURCE
        ) from e


def parse_work(data: dict[str, Any]) -> RegistryWork:
    """Map one work object of the /works response onto a RegistryWork.

    Raises:
        MalformedResponseError: If publishers, administrators or writers are not lists
            of objects
    """
    publishers: list[RegistryPublisher] = []
    for publisher in json_objects(data.get("publishers"), SOURCE, "work publishers"):
        name = _text(publisher.get("publisherName"))
        if name:
            publishers.append(
                RegistryPublisher(
                    name=name,
                    collection_share=_share(publisher.get("collectionShare")),
                    ipi=publisher.get("publisherIpiNumber"),
                )
            )
        # Administrators collect on behalf of the original publisher; list them too
        for admin in json_objects(publisher.get("administrators"), SOURCE, "administrators"):
            admin_name = _text(admin.get("publisherName"))
            if admin_name and admin_name not in {p.name for p in publishers}:
                publishers.append(
                    RegistryPublisher(
                        name=admin_name,
                        collection_share=_share(admin.get("collectionShare")),
                        ipi=admin.get("publisherIpiNumber"),
                    )
                )

    writers = [
        RegistryWriter(name=name, ipi=writer.get("writerIPI"))
        for writer in json_objects(data.get("writers"), SOURCE, "work writers")
        if (name := _writer_name(writer))
    ]

    return RegistryWork(
        song_code=data.get("mlcSongCode") or data.get("mlcsongCode"),
        iswc=data.get("iswc"),
        title=data.get("primaryTitle"),
        publishers=publishers,
        writers=writers,
        source="api",
    )


class MLCApiClient:
    """HTTP client for the registry's public API.

    Hey future me - the registry uses username/password -> bearer token. The token lives in
    this instance only (never persisted) and is considered dead 5 minutes before its
    expiresIn runs out, so a long job never sends a token that dies mid-flight. A 401 on a
    data call wipes the token and retries once with a fresh login.
    """

    def __init__(
        self,
        settings: RegistrySettings,
        timeout: float = 30.0,
        limiter: RateLimiter | None = None,
    ) -> None:
        self.settings = settings
        self.timeout = timeout
        self.limiter = limiter or get_registry_limiter()
        self._client: httpx.AsyncClient | None = None
        self._access_token: str | None = None
        self._token_expires_at: datetime | None = None

    def is_configured(self) -> bool:
        """Whether username and password are present."""
        return self.settings.is_configured()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_base_url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _token_valid(self) -> bool:
        return (
            self._access_token is not None
            and self._token_expires_at is not None
            and datetime.now(UTC) < self._token_expires_at
        )

    async def _authenticate(self) -> str:
        if self._access_token is not None and self._token_valid():
            return self._access_token
        if not self.is_configured():
            raise ConfigurationMissingError("Registry API credentials not configured", SOURCE)

        client = await self._get_client()
        response = await send_with_retry(
            client,
            "POST",
            "/oauth/token",
            limiter=self.limiter,
            source=SOURCE,
            json={
                "username": self.settings.username,
                "password": self.settings.password.get_secret_value(),
            },
        )
        if response.status_code in (400, 401, 403):
            raise AuthExpiredError(
                "Registry API rejected the credentials",
                source=SOURCE,
                http_status=response.status_code,
            )
        if response.status_code >= 400:
            raise SourceUnavailableError(
                f"Registry token endpoint error {response.status_code}", SOURCE
            )

        data = json_body(response, SOURCE)
        token = data.get("accessToken") if isinstance(data, dict) else None
        if not token:
            raise MalformedResponseError("Registry token response without accessToken", SOURCE)
        expires_in = _expires_in(data.get("expiresIn"))
        self._access_token = token
        self._token_expires_at = (
            datetime.now(UTC) + timedelta(seconds=expires_in) - TOKEN_EXPIRY_MARGIN
        )
        logger.debug(f"Registry API token acquired (expires in {expires_in}s)")
        return token

    async def _post(self, path: str, body: Any) -> Any:
        client = await self._get_client()
        for attempt in range(2):
            token = await self._authenticate()
            response = await send_with_retry(
                client,
                "POST",
                path,
                limiter=self.limiter,
                source=SOURCE,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
            if response.status_code == 401 and attempt == 0:
                self._access_token = None
                continue
            if response.status_code == 404:
                return None
            if response.status_code == 401:
                raise AuthExpiredError(
                    "Registry API token rejected twice", source=SOURCE, http_status=401
                )
            if response.status_code >= 400:
                raise SourceUnavailableError(
                    f"Registry API error {response.status_code} on {path}", SOURCE
                )
            return json_body(response, SOURCE)
        return None

    async def search_song_codes(self, isrc: str) -> list[str]:
        """Song codes of the works a recording is linked to."""
        data = await self._post("/search/recordings", {"isrc": isrc})
        if data is None:
            return []
        codes: list[str] = []
        for recording in json_objects(data, SOURCE, "recording search"):
            code = recording.get("mlcsongCode") or recording.get("mlcSongCode")
            if code and str(code) not in codes:
                codes.append(str(code))
        return codes

    async def get_works(self, song_codes: list[str]) -> list[RegistryWork]:
        """Full work records (publishers, writers, ISWC) for song codes."""
        if not song_codes:
            return []
        data = await self._post("/works", [{"mlcsongCode": code} for code in song_codes])
        if data is None:
            return []
        return [parse_work(item) for item in json_objects(data, SOURCE, "works response")]

    async def lookup_by_isrc(self, isrc: str) -> RegistryWork | None:
        """First registered work with publishers for an ISRC (or the first work at all)."""
        codes = await self.search_song_codes(isrc)
        if not codes:
            return None
        works = await self.get_works(codes)
        if not works:
            return None
        for work in works:
            if work.publishers:
                return work
        return works[0]
