"""MusicBrainz HTTP client (artist resolution and external links)."""

import logging
from typing import Any

import httpx
from rapidfuzz import fuzz

from songscout.config import MusicBrainzSettings
from songscout.domain.exceptions import SourceUnavailableError
from songscout.domain.ports import ArtistMatch, IMusicologyClient
from songscout.infrastructure.integrations.base import (
    json_body,
    json_object,
    json_objects,
    send_with_retry,
)
from songscout.infrastructure.rate_limiter import RateLimiter, get_musicbrainz_limiter

logger = logging.getLogger(__name__)

SOURCE = "musicbrainz"
SEARCH_LIMIT = 10

# url-rels "type" -> link key stored on the artist
_RELATION_TYPES = {
    "official homepage": "website",
    "youtube": "youtube",
    "soundcloud": "soundcloud",
    "bandcamp": "bandcamp",
    "songkick": "songkick",
}

# Social networks come back as type "social network"; the host tells them apart
_SOCIAL_HOSTS = {
    "instagram.com": "instagram",
    "twitter.com": "twitter",
    "x.com": "twitter",
    "facebook.com": "facebook",
    "tiktok.com": "tiktok",
}


def _link_key(relation: dict[str, Any]) -> str | None:
    rel_type = str(relation.get("type") or "").lower()
    target = relation.get("url")
    url = str(target.get("resource") or "").lower() if isinstance(target, dict) else ""
    if not url:
        return None
    if rel_type == "social network":
        for host, key in _SOCIAL_HOSTS.items():
            if host in url:
                return key
        return None
    return _RELATION_TYPES.get(rel_type)


class MusicBrainzClient(IMusicologyClient):
    """HTTP client for MusicBrainz artist lookups.

    Hey future me, MusicBrainz is STRICT about rate limiting - 1 req/sec, NO EXCEPTIONS!
    The shared musicbrainz limiter enforces it across every task in the process. Don't
    build a second client with its own limiter "just for this one script".
    """

    API_BASE_URL = "https://musicbrainz.org/ws/2"

    def __init__(
        self,
        settings: MusicBrainzSettings,
        timeout: float = 30.0,
        limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize MusicBrainz client.

        Args:
            settings: MusicBrainz configuration settings
            timeout: Per-request timeout in seconds
            limiter: Rate limiter (defaults to the process-wide MusicBrainz limiter)
        """
        self.settings = settings
        self.timeout = timeout
        self.limiter = limiter or get_musicbrainz_limiter()
        self._client: httpx.AsyncClient | None = None

    # Listen future me, MusicBrainz REQUIRES a User-Agent with app name, version AND contact
    # info, in exactly the "AppName/Version ( contact )" shape. Without it they answer 403.
    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            user_agent = (
                f"{self.settings.app_name}/{self.settings.app_version} "
                f"( {self.settings.contact} )"
            )
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers={"User-Agent": user_agent, "Accept": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any] | None:
        client = await self._get_client()
        response = await send_with_retry(
            client,
            "GET",
            path,
            limiter=self.limiter,
            source=SOURCE,
            params={**params, "fmt": "json"},
        )
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise SourceUnavailableError(
                f"MusicBrainz error {response.status_code} on {path}", SOURCE
            )
        return json_object(json_body(response, SOURCE), SOURCE, path)

    async def resolve_artist(self, name: str) -> ArtistMatch | None:
        """Resolve a name to a MusicBrainz artist.

        An exact (case-insensitive) name match wins. Otherwise the closest candidate is
        accepted only if its fuzzy ratio reaches settings.fuzzy_match_threshold.

        Returns:
            The match, or None if nobody is close enough
        """
        cleaned = name.strip()
        if not cleaned:
            return None

        escaped = cleaned.replace('"', '\\"')
        data = await self._get(
            "/artist", {"query": f'artist:"{escaped}"', "limit": SEARCH_LIMIT}
        )
        artists = json_objects((data or {}).get("artists"), SOURCE, "artist search results")
        candidates = [a for a in artists if a.get("id") and isinstance(a.get("name"), str)]
        if not candidates:
            return None

        wanted = cleaned.lower()
        for artist in candidates:
            if (artist.get("name") or "").strip().lower() == wanted:
                return ArtistMatch(musicbrainz_id=artist["id"], name=artist["name"])

        best: ArtistMatch | None = None
        for artist in candidates:
            candidate_name = artist.get("name") or ""
            score = fuzz.ratio(wanted, candidate_name.lower())
            if score >= self.settings.fuzzy_match_threshold and (
                best is None or score > best.score
            ):
                best = ArtistMatch(
                    musicbrainz_id=artist["id"],
                    name=candidate_name,
                    score=score,
                    exact=False,
                )

        if best is None:
            logger.debug(f"No MusicBrainz artist close enough to '{cleaned}'")
        return best

    async def get_artist_links(self, musicbrainz_id: str) -> dict[str, str]:
        """Fetch website/social links of an artist from its url relations.

        The first URL per link type wins. Unknown artist -> empty dict.
        """
        data = await self._get(f"/artist/{musicbrainz_id}", {"inc": "url-rels"})
        links: dict[str, str] = {}
        for relation in json_objects((data or {}).get("relations"), SOURCE, "artist relations"):
            key = _link_key(relation)
            if key and key not in links:
                links[key] = str(relation["url"]["resource"])
        return links
