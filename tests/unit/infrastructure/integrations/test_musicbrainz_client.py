"""Tests for MusicBrainz client implementation."""

import re

import pytest
from pytest_httpx import HTTPXMock

from songscout.config import MusicBrainzSettings
from songscout.domain.exceptions import MalformedResponseError, SourceUnavailableError
from songscout.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from songscout.infrastructure.rate_limiter import RateLimiter

SEARCH_URL = re.compile(r"https://musicbrainz\.org/ws/2/artist\?")
LINKS_URL = re.compile(r"https://musicbrainz\.org/ws/2/artist/mbid-1\?")


@pytest.fixture
def musicbrainz_settings() -> MusicBrainzSettings:
    """Create MusicBrainz settings for testing."""
    return MusicBrainzSettings(
        app_name="TestApp",
        app_version="1.0.0",
        contact="test@example.com",
    )


@pytest.fixture
def musicbrainz_client(
    musicbrainz_settings: MusicBrainzSettings, fast_limiter: RateLimiter
) -> MusicBrainzClient:
    """Create MusicBrainz client for testing."""
    return MusicBrainzClient(musicbrainz_settings, timeout=5.0, limiter=fast_limiter)


class TestMusicBrainzResolveArtist:
    """Test artist resolution."""

    async def test_exact_match_wins(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        """Case-insensitive exact name beats a better-ranked fuzzy candidate."""
        httpx_mock.add_response(
            url=SEARCH_URL,
            json={
                "artists": [
                    {"id": "mbid-2", "name": "Jane Does"},
                    {"id": "mbid-1", "name": "JANE DOE"},
                ]
            },
        )
        match = await musicbrainz_client.resolve_artist("Jane Doe")
        assert match is not None
        assert match.musicbrainz_id == "mbid-1"
        assert match.exact is True

        request = httpx_mock.get_requests()[0]
        assert request.headers["User-Agent"] == "TestApp/1.0.0 ( test@example.com )"
        assert request.url.params["fmt"] == "json"
        await musicbrainz_client.close()

    async def test_fuzzy_match_above_threshold(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        """A close spelling is accepted as a non-exact match."""
        httpx_mock.add_response(
            url=SEARCH_URL, json={"artists": [{"id": "mbid-2", "name": "Jane Does"}]}
        )
        match = await musicbrainz_client.resolve_artist("Jane Doe")
        assert match is not None
        assert match.exact is False
        assert match.score >= 90
        await musicbrainz_client.close()

    async def test_fuzzy_match_below_threshold(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        """Not close enough means no match."""
        httpx_mock.add_response(
            url=SEARCH_URL, json={"artists": [{"id": "mbid-3", "name": "John Smith"}]}
        )
        assert await musicbrainz_client.resolve_artist("Jane Doe") is None
        await musicbrainz_client.close()

    async def test_blank_name_sends_nothing(self, musicbrainz_client: MusicBrainzClient) -> None:
        """Whitespace-only names are never looked up."""
        assert await musicbrainz_client.resolve_artist("   ") is None

    async def test_server_error(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        """503 from MusicBrainz is SourceUnavailableError."""
        httpx_mock.add_response(url=SEARCH_URL, status_code=503)
        with pytest.raises(SourceUnavailableError):
            await musicbrainz_client.resolve_artist("Jane Doe")
        await musicbrainz_client.close()


class TestMusicBrainzLinks:
    """Test url-relation extraction."""

    async def test_links_first_per_type(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        """Social hosts are told apart; unknown relation types are ignored."""
        httpx_mock.add_response(
            url=LINKS_URL,
            json={
                "relations": [
                    {
                        "type": "social network",
                        "url": {"resource": "https://www.instagram.com/jane"},
                    },
                    {"type": "official homepage", "url": {"resource": "https://jane.com"}},
                    {"type": "official homepage", "url": {"resource": "https://second.com"}},
                    {"type": "wikidata", "url": {"resource": "https://wikidata.org/x"}},
                ]
            },
        )
        links = await musicbrainz_client.get_artist_links("mbid-1")
        assert links == {
            "instagram": "https://www.instagram.com/jane",
            "website": "https://jane.com",
        }
        await musicbrainz_client.close()

    async def test_unknown_artist(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        """404 gives an empty dict."""
        httpx_mock.add_response(url=LINKS_URL, status_code=404)
        assert await musicbrainz_client.get_artist_links("mbid-1") == {}
        await musicbrainz_client.close()


class TestMusicBrainzMalformedResponses:
    """Payloads of an unexpected shape are MalformedResponseError, never a crash."""

    @pytest.mark.parametrize(
        "payload",
        [
            {"artists": ["mbid-1"]},
            {"artists": {"id": "mbid-1", "name": "Jane Doe"}},
            ["mbid-1"],
        ],
    )
    async def test_artist_search(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock, payload: object
    ) -> None:
        """Artists must be a list of objects inside an object."""
        httpx_mock.add_response(url=SEARCH_URL, json=payload)
        with pytest.raises(MalformedResponseError):
            await musicbrainz_client.resolve_artist("Jane Doe")
        await musicbrainz_client.close()

    async def test_candidate_without_a_name_is_ignored(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        """An object missing its name is not a candidate."""
        httpx_mock.add_response(
            url=SEARCH_URL,
            json={
                "artists": [{"id": "mbid-9", "name": None}, {"id": "mbid-1", "name": "Jane Doe"}]
            },
        )
        match = await musicbrainz_client.resolve_artist("Jane Doe")
        assert match is not None
        assert match.musicbrainz_id == "mbid-1"
        await musicbrainz_client.close()

    async def test_relations_of_strings(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        """url-rels must be objects."""
        httpx_mock.add_response(url=LINKS_URL, json={"relations": ["https://jane.com"]})
        with pytest.raises(MalformedResponseError):
            await musicbrainz_client.get_artist_links("mbid-1")
        await musicbrainz_client.close()
