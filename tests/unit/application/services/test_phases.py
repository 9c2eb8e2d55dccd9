"""Tests for the enrichment phase executors.

Hey future me - these run against a real sqlite file (see conftest.database) with the
external sources mocked. The point is the status bookkeeping: which tracks end up success,
no_data, failed or untouched, and that one bad track never sinks the batch.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from songscout.application.services.phases import (
    AnalyticsPhase,
    ArtistLinkingPhase,
    CatalogMetadataPhase,
    CreditsPhase,
    RegistryPhase,
)
from songscout.domain.entities import EnrichmentStatus, PublisherStatus, Track, TrackStage
from songscout.domain.exceptions import (
    AuthExpiredError,
    ConfigurationMissingError,
    MalformedResponseError,
    NoDataFoundError,
    SourceUnavailableError,
)
from songscout.domain.ports import (
    AnalyticsResult,
    ArtistMatch,
    CatalogTrack,
    CreditsResult,
    IAnalyticsClient,
    IAuthMonitor,
    ICatalogClient,
    ICreditsSource,
    IMusicologyClient,
    IRegistrySource,
    RegistryPublisher,
    RegistryWork,
)
from songscout.infrastructure.persistence import ArtistRepository, Database, TrackRepository


async def _insert(database: Database, tracks: list[Track]) -> list[str]:
    async with database.session_scope() as session:
        await TrackRepository(session).insert_tracks(tracks)
    return [t.id for t in tracks]


async def _load(database: Database, track_id: str) -> Track:
    async with database.session_scope() as session:
        track = await TrackRepository(session).get(track_id)
    assert track is not None
    return track


class TestCatalogMetadataPhase:
    """Tests for phase 1."""

    async def test_partial_batch_of_fifty(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """40 hits and 10 null slots give 40 success and 10 no_data in one request."""
        tracks = [make_track(id=f"t{i:02d}") for i in range(50)]
        ids = await _insert(database, tracks)

        def respond(spotify_ids: list[str]) -> list[CatalogTrack | None]:
            return [
                None
                if index % 5 == 0
                else CatalogTrack(spotify_id=sid, name="Song", isrc=f"ISRC{sid}", popularity=30)
                for index, sid in enumerate(spotify_ids)
            ]

        client = MagicMock(spec=ICatalogClient)
        client.get_tracks = AsyncMock(side_effect=respond)
        phase = CatalogMetadataPhase(database.session_scope, AsyncMock(return_value=client))

        result = await phase.execute(ids)

        assert result.succeeded == 40
        assert result.no_data == 10
        assert result.failed == 0
        client.get_tracks.assert_awaited_once()
        enriched = await _load(database, "t01")
        assert enriched.isrc == "ISRCt01"
        assert enriched.catalog_status == EnrichmentStatus.SUCCESS
        assert (await _load(database, "t00")).catalog_status == EnrichmentStatus.NO_DATA

    async def test_existing_values_are_not_overwritten(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Catalog fills gaps only."""
        ids = await _insert(database, [make_track(id="abc", label="Own Label")])
        client = MagicMock(spec=ICatalogClient)
        client.get_tracks = AsyncMock(
            return_value=[CatalogTrack(spotify_id="abc", name="Song", label="Other")]
        )
        phase = CatalogMetadataPhase(database.session_scope, AsyncMock(return_value=client))

        await phase.execute(ids)

        assert (await _load(database, "abc")).label == "Own Label"

    async def test_no_token_leaves_tracks_untouched(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Without credentials the phase is skipped and statuses stay pending."""
        ids = await _insert(database, [make_track(id="abc")])
        provider = AsyncMock(side_effect=ConfigurationMissingError("no token", "spotify"))
        phase = CatalogMetadataPhase(database.session_scope, provider)

        result = await phase.execute(ids)

        assert result.skipped == 1
        assert result.skipped_reason == "no token"
        assert (await _load(database, "abc")).catalog_status == EnrichmentStatus.PENDING

    async def test_already_enriched_tracks_skipped_unless_forced(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Success is sticky; force re-runs."""
        ids = await _insert(
            database, [make_track(id="abc", catalog_status=EnrichmentStatus.SUCCESS)]
        )
        client = MagicMock(spec=ICatalogClient)
        client.get_tracks = AsyncMock(return_value=[None])
        phase = CatalogMetadataPhase(database.session_scope, AsyncMock(return_value=client))

        assert (await phase.execute(ids)).skipped == 1
        client.get_tracks.assert_not_awaited()

        forced = await phase.execute(ids, force=True)
        assert forced.no_data == 1


class TestCreditsPhase:
    """Tests for phase 2."""

    def _monitor(self, healthy: bool = True) -> MagicMock:
        monitor = MagicMock(spec=IAuthMonitor)
        monitor.is_healthy.return_value = healthy
        return monitor

    async def test_auth_expired_halts_the_rest_of_the_batch(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """First auth failure marks that track failed and skips the others."""
        ids = await _insert(database, [make_track(id=f"t{i}") for i in range(3)])
        source = MagicMock(spec=ICreditsSource)
        source.fetch_credits = AsyncMock(
            side_effect=[
                AuthExpiredError("cookies expired", source="spotify_web", http_status=401),
                CreditsResult(songwriters=["Jane Doe"]),
                CreditsResult(songwriters=["Jane Doe"]),
            ]
        )
        phase = CreditsPhase(database.session_scope, source, self._monitor())

        result = await phase.execute(ids)

        assert result.auth_expired is True
        assert result.failed == 1
        assert result.skipped == 2
        assert source.fetch_credits.await_count == 1
        assert (await _load(database, "t0")).credits_status == EnrichmentStatus.FAILED
        assert (await _load(database, "t1")).credits_status == EnrichmentStatus.PENDING

    async def test_credits_written(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Writers, producers, publisher and stream count are persisted."""
        ids = await _insert(database, [make_track(id="t0")])
        source = MagicMock(spec=ICreditsSource)
        source.fetch_credits = AsyncMock(
            return_value=CreditsResult(
                songwriters=["Jane Doe", "Bob Lee"],
                producers=["Max Power"],
                publishers=["Jane Doe Self Publishing"],
                stream_count=12345,
            )
        )
        phase = CreditsPhase(database.session_scope, source, self._monitor(healthy=False))

        result = await phase.execute(ids)

        assert result.succeeded == 1
        track = await _load(database, "t0")
        assert track.songwriter == "Jane Doe, Bob Lee"
        assert track.producer == "Max Power"
        assert track.publisher_status == PublisherStatus.SELF_PUBLISHED
        assert track.spotify_streams == 12345

    async def test_empty_credits_are_no_data(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """A page without any credits is no_data."""
        ids = await _insert(database, [make_track(id="t0")])
        source = MagicMock(spec=ICreditsSource)
        source.fetch_credits = AsyncMock(return_value=CreditsResult())
        phase = CreditsPhase(database.session_scope, source, self._monitor())

        assert (await phase.execute(ids)).no_data == 1


class TestArtistLinkingPhase:
    """Tests for phase 3."""

    async def test_links_resolved_writers(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Resolved writers are linked; unresolved ones don't fail the track."""
        ids = await _insert(
            database,
            [make_track(id="t0", songwriter="Jane Doe, Nobody Known"), make_track(id="t1")],
        )
        client = MagicMock(spec=IMusicologyClient)
        client.resolve_artist = AsyncMock(
            side_effect=lambda name: ArtistMatch("mbid-1", "Jane Doe")
            if name == "Jane Doe"
            else None
        )
        client.get_artist_links = AsyncMock(return_value={"website": "https://jane.com"})
        phase = ArtistLinkingPhase(database.session_scope, client, concurrency=1)

        result = await phase.execute(ids)

        assert result.succeeded == 1
        # t1 has no songwriter metadata
        assert result.skipped == 1
        async with database.session_scope() as session:
            artists = await ArtistRepository(session).get_track_artists("t0")
        assert [a.name for a in artists] == ["Jane Doe"]
        assert artists[0].links == {"website": "https://jane.com"}

    async def test_nobody_resolved_is_no_data(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """No match for any writer."""
        ids = await _insert(database, [make_track(id="t0", songwriter="Nobody Known")])
        client = MagicMock(spec=IMusicologyClient)
        client.resolve_artist = AsyncMock(return_value=None)
        phase = ArtistLinkingPhase(database.session_scope, client)

        assert (await phase.execute(ids)).no_data == 1


class TestAnalyticsPhase:
    """Tests for phase 4."""

    def _client(self, configured: bool = True) -> MagicMock:
        client = MagicMock(spec=IAnalyticsClient)
        client.is_configured.return_value = configured
        client.get_track_analytics = AsyncMock(
            return_value=AnalyticsResult(
                chartmetric_id="42",
                spotify_streams=1500,
                streaming_velocity=500.0,
                wow_growth_pct=50.0,
                popularity=60,
            )
        )
        return client

    async def test_selection_by_isrc_and_staleness(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """No ISRC and fresh successes are skipped; stale successes re-run."""
        now = datetime.now(UTC)
        ids = await _insert(
            database,
            [
                make_track(id="new", isrc="I1"),
                make_track(id="no-isrc"),
                make_track(
                    id="fresh",
                    isrc="I2",
                    chartmetric_status=EnrichmentStatus.SUCCESS,
                    chartmetric_enriched_at=now - timedelta(days=1),
                ),
                make_track(
                    id="stale",
                    isrc="I3",
                    chartmetric_status=EnrichmentStatus.SUCCESS,
                    chartmetric_enriched_at=now - timedelta(days=8),
                ),
            ],
        )
        client = self._client()
        phase = AnalyticsPhase(database.session_scope, client, staleness_days=7)

        result = await phase.execute(ids)

        assert result.succeeded == 2
        assert result.skipped == 2
        track = await _load(database, "new")
        assert track.spotify_streams == 1500
        assert track.wow_growth_pct == 50.0
        assert track.track_stage == TrackStage.MAINSTREAM
        assert track.chartmetric_enriched_at is not None

    async def test_unconfigured_skips_whole_phase(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """No API key: nothing is touched."""
        ids = await _insert(database, [make_track(id="new", isrc="I1")])
        phase = AnalyticsPhase(database.session_scope, self._client(configured=False))

        result = await phase.execute(ids)

        assert result.skipped == 1
        assert result.skipped_reason is not None
        assert (await _load(database, "new")).chartmetric_status == EnrichmentStatus.PENDING

    async def test_source_errors_mark_failed_and_continue(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """One outage and one unknown ISRC don't stop the third track."""
        ids = await _insert(
            database,
            [make_track(id=f"t{i}", isrc=f"I{i}") for i in range(3)],
        )
        client = self._client()
        ok = AnalyticsResult(chartmetric_id="1", spotify_streams=10)
        client.get_track_analytics = AsyncMock(
            side_effect=[SourceUnavailableError("down", "chartmetric"), NoDataFoundError("x"), ok]
        )
        phase = AnalyticsPhase(database.session_scope, client, concurrency=1)

        result = await phase.execute(ids)

        assert (result.failed, result.no_data, result.succeeded) == (1, 1, 1)
        assert result.errors


class TestRegistryPhase:
    """Tests for phase 5."""

    async def test_found_work(self, database: Database, make_track: Callable[..., Track]) -> None:
        """Publishers, shares, ISWC and song code are written."""
        ids = await _insert(database, [make_track(id="t0", isrc="I0")])
        source = MagicMock(spec=IRegistrySource)
        source.lookup_by_isrc = AsyncMock(
            return_value=RegistryWork(
                song_code="S1",
                iswc="T-1",
                publishers=[
                    RegistryPublisher("Tiny Songs", 50.0, "111"),
                    RegistryPublisher("Admin Co", 25.0),
                ],
            )
        )
        phase = RegistryPhase(database.session_scope, source)

        result = await phase.execute(ids)

        assert result.succeeded == 1
        track = await _load(database, "t0")
        assert track.publisher == "Tiny Songs, Admin Co"
        assert track.collection_share == 75.0
        assert track.ipi_number == "111"
        assert track.registry_found is True
        assert track.registry_song_code == "S1"

    async def test_nothing_found_flags_verified_unsigned(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """no_data still records searched=True, found=False and unsigned."""
        ids = await _insert(database, [make_track(id="t0", isrc="I0")])
        source = MagicMock(spec=IRegistrySource)
        source.lookup_by_isrc = AsyncMock(return_value=None)
        phase = RegistryPhase(database.session_scope, source)

        result = await phase.execute(ids)

        assert result.no_data == 1
        track = await _load(database, "t0")
        assert track.registry_searched is True
        assert track.registry_found is False
        assert track.publisher_status == PublisherStatus.UNSIGNED
        assert track.registry_status == EnrichmentStatus.NO_DATA

    @pytest.mark.parametrize("isrc", [None, "  "])
    async def test_tracks_without_isrc_are_skipped(
        self, database: Database, make_track: Callable[..., Track], isrc: str | None
    ) -> None:
        """Nothing to look up."""
        ids = await _insert(database, [make_track(id="t0", isrc=isrc)])
        source = MagicMock(spec=IRegistrySource)
        source.lookup_by_isrc = AsyncMock()
        phase = RegistryPhase(database.session_scope, source)

        assert (await phase.execute(ids)).skipped == 1
        source.lookup_by_isrc.assert_not_awaited()

    async def test_concurrent_jobs_do_not_double_process(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """A track already in flight for this phase is skipped by a second caller."""
        ids = await _insert(database, [make_track(id="t0", isrc="I0")])
        source = MagicMock(spec=IRegistrySource)
        source.lookup_by_isrc = AsyncMock(return_value=None)
        phase = RegistryPhase(database.session_scope, source)
        phase._in_flight.add("t0")

        result = await phase.execute(ids)

        assert result.skipped == 1
        source.lookup_by_isrc.assert_not_awaited()

    async def test_unexpected_error_fails_only_that_track(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """A parser bug on one track marks it failed; the rest of the batch still runs."""
        ids = await _insert(
            database, [make_track(id=f"t{i}", isrc=f"I{i}") for i in range(3)]
        )

        async def lookup(isrc: str) -> RegistryWork | None:
            if isrc == "I0":
                raise AttributeError("'str' object has no attribute 'get'")
            return None

        source = MagicMock(spec=IRegistrySource)
        source.lookup_by_isrc = AsyncMock(side_effect=lookup)
        phase = RegistryPhase(database.session_scope, source, concurrency=1)

        result = await phase.execute(ids)

        assert result.failed == 1
        assert result.no_data == 2
        assert result.errors == ["t0: AttributeError: 'str' object has no attribute 'get'"]
        assert (await _load(database, "t0")).registry_status == EnrichmentStatus.FAILED
        assert (await _load(database, "t1")).registry_status == EnrichmentStatus.NO_DATA
        assert (await _load(database, "t2")).registry_status == EnrichmentStatus.NO_DATA

    async def test_malformed_response_fails_only_that_track(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """MalformedResponseError is a per-track failure."""
        ids = await _insert(
            database, [make_track(id="t0", isrc="I0"), make_track(id="t1", isrc="I1")]
        )
        source = MagicMock(spec=IRegistrySource)
        source.lookup_by_isrc = AsyncMock(
            side_effect=[MalformedResponseError("recording search is not a list", "mlc_api"), None]
        )
        phase = RegistryPhase(database.session_scope, source, concurrency=1)

        result = await phase.execute(ids)

        assert result.failed == 1
        assert result.no_data == 1

    async def test_storage_errors_propagate(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """A broken database fails the job instead of being recorded per track."""
        ids = await _insert(database, [make_track(id="t0", isrc="I0")])
        source = MagicMock(spec=IRegistrySource)
        source.lookup_by_isrc = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("disk I/O error"))
        )
        phase = RegistryPhase(database.session_scope, source)

        with pytest.raises(OperationalError):
            await phase.execute(ids)
