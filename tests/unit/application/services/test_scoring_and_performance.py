"""Tests for the scoring service and the weekly performance snapshot."""

from collections.abc import Callable
from datetime import date, timedelta
from unittest.mock import AsyncMock

from songscout.application.services import PerformanceService, ScoringService
from songscout.application.services.performance_service import week_over_week_pct
from songscout.domain.entities import Contact, ContactStage, PerformanceSnapshot, Track
from songscout.domain.value_objects.weeks import current_week_start
from songscout.infrastructure.persistence import (
    ActivityLogRepository,
    ContactRepository,
    Database,
    SnapshotRepository,
    TrackRepository,
)


async def _insert(database: Database, tracks: list[Track]) -> None:
    async with database.session_scope() as session:
        await TrackRepository(session).insert_tracks(tracks)


def _catalogue(make_track: Callable[..., Track]) -> list[Track]:
    """Two writers over three rows; c is last week's copy of a."""
    return [
        make_track(
            id="a",
            spotify_url="https://open.spotify.com/track/a",
            songwriter="Jane Doe, Bob Lee",
            registry_searched=True,
            spotify_streams=200_000,
            wow_growth_pct=30.0,
        ),
        make_track(
            id="b",
            spotify_url="https://open.spotify.com/track/b",
            songwriter="Jane Doe",
            publisher="Sony Music Publishing",
            registry_searched=True,
            spotify_streams=50_000,
        ),
        make_track(
            id="c",
            week=date(2026, 10, 5),
            spotify_url="https://open.spotify.com/track/a",
            songwriter="Bob Lee",
            spotify_streams=1,
        ),
    ]


class TestRescoreTracks:
    """Tests for ScoringService.rescore_tracks."""

    async def test_only_changed_scores_are_written(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Missing publisher and writer give 8; a second pass changes nothing."""
        await _insert(database, [make_track(id="t1")])
        service = ScoringService(database.session_scope)

        assert await service.rescore_tracks(["t1"]) == 1
        assert await service.rescore_tracks(["t1"]) == 0
        assert await service.rescore_tracks([]) == 0

        async with database.session_scope() as session:
            track = await TrackRepository(session).get("t1")
        assert track is not None
        assert track.unsigned_score == 8


class TestRefreshContacts:
    """Tests for the contact aggregation pass."""

    async def test_contacts_built_per_songwriter(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Each credited writer gets a contact; repeat rows of one recording count once."""
        await _insert(database, _catalogue(make_track))
        service = ScoringService(database.session_scope)

        summary = await service.refresh_contacts()

        assert summary == {"contacts": 2, "created": 2, "hot_leads": 2}
        async with database.session_scope() as session:
            repo = ContactRepository(session)
            jane = await repo.get_by_normalized_name("jane doe")
            bob = await repo.get_by_normalized_name("bob lee")
        assert jane is not None and bob is not None

        # 6 verified unsigned + 2 self-written Fresh Finds + 1 velocity
        assert jane.unsigned_score == 9
        assert jane.track_ids == ["a", "b"]
        assert jane.total_streams == 250_000
        assert jane.stage == ContactStage.WATCH
        assert jane.hot_lead is True

        assert bob.total_tracks == 1
        assert bob.unsigned_score == 10

    async def test_co_writer_gets_no_self_written_bonus(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Only the writer who also performs the track earns the Fresh Finds bonus."""
        await _insert(
            database,
            [make_track(id="x", songwriter="Jane Doe, Bob Lee", publisher="Tiny Songs")],
        )
        service = ScoringService(database.session_scope)

        await service.refresh_contacts()

        async with database.session_scope() as session:
            repo = ContactRepository(session)
            jane = await repo.get_by_normalized_name("jane doe")
            bob = await repo.get_by_normalized_name("bob lee")
        assert jane is not None and bob is not None
        assert jane.unsigned_score == 2
        assert bob.unsigned_score == 0

    async def test_second_pass_updates_instead_of_creating(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Contacts are keyed by normalized name."""
        await _insert(database, _catalogue(make_track))
        service = ScoringService(database.session_scope)
        await service.refresh_contacts()

        summary = await service.refresh_contacts()

        assert summary["created"] == 0
        assert summary["contacts"] == 2

    async def test_snapshot_growth_overrides_track_growth(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Snapshot week-over-week wins and can promote the funnel stage."""
        await _insert(database, _catalogue(make_track))
        service = ScoringService(database.session_scope)

        await service.refresh_contacts({"a": 60.0})

        async with database.session_scope() as session:
            jane = await ContactRepository(session).get_by_normalized_name("jane doe")
        assert jane is not None
        assert jane.wow_growth_pct == 60.0
        assert jane.stage == ContactStage.ACTIVE_SEARCH

    async def test_manual_stage_is_never_demoted(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """An operator-placed contact keeps its stage."""
        await _insert(database, _catalogue(make_track))
        locked = Contact(
            id="c-jane",
            name="Jane Doe",
            normalized_name="jane doe",
            stage=ContactStage.ACTIVE_SEARCH,
            stage_locked=True,
        )
        async with database.session_scope() as session:
            await ContactRepository(session).upsert(locked)

        await ScoringService(database.session_scope).refresh_contacts()

        async with database.session_scope() as session:
            jane = await ContactRepository(session).get("c-jane")
        assert jane is not None
        assert jane.stage == ContactStage.ACTIVE_SEARCH
        assert jane.total_tracks == 2


class TestPerformanceSnapshot:
    """Tests for PerformanceService.capture_snapshot."""

    def test_week_over_week_pct(self) -> None:
        """Rounded percent, zero without a previous value."""
        assert week_over_week_pct(1200, 1000) == 20
        assert week_over_week_pct(900, 1000) == -10
        assert week_over_week_pct(5, None) == 0
        assert week_over_week_pct(5, 0) == 0

    async def test_capture(self, database: Database, make_track: Callable[..., Track]) -> None:
        """Tracks with streams are captured; growth vs last week feeds the contact pass."""
        await _insert(
            database,
            [
                make_track(id="t1", spotify_streams=1200),
                make_track(id="t2", youtube_views=10),
                make_track(id="t3", spotify_streams=500),
            ],
        )
        week = current_week_start()
        async with database.session_scope() as session:
            await SnapshotRepository(session).upsert(
                PerformanceSnapshot(
                    track_id="t1", week_start=week - timedelta(days=7), streams=1000
                )
            )

        scoring = AsyncMock(spec=ScoringService)
        scoring.refresh_contacts.return_value = {"contacts": 0, "created": 0, "hot_leads": 0}
        service = PerformanceService(database.session_scope, scoring)

        summary = await service.capture_snapshot()

        assert summary["captured"] == 2
        assert summary["skipped"] == 1
        assert summary["week_start"] == week.isoformat()
        scoring.refresh_contacts.assert_awaited_once_with({"t1": 20})

        async with database.session_scope() as session:
            assert await SnapshotRepository(session).get_streams("t1", week) == 1200
            events = await ActivityLogRepository(session).list_recent()
        assert events[0].event_type == "performance_snapshot"

    async def test_rerun_in_same_week_overwrites(
        self, database: Database, make_track: Callable[..., Track]
    ) -> None:
        """Two runs in one week leave one snapshot per track with the latest figure."""
        await _insert(database, [make_track(id="t1", spotify_streams=100)])
        scoring = AsyncMock(spec=ScoringService)
        scoring.refresh_contacts.return_value = {}
        service = PerformanceService(database.session_scope, scoring)
        await service.capture_snapshot()

        async with database.session_scope() as session:
            await TrackRepository(session).update_track_chartmetric(
                "t1", {"spotify_streams": 150}
            )
        await service.capture_snapshot()

        async with database.session_scope() as session:
            assert await SnapshotRepository(session).get_streams("t1", current_week_start()) == 150
