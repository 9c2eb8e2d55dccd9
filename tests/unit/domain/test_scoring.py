"""Unit tests for the unsigned-opportunity scoring rubric."""

import pytest

from songscout.domain.entities import ContactStage, TrackStage
from songscout.domain.value_objects.scoring import (
    ContactScoreInput,
    TrackScoreInput,
    assign_funnel_stage,
    calculate_contact_score,
    calculate_unsigned_score,
    classify_track_stage,
    is_artist_the_songwriter,
    is_hot_lead,
    is_indie_label,
)


class TestTrackScore:
    """Tests for calculate_unsigned_score."""

    def test_fully_signed_major_track_scores_zero(self) -> None:
        """Publisher, writer and no growth earn nothing."""
        score = calculate_unsigned_score(
            TrackScoreInput(
                playlist_name="Top Hits",
                publisher="Sony",
                writer="Bob",
                label="Sony Music",
                wow_growth_pct=5,
            )
        )
        assert score == 0

    def test_everything_missing_clamps_to_ten(self) -> None:
        """5 + 3 + 3 + 2 + 2 = 15 is clamped to the maximum."""
        score = calculate_unsigned_score(
            TrackScoreInput(
                playlist_name="Fresh Finds: Pop",
                label="DK Records",
                artist_name="Jane",
                songwriter="Jane Doe, Bob Smith",
                wow_growth_pct=80,
            )
        )
        assert score == 10

    def test_diy_records_fresh_finds_songwriter_clamps_to_ten(self) -> None:
        """Jane on DIY Records in a Fresh Finds playlist, growing 60%: 15 clamped to 10."""
        score = calculate_unsigned_score(
            TrackScoreInput(
                playlist_name="Fresh Finds X",
                publisher=None,
                writer=None,
                label="DIY Records",
                artist_name="Jane",
                songwriter="Jane Doe",
                wow_growth_pct=60,
            )
        )
        assert score == 10

    def test_missing_publisher_only(self) -> None:
        """A missing publisher alone is worth 5."""
        score = calculate_unsigned_score(
            TrackScoreInput(playlist_name="Top Hits", writer="Bob", wow_growth_pct=0)
        )
        assert score == 5

    def test_velocity_medium_and_high_never_both(self) -> None:
        """Growth above 50% earns 2, above 20% earns 1."""
        base = {"playlist_name": "Top Hits", "publisher": "P", "writer": "W"}
        assert calculate_unsigned_score(TrackScoreInput(**base, wow_growth_pct=21)) == 1
        assert calculate_unsigned_score(TrackScoreInput(**base, wow_growth_pct=51)) == 2
        assert calculate_unsigned_score(TrackScoreInput(**base, wow_growth_pct=20)) == 0
        assert calculate_unsigned_score(TrackScoreInput(**base, wow_growth_pct=None)) == 0

    def test_self_written_bonus_requires_fresh_finds(self) -> None:
        """Self-written on a non Fresh Finds playlist earns no playlist bonus."""
        score = calculate_unsigned_score(
            TrackScoreInput(
                playlist_name="Top Hits",
                publisher="P",
                writer="W",
                artist_name="Jane",
                songwriter="Jane",
            )
        )
        assert score == 0

    def test_self_written_indie_label(self) -> None:
        """Self-written on a DIY label earns 2."""
        score = calculate_unsigned_score(
            TrackScoreInput(
                playlist_name="Top Hits",
                publisher="P",
                writer="W",
                label="Independent",
                artist_name="Jane",
                songwriter="jane",
            )
        )
        assert score == 2

    @pytest.mark.parametrize("wow", [-500.0, 0.0, 1000.0])
    def test_score_always_within_bounds(self, wow: float) -> None:
        """Scores stay in [0, 10] for any growth value."""
        score = calculate_unsigned_score(TrackScoreInput(playlist_name="", wow_growth_pct=wow))
        assert 0 <= score <= 10


class TestContactScore:
    """Tests for calculate_contact_score."""

    def test_verified_unsigned_with_majorities(self) -> None:
        """6 + 3 + 2 = 11 clamps to 10."""
        score = calculate_contact_score(
            ContactScoreInput(
                total_tracks=3,
                registry_searched_count=2,
                registry_found_count=0,
                tracks_missing_publisher=3,
                tracks_missing_writer=2,
            )
        )
        assert score == 10

    def test_registry_found_removes_verified_bonus(self) -> None:
        """A single registry hit means the writer is not verified unsigned."""
        score = calculate_contact_score(
            ContactScoreInput(
                total_tracks=2,
                registry_searched_count=2,
                registry_found_count=1,
                tracks_missing_publisher=1,
            )
        )
        assert score == 0

    def test_zero_tracks_does_not_divide(self) -> None:
        """An empty contact only earns flag bonuses."""
        score = calculate_contact_score(
            ContactScoreInput(total_tracks=0, has_self_written_indie=True, wow_growth_pct=30)
        )
        assert score == 2


class TestStages:
    """Tests for track stage, funnel stage and hot lead."""

    @pytest.mark.parametrize(
        ("popularity", "expected"),
        [
            (None, None),
            (0, TrackStage.DEVELOPING),
            (24, TrackStage.DEVELOPING),
            (25, TrackStage.MID_LEVEL),
            (50, TrackStage.MAINSTREAM),
            (75, TrackStage.SUPERSTAR),
            (100, TrackStage.SUPERSTAR),
        ],
    )
    def test_classify_track_stage(self, popularity: int | None, expected: TrackStage) -> None:
        """Popularity thresholds at 25, 50 and 75."""
        assert classify_track_stage(popularity) == expected

    def test_funnel_stage_thresholds(self) -> None:
        """Streams or growth, whichever trips first."""
        assert assign_funnel_stage(2_000_000, None) == ContactStage.ACTIVE_SEARCH
        assert assign_funnel_stage(10, 51.0) == ContactStage.ACTIVE_SEARCH
        assert assign_funnel_stage(200_000, 0.0) == ContactStage.WATCH
        assert assign_funnel_stage(10, 21.0) == ContactStage.WATCH
        assert assign_funnel_stage(100_000, 20.0) == ContactStage.DISCOVERY

    def test_hot_lead_needs_score_and_momentum(self) -> None:
        """Score >= 7 and growth > 20%."""
        assert is_hot_lead(7, 25.0) is True
        assert is_hot_lead(6, 90.0) is False
        assert is_hot_lead(10, None) is False


class TestHelpers:
    """Tests for the matching helpers."""

    def test_artist_songwriter_containment(self) -> None:
        """Containment works in both directions, case-insensitively."""
        assert is_artist_the_songwriter("Jane", "Jane Doe, Bob Smith")
        assert is_artist_the_songwriter("JANE DOE feat. X", "jane doe")
        assert not is_artist_the_songwriter("Jane", None)
        assert not is_artist_the_songwriter("  ", "Jane")

    def test_indie_label_pattern_is_word_bounded(self) -> None:
        """"DK" must be a whole word."""
        assert is_indie_label("DK Music")
        assert is_indie_label("my DIY label")
        assert not is_indie_label("DKNY Records")
        assert not is_indie_label(None)
