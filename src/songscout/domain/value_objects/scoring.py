"""Unsigned-opportunity scoring.

Hey future me - this is the RANKING BRAIN of the whole pipeline, and it is
deliberately dumb: pure functions, no I/O, no clock, no database. Give it the
same inputs and you get the same score, forever. The weights below ARE the
contract - dashboards, saved filters and the ops team's "score >= 7" habit all
depend on them. Change a weight and every historic score silently shifts.

Track rubric (0-10, clamped):
    +5  no publisher
    +3  no writer metadata
    +3  artist wrote it themselves AND it sits on a Fresh Finds playlist
    +2  artist wrote it themselves AND the label looks DIY/indie
    +2  week-over-week growth > 50%   (or +1 if > 20%, never both)

There is NO penalty for a major label: a hired songwriter on a major release
can still be an unsigned publisher.

Contact rubric (0-10, clamped) works on the aggregate of all linked tracks:
    +6  registry searched and nothing found (verified unsigned)
    +3  more than half of the tracks have no publisher
    +2  more than half of the tracks have no writer metadata
    +2 / +1  self-written bonuses (Fresh Finds / indie label)
    +2 / +1  stream velocity bonuses

Examples:
    >>> calculate_unsigned_score(TrackScoreInput(playlist_name="Top Hits",
    ...     publisher="Sony", writer="Bob", label="Sony Music", wow_growth_pct=5))
    0
"""

import re
from dataclasses import dataclass

from songscout.domain.entities import ContactStage, TrackStage

TRACK_RUBRIC: dict[str, int] = {
    "missing_publisher": 5,
    "missing_writer": 3,
    "self_written_fresh_finds": 3,
    "self_written_indie": 2,
    "stream_velocity_high": 2,
    "stream_velocity_medium": 1,
}

CONTACT_RUBRIC: dict[str, int] = {
    "registry_verified_unsigned": 6,
    "no_publisher_majority": 3,
    "no_writer_majority": 2,
    "self_written_fresh_finds": 2,
    "self_written_indie": 1,
    "stream_velocity_high": 2,
    "stream_velocity_medium": 1,
}

MIN_SCORE = 0
MAX_SCORE = 10

HIGH_VELOCITY_PCT = 50.0
MEDIUM_VELOCITY_PCT = 20.0

FRESH_FINDS_MARKER = "fresh finds"

# "DK" is how DistroKid releases show up in label strings
INDIE_LABEL_PATTERN = re.compile(r"\b(DK|DIY|indie|independent)\b", re.IGNORECASE)


@dataclass(frozen=True)
class TrackScoreInput:
    """Attributes the track rubric looks at."""

    playlist_name: str
    label: str | None = None
    publisher: str | None = None
    writer: str | None = None
    artist_name: str | None = None
    songwriter: str | None = None
    wow_growth_pct: float | None = None


@dataclass(frozen=True)
class ContactScoreInput:
    """Aggregate of a songwriter's tracks for the contact rubric."""

    total_tracks: int
    registry_searched_count: int = 0
    registry_found_count: int = 0
    tracks_missing_publisher: int = 0
    tracks_missing_writer: int = 0
    has_self_written_fresh_finds: bool = False
    has_self_written_indie: bool = False
    wow_growth_pct: float | None = None


def clamp_score(score: float) -> int:
    """Clamp a raw score into [0, 10]."""
    return int(max(MIN_SCORE, min(MAX_SCORE, score)))


def is_artist_the_songwriter(artist_name: str | None, songwriter: str | None) -> bool:
    """Check whether the performing artist is (one of) the songwriter(s).

    Case-insensitive containment in either direction, so
    "Jane" vs "Jane Doe, Bob Smith" matches.
    """
    if not artist_name or not songwriter:
        return False
    artist = artist_name.strip().lower()
    writer = songwriter.strip().lower()
    if not artist or not writer:
        return False
    return artist in writer or writer in artist


def is_fresh_finds_playlist(playlist_name: str | None) -> bool:
    """Check for the Fresh Finds editorial marker."""
    return FRESH_FINDS_MARKER in (playlist_name or "").lower()


def is_indie_label(label: str | None) -> bool:
    """Check whether a label string looks DIY/independent."""
    return bool(label and INDIE_LABEL_PATTERN.search(label))


def velocity_points(wow_growth_pct: float | None, high: int, medium: int) -> int:
    """Points for week-over-week growth; higher threshold wins."""
    if wow_growth_pct is None:
        return 0
    if wow_growth_pct > HIGH_VELOCITY_PCT:
        return high
    if wow_growth_pct > MEDIUM_VELOCITY_PCT:
        return medium
    return 0


def calculate_unsigned_score(track: TrackScoreInput) -> int:
    """Score one track for publishing opportunity.

    Args:
        track: Track attributes

    Returns:
        Integer score in [0, 10]
    """
    score = 0

    if not track.publisher:
        score += TRACK_RUBRIC["missing_publisher"]

    if not track.writer:
        score += TRACK_RUBRIC["missing_writer"]

    self_written = is_artist_the_songwriter(track.artist_name, track.songwriter)

    if self_written and is_fresh_finds_playlist(track.playlist_name):
        score += TRACK_RUBRIC["self_written_fresh_finds"]

    if self_written and is_indie_label(track.label):
        score += TRACK_RUBRIC["self_written_indie"]

    score += velocity_points(
        track.wow_growth_pct,
        high=TRACK_RUBRIC["stream_velocity_high"],
        medium=TRACK_RUBRIC["stream_velocity_medium"],
    )

    return clamp_score(score)


def calculate_contact_score(contact: ContactScoreInput) -> int:
    """Score an aggregated songwriter contact.

    Args:
        contact: Aggregated counters over the contact's tracks

    Returns:
        Integer score in [0, 10]
    """
    score = 0

    if contact.registry_searched_count > 0 and contact.registry_found_count == 0:
        score += CONTACT_RUBRIC["registry_verified_unsigned"]

    if contact.total_tracks > 0:
        if contact.tracks_missing_publisher / contact.total_tracks > 0.5:
            score += CONTACT_RUBRIC["no_publisher_majority"]
        if contact.tracks_missing_writer / contact.total_tracks > 0.5:
            score += CONTACT_RUBRIC["no_writer_majority"]

    if contact.has_self_written_fresh_finds:
        score += CONTACT_RUBRIC["self_written_fresh_finds"]

    if contact.has_self_written_indie:
        score += CONTACT_RUBRIC["self_written_indie"]

    score += velocity_points(
        contact.wow_growth_pct,
        high=CONTACT_RUBRIC["stream_velocity_high"],
        medium=CONTACT_RUBRIC["stream_velocity_medium"],
    )

    return clamp_score(score)


def classify_track_stage(popularity: int | None) -> TrackStage | None:
    """Map streaming popularity (0-100) to a momentum stage."""
    if popularity is None:
        return None
    if popularity >= 75:
        return TrackStage.SUPERSTAR
    if popularity >= 50:
        return TrackStage.MAINSTREAM
    if popularity >= 25:
        return TrackStage.MID_LEVEL
    return TrackStage.DEVELOPING


# Funnel thresholds: raw streams OR growth, whichever trips first
ACTIVE_SEARCH_STREAMS = 1_000_000
ACTIVE_SEARCH_WOW_PCT = 50.0
WATCH_STREAMS = 100_000
WATCH_WOW_PCT = 20.0
HOT_LEAD_MIN_SCORE = 7


def assign_funnel_stage(total_streams: int, wow_growth_pct: float | None) -> ContactStage:
    """Pick the funnel stage a contact's numbers earn."""
    wow = wow_growth_pct or 0.0
    if total_streams > ACTIVE_SEARCH_STREAMS or wow > ACTIVE_SEARCH_WOW_PCT:
        return ContactStage.ACTIVE_SEARCH
    if total_streams > WATCH_STREAMS or wow > WATCH_WOW_PCT:
        return ContactStage.WATCH
    return ContactStage.DISCOVERY


def is_hot_lead(unsigned_score: int, wow_growth_pct: float | None) -> bool:
    """High score AND real momentum."""
    return unsigned_score >= HOT_LEAD_MIN_SCORE and (wow_growth_pct or 0.0) > WATCH_WOW_PCT
