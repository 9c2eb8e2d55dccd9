"""Enrichment phases and per-phase statuses."""

from enum import Enum, IntEnum


# Hey future me, EnrichmentStatus is the per-SOURCE outcome on a track! Every phase owns its
# own status column so "credits failed" never hides "registry succeeded". no_data is NOT a
# failure - the source answered and simply had nothing. Only failed/no_data tracks are picked
# up by the retry scheduler (after the 7-day cooldown).
class EnrichmentStatus(str, Enum):
    """Outcome of one enrichment phase for one track."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    NO_DATA = "no_data"


# Phases run in THIS order, always. The int value is the phase number operators type on the
# CLI ("--phase 4") so don't renumber!
class EnrichmentPhase(IntEnum):
    """Fixed enrichment phases in execution order."""

    CATALOG = 1
    CREDITS = 2
    ARTIST_LINKING = 3
    ANALYTICS = 4
    REGISTRY = 5

    @property
    def status_field(self) -> str:
        """Name of the Track attribute holding this phase's status."""
        return _PHASE_STATUS_FIELDS[self]

    @property
    def label(self) -> str:
        """Human-readable phase name for events and logs."""
        return self.name.lower()


_PHASE_STATUS_FIELDS: dict[EnrichmentPhase, str] = {
    EnrichmentPhase.CATALOG: "catalog_status",
    EnrichmentPhase.CREDITS: "credits_status",
    EnrichmentPhase.ARTIST_LINKING: "artist_status",
    EnrichmentPhase.ANALYTICS: "chartmetric_status",
    EnrichmentPhase.REGISTRY: "registry_status",
}
