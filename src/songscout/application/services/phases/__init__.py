"""Enrichment phase executors, one per external source."""

from songscout.application.services.phases.analytics import AnalyticsPhase
from songscout.application.services.phases.artist_linking import ArtistLinkingPhase
from songscout.application.services.phases.base import PhaseExecutor, PhaseResult, TrackCallback
from songscout.application.services.phases.catalog import CatalogMetadataPhase
from songscout.application.services.phases.credits import CreditsPhase
from songscout.application.services.phases.registry import RegistryPhase

__all__ = [
    "AnalyticsPhase",
    "ArtistLinkingPhase",
    "CatalogMetadataPhase",
    "CreditsPhase",
    "PhaseExecutor",
    "PhaseResult",
    "RegistryPhase",
    "TrackCallback",
]
