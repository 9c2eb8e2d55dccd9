"""Application services."""

from songscout.application.services.auth_monitor import AuthMonitor
from songscout.application.services.credential_vault import CredentialVault, StoredToken
from songscout.application.services.performance_service import PerformanceService
from songscout.application.services.playlist_update_service import PlaylistUpdateService
from songscout.application.services.progress_events import ProgressEventBus
from songscout.application.services.scoring_service import ScoringService

__all__ = [
    "AuthMonitor",
    "CredentialVault",
    "PerformanceService",
    "PlaylistUpdateService",
    "ProgressEventBus",
    "ScoringService",
    "StoredToken",
]
