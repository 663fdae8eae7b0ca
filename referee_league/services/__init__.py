"""
Services package for the referee league sync application.

This package contains the document store used by the gateway and the
client-side sync engine with its transport, validation and scheduling.
"""
from .persistence_service import JsonDocumentStore, DocumentStoreError
from .validation import (
    LeagueValidator, LeagueValidationError, MatchValidationError,
    PlayerValidationError, EntityNotFoundError
)
from .server_client import (
    LeagueServerClient, ServerUnavailableError, SyncCancelledError, CancellationToken,
    TransferStrategy, CombinedSyncStrategy, SeparateDocumentsStrategy, UploadOutcome
)
from .sync_service import LeagueContext, LeagueSyncService, SyncResult
from .refresh_service import PeriodicRefreshService
from .service_factory import ServiceFactory

__all__ = [
    "JsonDocumentStore", "DocumentStoreError",
    "LeagueValidator", "LeagueValidationError", "MatchValidationError",
    "PlayerValidationError", "EntityNotFoundError",
    "LeagueServerClient", "ServerUnavailableError", "SyncCancelledError",
    "CancellationToken", "TransferStrategy", "CombinedSyncStrategy",
    "SeparateDocumentsStrategy", "UploadOutcome",
    "LeagueContext", "LeagueSyncService", "SyncResult",
    "PeriodicRefreshService", "ServiceFactory"
]
