"""
Service Factory for dependency injection.

Builds the client-side services around one shared ``LeagueContext`` and
``LeagueServerClient`` so that every service sees the same snapshot.
"""
from typing import List, Optional

import requests

from ..utils.constants import (
    DEFAULT_REFRESH_INTERVAL_SECONDS, DEFAULT_REQUEST_TIMEOUT, DEFAULT_SERVER_URL
)
from .refresh_service import PeriodicRefreshService
from .server_client import LeagueServerClient, TransferStrategy
from .sync_service import LeagueContext, LeagueSyncService
from .validation import LeagueValidator


class ServiceFactory:
    """
    Factory for creating client service instances with shared dependencies.

    The context and server client are created lazily and reused.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize factory with connection settings.

        Args:
            base_url: Gateway URL including the ``/api`` prefix
            timeout: Per-request timeout in seconds
            refresh_interval: Seconds between background refreshes
            session: Optional requests-compatible session (tests inject one)
        """
        self.base_url = base_url
        self.timeout = timeout
        self.refresh_interval = refresh_interval
        self._session = session
        self._context: Optional[LeagueContext] = None
        self._client: Optional[LeagueServerClient] = None
        self._validator: Optional[LeagueValidator] = None

    def create_sync_service(
        self,
        download_strategies: Optional[List[TransferStrategy]] = None,
        upload_strategies: Optional[List[TransferStrategy]] = None,
    ) -> LeagueSyncService:
        """
        Create LeagueSyncService with injected dependencies.

        Args:
            download_strategies: Optional ordered download strategies
            upload_strategies: Optional ordered upload strategies

        Returns:
            Configured LeagueSyncService instance
        """
        return LeagueSyncService(
            context=self.get_context(),
            client=self.get_client(),
            download_strategies=download_strategies,
            upload_strategies=upload_strategies,
            validator=self._get_validator(),
        )

    def create_refresh_service(self, sync_service: Optional[LeagueSyncService] = None) -> PeriodicRefreshService:
        return PeriodicRefreshService(
            sync_service or self.create_sync_service(),
            interval_seconds=self.refresh_interval,
        )

    def create_complete_service_suite(self) -> dict:
        """
        Create the sync and refresh services sharing one context.

        Returns:
            Dictionary containing all configured services
        """
        sync_service = self.create_sync_service()
        return {
            'context': self.get_context(),
            'client': self.get_client(),
            'sync': sync_service,
            'refresh': self.create_refresh_service(sync_service),
        }

    def get_context(self) -> LeagueContext:
        """Get singleton client context."""
        if self._context is None:
            self._context = LeagueContext()
        return self._context

    def get_client(self) -> LeagueServerClient:
        """Get singleton server client."""
        if self._client is None:
            self._client = LeagueServerClient(self.base_url, timeout=self.timeout, session=self._session)
        return self._client

    def _get_validator(self) -> LeagueValidator:
        if self._validator is None:
            self._validator = LeagueValidator()
        return self._validator
