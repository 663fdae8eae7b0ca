"""
HTTP client side of the sync protocol.

``LeagueServerClient`` wraps the REST gateway endpoints with a
``requests.Session``. The transfer strategies below describe the ordered
ways a client can move the document pair; the sync service tries them in
order instead of hard-coding fallbacks at each call site.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from ..utils import MATCHDAYS_DOCUMENT, TEAMS_DOCUMENT
from ..utils.constants import DEFAULT_REQUEST_TIMEOUT, DEFAULT_SERVER_URL

logger = logging.getLogger(__name__)


class ServerUnavailableError(Exception):
    """The server could not be reached or returned an unusable response."""
    pass


class SyncCancelledError(Exception):
    """A transfer was abandoned before the full document pair arrived."""
    pass


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a transfer."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SyncCancelledError("Transfer cancelled")


class LeagueServerClient:
    """
    Thin JSON client for the league gateway.

    Every request is bounded by ``timeout`` seconds.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Gateway base URL including the ``/api`` prefix
            timeout: Per-request timeout in seconds
            session: Optional preconfigured session (tests inject adapters here)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _get_json(self, path: str, *, empty_on_404: bool = False) -> Any:
        try:
            response = self.session.get(self._url(path), timeout=self.timeout)
        except requests.RequestException as e:
            raise ServerUnavailableError(f"GET {path} failed: {e}") from e

        if response.status_code == 404 and empty_on_404:
            return []
        if response.status_code != 200:
            raise ServerUnavailableError(f"GET {path} returned HTTP {response.status_code}")

        text = response.text.strip()
        if not text:
            return []
        if text.startswith("<"):
            raise ServerUnavailableError(f"GET {path} returned HTML instead of JSON")
        try:
            return response.json()
        except ValueError as e:
            raise ServerUnavailableError(f"GET {path} returned invalid JSON: {e}") from e

    def _post_json(self, path: str, payload: Any) -> bool:
        try:
            response = self.session.post(self._url(path), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("POST %s failed: %s", path, e)
            return False
        if response.status_code != 200:
            logger.warning("POST %s returned HTTP %s", path, response.status_code)
            return False
        return True

    def fetch_document(self, name: str) -> List[Dict[str, Any]]:
        """
        Fetch one whole document.

        Raises:
            ServerUnavailableError: On any transport or shape problem
        """
        value = self._get_json(name, empty_on_404=True)
        if not isinstance(value, list):
            raise ServerUnavailableError(f"Document '{name}' is not an array")
        return value

    def fetch_sync(self) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch both documents through the combined endpoint."""
        value = self._get_json("sync")
        if (
            not isinstance(value, dict)
            or not isinstance(value.get("teams"), list)
            or not isinstance(value.get("matchDays"), list)
        ):
            raise ServerUnavailableError("Sync payload is missing teams or matchDays")
        return value

    def upload_document(self, name: str, value: List[Dict[str, Any]]) -> bool:
        """Overwrite one whole document on the server."""
        return self._post_json(name, value)

    def upload_sync(self, teams: List[Dict[str, Any]], match_days: List[Dict[str, Any]]) -> bool:
        return self._post_json("sync", {"teams": teams, "matchDays": match_days})

    def health(self) -> Dict[str, Any]:
        return self._get_json("health")


@dataclass
class DocumentPair:
    """Both documents as received from the server."""
    teams: List[Dict[str, Any]]
    match_days: List[Dict[str, Any]]


@dataclass
class UploadOutcome:
    """Per-document result of an upload."""
    teams_ok: bool
    match_days_ok: bool

    @property
    def any_succeeded(self) -> bool:
        return self.teams_ok or self.match_days_ok

    @property
    def all_succeeded(self) -> bool:
        return self.teams_ok and self.match_days_ok


class TransferStrategy(ABC):
    """One way of moving the document pair between client and server."""

    name = "abstract"

    @abstractmethod
    def download(self, client: LeagueServerClient, cancel_token: CancellationToken) -> DocumentPair:
        """
        Fetch the full document pair.

        Raises:
            ServerUnavailableError: If the pair could not be fetched completely
            SyncCancelledError: If the token was cancelled mid-transfer
        """
        pass

    @abstractmethod
    def upload(
        self,
        client: LeagueServerClient,
        teams: List[Dict[str, Any]],
        match_days: List[Dict[str, Any]],
    ) -> UploadOutcome:
        pass


class CombinedSyncStrategy(TransferStrategy):
    """Both documents in one call through ``/sync``."""

    name = "sync-endpoint"

    def download(self, client: LeagueServerClient, cancel_token: CancellationToken) -> DocumentPair:
        payload = client.fetch_sync()
        cancel_token.raise_if_cancelled()
        return DocumentPair(teams=payload["teams"], match_days=payload["matchDays"])

    def upload(self, client, teams, match_days) -> UploadOutcome:
        ok = client.upload_sync(teams, match_days)
        return UploadOutcome(teams_ok=ok, match_days_ok=ok)


class SeparateDocumentsStrategy(TransferStrategy):
    """
    One call per document, teams first.

    Teams must be in hand before match days are validated against them, so
    the order of the two requests is fixed.
    """

    name = "document-endpoints"

    def download(self, client: LeagueServerClient, cancel_token: CancellationToken) -> DocumentPair:
        teams = client.fetch_document(TEAMS_DOCUMENT)
        cancel_token.raise_if_cancelled()
        match_days = client.fetch_document(MATCHDAYS_DOCUMENT)
        cancel_token.raise_if_cancelled()
        return DocumentPair(teams=teams, match_days=match_days)

    def upload(self, client, teams, match_days) -> UploadOutcome:
        teams_ok = client.upload_document(TEAMS_DOCUMENT, teams)
        match_days_ok = client.upload_document(MATCHDAYS_DOCUMENT, match_days)
        return UploadOutcome(teams_ok=teams_ok, match_days_ok=match_days_ok)


def default_download_strategies() -> List[TransferStrategy]:
    return [CombinedSyncStrategy(), SeparateDocumentsStrategy()]


def default_upload_strategies() -> List[TransferStrategy]:
    return [SeparateDocumentsStrategy()]
