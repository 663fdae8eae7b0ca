"""
Persistence service for the referee league sync application.

This module stores the two shared documents, ``teams`` and ``matchdays``, as
whole JSON arrays on disk. Every write replaces a document in full; there is
no merge, no transaction spanning both documents, and the last write wins.
"""
import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict

from ..utils import DOCUMENT_NAMES

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    """Raised when a persisted document cannot be read."""
    pass


class JsonDocumentStore:
    """
    Durable storage for the named JSON documents.

    Each document lives in ``<data_dir>/<name>.json``. Reads and writes of one
    document are serialized by a per-document lock so a reader never sees a
    half-written file; nothing coordinates writes from different clients.
    """

    def __init__(self, data_dir: str):
        """
        Initialize the store.

        Args:
            data_dir: Directory holding the document files
        """
        self.data_dir = data_dir
        self._locks: Dict[str, threading.Lock] = {name: threading.Lock() for name in DOCUMENT_NAMES}

    def path_for(self, name: str) -> str:
        """
        Resolve the file path of a document.

        Raises:
            ValueError: If the document name is unknown
        """
        if name not in DOCUMENT_NAMES:
            raise ValueError(f"Unknown document: {name}")
        return os.path.join(self.data_dir, f"{name}.json")

    def ensure_initialized(self) -> None:
        """Create the data directory and any missing document."""
        os.makedirs(self.data_dir, exist_ok=True)
        for name in DOCUMENT_NAMES:
            self.read_document(name)
        logger.info("Data files initialized in %s", self.data_dir)

    def read_document(self, name: str) -> Any:
        """
        Read a whole document.

        A missing document is created as an empty array and returned.

        Args:
            name: "teams" or "matchdays"

        Returns:
            The parsed JSON value

        Raises:
            ValueError: If the document name is unknown
            DocumentStoreError: If the file exists but cannot be read or parsed
        """
        file_path = self.path_for(name)
        with self._locks[name]:
            if not os.path.exists(file_path):
                if not self._write_atomic(file_path, []):
                    raise DocumentStoreError(f"Could not initialize document '{name}'")
                return []
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, ValueError) as e:
                logger.error("Error reading %s: %s", file_path, e)
                raise DocumentStoreError(f"Could not read document '{name}': {e}") from e

    def write_document(self, name: str, value: Any) -> bool:
        """
        Replace a whole document.

        Args:
            name: "teams" or "matchdays"
            value: JSON-serializable value to persist

        Returns:
            True if the document was written, False on any I/O or encoding error

        Raises:
            ValueError: If the document name is unknown
        """
        file_path = self.path_for(name)
        with self._locks[name]:
            return self._write_atomic(file_path, value)

    def _write_atomic(self, file_path: str, value: Any) -> bool:
        """Write to a temporary sibling file and move it over the target."""
        directory = os.path.dirname(file_path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            payload = json.dumps(value, indent=2)
            fd, temp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(temp_path, file_path)
            except OSError:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error writing %s: %s", file_path, e)
            return False
