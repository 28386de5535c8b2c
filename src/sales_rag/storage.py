"""Object storage for raw uploaded files.

The ingestion coordinator only needs ``download(location) -> bytes`` and a
distinct error for missing objects.  :class:`LocalObjectStorage` keeps
objects under a root directory, keyed by ``<product_id>/<timestamp>-<filename>``
style locations.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path

from sales_rag.config import settings
from sales_rag.errors import ObjectNotFoundError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Backend-agnostic blob storage."""

    @abstractmethod
    def upload(self, location: str, data: bytes) -> None:
        """Store *data* at *location*, replacing nothing that already exists."""
        ...

    @abstractmethod
    def download(self, location: str) -> bytes:
        """Return the bytes stored at *location*.

        Raises
        ------
        ObjectNotFoundError
            When nothing is stored there.
        """
        ...

    @staticmethod
    def build_location(product_id: str, filename: str) -> str:
        """Storage key for a new upload."""
        return f"{product_id}/{int(time.time() * 1000)}-{Path(filename).name}"


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed storage rooted at ``settings.storage_root``."""

    def __init__(self, root: str | Path = settings.storage_root) -> None:
        self.root = Path(root)

    def _resolve(self, location: str) -> Path:
        path = (self.root / location).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Storage location escapes the storage root: {location!r}")
        return path

    def upload(self, location: str, data: bytes) -> None:
        path = self._resolve(location)
        if path.exists():
            raise FileExistsError(f"Object already exists at {location!r}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored %d bytes at %s", len(data), location)

    def download(self, location: str) -> bytes:
        path = self._resolve(location)
        if not path.is_file():
            raise ObjectNotFoundError(location)
        return path.read_bytes()
