"""
Blob store collaborator.

The file registry never touches blob bytes; it only asks the store for
upload URLs, download URLs and deletions. `LocalBlobStore` keeps its
registry in process memory and is used in development and tests.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Protocol

from parley.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadTarget:
    """Where the client should send the blob, and the id it will be stored under."""

    upload_url: str
    storage_id: str


class BlobStore(Protocol):
    async def generate_upload_url(self) -> UploadTarget: ...

    async def get_url(self, storage_id: str) -> str | None: ...

    async def delete(self, storage_id: str) -> None: ...


class LocalBlobStore:
    """In-process blob registry issuing URLs under BLOB_BASE_URL."""

    def __init__(self, base_url: str | None = None) -> None:
        self.base_url = (base_url or settings.BLOB_BASE_URL).rstrip("/")
        self._blobs: set[str] = set()

    async def generate_upload_url(self) -> UploadTarget:
        storage_id = secrets.token_hex(16)
        self._blobs.add(storage_id)
        return UploadTarget(
            upload_url=f"{self.base_url}/upload/{storage_id}",
            storage_id=storage_id,
        )

    async def get_url(self, storage_id: str) -> str | None:
        if storage_id not in self._blobs:
            return None
        return f"{self.base_url}/{storage_id}"

    async def delete(self, storage_id: str) -> None:
        self._blobs.discard(storage_id)
        logger.info("Blob deleted: storage_id=%s", storage_id)

    def __contains__(self, storage_id: object) -> bool:
        return storage_id in self._blobs


# Module-level singleton, overridable through the get_blob_store dependency
blob_store = LocalBlobStore()
