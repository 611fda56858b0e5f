"""Blob storage for the original bytes of ingested documents.

Blobs are keyed by the file fingerprint and carry the source path and
modification time as metadata, which makes re-uploads of an unchanged
file a no-op.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from os import PathLike
from pathlib import Path

from ragfusion.models import DocumentRecord

logger = logging.getLogger(__name__)

SOURCE_NAME = "SourceName"
SOURCE_LAST_MODIFIED = "SourceLastModifiedTimeUtc"


class BlobStore(ABC):
    """Backend-agnostic blob storage interface."""

    @abstractmethod
    async def upload(self, container: str, blob_id: str, data: bytes, metadata: dict[str, str]) -> None:
        """Create or overwrite *blob_id* in *container*."""
        ...

    @abstractmethod
    async def download(self, container: str, blob_id: str) -> bytes:
        """Return the blob's bytes; :class:`FileNotFoundError` when absent."""
        ...

    @abstractmethod
    async def get_metadata(self, container: str, blob_id: str) -> dict[str, str] | None:
        """Return the blob's metadata, or ``None`` when it does not exist."""
        ...


class LocalBlobStore(BlobStore):
    """Filesystem-backed store: ``<root>/<container>/<blob_id>`` plus a
    ``<blob_id>.meta.json`` sidecar.  Containers are created on demand."""

    def __init__(self, root: str | PathLike[str]) -> None:
        self.root = Path(root)

    def _blob_path(self, container: str, blob_id: str) -> Path:
        return self.root / container / blob_id

    async def upload(self, container: str, blob_id: str, data: bytes, metadata: dict[str, str]) -> None:
        await asyncio.to_thread(self._upload_sync, container, blob_id, data, metadata)

    async def download(self, container: str, blob_id: str) -> bytes:
        return await asyncio.to_thread(self._blob_path(container, blob_id).read_bytes)

    async def get_metadata(self, container: str, blob_id: str) -> dict[str, str] | None:
        return await asyncio.to_thread(self._metadata_sync, container, blob_id)

    def _upload_sync(self, container: str, blob_id: str, data: bytes, metadata: dict[str, str]) -> None:
        path = self._blob_path(container, blob_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        path.with_name(f"{blob_id}.meta.json").write_text(json.dumps(metadata), encoding="utf-8")

    def _metadata_sync(self, container: str, blob_id: str) -> dict[str, str] | None:
        path = self._blob_path(container, blob_id)
        meta_path = path.with_name(f"{blob_id}.meta.json")
        if not path.is_file() or not meta_path.is_file():
            return None
        return json.loads(meta_path.read_text(encoding="utf-8"))


async def upload_source(store: BlobStore, container: str, record: DocumentRecord) -> bool:
    """Upload the source file of *record* unless an identical copy exists.

    Returns ``True`` when bytes were uploaded.
    """
    blob_id = record.file_hash
    stamp = record.last_modified.isoformat()
    existing = await store.get_metadata(container, blob_id)
    if existing is not None and existing.get(SOURCE_LAST_MODIFIED) == stamp:
        logger.info("Already uploaded %s/%s from %s", container, blob_id, record.source_path)
        return False

    data = await asyncio.to_thread(Path(record.source_path).read_bytes)
    await store.upload(
        container,
        blob_id,
        data,
        {SOURCE_NAME: record.source_path, SOURCE_LAST_MODIFIED: stamp},
    )
    logger.info("Uploaded %s/%s from %s", container, blob_id, record.source_path)
    return True
