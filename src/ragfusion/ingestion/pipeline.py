"""Incremental ingestion of a document directory.

Each matched file goes through the same explicit steps::

    index lookup ─ hit ─────────────────────────────► skip
        │ miss / stale
    local cache ── hit ─────────────────────────────► replay cached vectors
        │ miss / stale / corrupt
    reset cache dir → chunk → embed → upload original → write cache

and every produced :class:`DocumentRecord` is upserted into the vector
index in small batches while it is yielded to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, fields
from datetime import datetime
from os import PathLike
from pathlib import Path
from typing import TYPE_CHECKING

from ragfusion.config import split_patterns
from ragfusion.hashing import fingerprint_of_set, path_fingerprint, record_key
from ragfusion.ingestion.cache import EmbeddingCache
from ragfusion.ingestion.chunker import Chunker, is_markdown_path
from ragfusion.ingestion.embedder import BoundedEmbedder
from ragfusion.ingestion.tokenizer import tiktoken_counter
from ragfusion.models import DocumentRecord, file_modified_utc
from ragfusion.storage import BlobStore, upload_source

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from ragfusion.config import Settings
    from ragfusion.retrieval.base import VectorIndexBase

logger = logging.getLogger(__name__)

DEFAULT_UPSERT_BATCH_SIZE = 3


@dataclass
class IngestionStats:
    """Counters for one :meth:`IngestionPipeline.ingest` run."""

    files_seen: int = 0
    remote_hits: int = 0
    cache_hits: int = 0
    embedded: int = 0
    failed: int = 0
    records: int = 0
    upserts: int = 0
    pruned: int = 0

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class IngestionPipeline:
    """Chunk, embed, cache and index every file of a directory.

    Parameters
    ----------
    index:
        Vector index receiving the records; also consulted first to skip
        files that are already indexed.
    embedder:
        Bounded-concurrency embedder.
    chunker:
        Token-bounded chunker.
    cache:
        Local per-file vector cache.
    blob_store:
        Optional store for the original bytes (uploaded once per file).
    upsert_batch_size:
        Number of records buffered before each upsert.
    recursive:
        Match patterns in subdirectories too.
    """

    def __init__(
        self,
        index: VectorIndexBase,
        embedder: BoundedEmbedder,
        chunker: Chunker,
        cache: EmbeddingCache,
        blob_store: BlobStore | None = None,
        *,
        upsert_batch_size: int = DEFAULT_UPSERT_BATCH_SIZE,
        recursive: bool = True,
    ) -> None:
        if upsert_batch_size < 1:
            raise ValueError(f"upsert_batch_size must be >= 1, got {upsert_batch_size}")
        self.index = index
        self.embedder = embedder
        self.chunker = chunker
        self.cache = cache
        self.blob_store = blob_store
        self.upsert_batch_size = upsert_batch_size
        self.recursive = recursive
        self.stats = IngestionStats()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        index: VectorIndexBase,
        embeddings: Embeddings,
        blob_store: BlobStore | None = None,
    ) -> IngestionPipeline:
        chunker = Chunker(
            tiktoken_counter(settings.tokenizer_model),
            max_tokens_per_line=settings.max_tokens_per_line,
            max_tokens_per_paragraph=settings.max_tokens_per_paragraph,
            max_tokens_per_request=settings.max_tokens_per_request,
            max_items_per_request=settings.max_items_per_request,
        )
        return cls(
            index,
            BoundedEmbedder(embeddings, concurrency=settings.embed_concurrency),
            chunker,
            EmbeddingCache.from_settings(settings),
            blob_store,
            upsert_batch_size=settings.upsert_batch_size,
            recursive=settings.recursive,
        )

    # -- file discovery -------------------------------------------------------

    def iter_files(self, directory: str | PathLike[str], patterns: str | Sequence[str]) -> list[Path]:
        """Resolve the files matched by *patterns* under *directory*.

        Raises before anything is processed when the directory is missing
        or no pattern is given.  Files matched by several patterns are
        returned once.
        """
        root = Path(directory)
        if not root.exists():
            raise FileNotFoundError(f"Directory not found: {directory}")
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {directory}")
        pattern_list = split_patterns(patterns) if isinstance(patterns, str) else [
            p.strip() for p in patterns if p and p.strip()
        ]
        if not pattern_list:
            raise ValueError("At least one file pattern is required")

        seen: set[str] = set()
        files: list[Path] = []
        for pattern in pattern_list:
            matches = root.rglob(pattern) if self.recursive else root.glob(pattern)
            for path in sorted(matches):
                if not path.is_file():
                    continue
                resolved = path.resolve()
                identity = str(resolved).lower()
                if identity in seen:
                    continue
                seen.add(identity)
                files.append(resolved)
        logger.info(
            "Learning from %s with patterns %s (set %d): %d file(s)",
            root,
            ",".join(pattern_list),
            fingerprint_of_set(pattern_list),
            len(files),
        )
        return files

    # -- ingestion ------------------------------------------------------------

    async def ingest(
        self,
        directory: str | PathLike[str],
        patterns: str | Sequence[str],
    ) -> AsyncIterator[DocumentRecord]:
        """Yield the records of every matched file, in file then chunk order.

        A file that fails is logged and skipped; the scan goes on.
        Records are upserted every ``upsert_batch_size`` records and once
        more for the remainder.
        """
        files = self.iter_files(directory, patterns)
        self.stats = IngestionStats()
        pending: list[DocumentRecord] = []
        for path in files:
            self.stats.files_seen += 1
            try:
                records = await self.ingest_file(path)
            except Exception:
                self.stats.failed += 1
                logger.exception("Failed to ingest %s", path)
                continue
            for record in records:
                self.stats.records += 1
                pending.append(record)
                if len(pending) >= self.upsert_batch_size:
                    await self._flush(pending)
                    pending = []
                yield record
        if pending:
            await self._flush(pending)
        logger.info("Ingestion finished: %s", self.stats.as_dict())

    async def learn(self, directory: str | PathLike[str], patterns: str | Sequence[str]) -> list[DocumentRecord]:
        """Run :meth:`ingest` to completion and return every record."""
        return [record async for record in self.ingest(directory, patterns)]

    async def ingest_file(self, path: str | PathLike[str]) -> list[DocumentRecord]:
        """Return the records of one file, embedding only when needed.

        Returns ``[]`` when the index already holds the file at its
        current modification time.  When it holds an older version, the
        records of that version beyond the new chunk count are deleted.
        An embedding failure propagates.
        """
        path = Path(path)
        source = str(path)
        modified = file_modified_utc(path)

        indexed = await self.index.get(record_key(source, 0))
        if indexed is not None:
            if indexed.last_modified == modified:
                logger.info("Already exists in %s: %s", self.index.collection_name, source)
                self.stats.remote_hits += 1
                return []
            logger.warning(
                "Mismatched modification time in %s for %s (%s != %s)",
                self.index.collection_name,
                source,
                indexed.last_modified.isoformat(),
                modified.isoformat(),
            )

        cached = self.cache.load(source, modified)
        if cached is not None:
            logger.info("Already learned %s (%s, %d chunk(s))", source, path_fingerprint(source), len(cached))
            self.stats.cache_hits += 1
            records = _build_records(source, modified, cached)
            if indexed is not None:
                await self._prune(source, records)
            return records

        logger.info("New learning for %s (%s)", source, path_fingerprint(source))
        self.cache.reset(source)
        text = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        vectors = await self.embedder.embed_text(
            text,
            self.chunker,
            is_markdown=is_markdown_path(path),
            label=source,
        )
        records = _build_records(source, modified, vectors)
        if self.blob_store is not None:
            await upload_source(self.blob_store, self.index.collection_name, records[0])
        self.cache.store(source, modified, vectors)
        self.stats.embedded += 1
        if indexed is not None:
            await self._prune(source, records)
        return records

    async def _prune(self, source: str, records: list[DocumentRecord]) -> None:
        current = {r.key for r in records}
        superseded = [key for key in await self.index.keys_for_source(source) if key not in current]
        if superseded:
            await self.index.delete(superseded)
            self.stats.pruned += len(superseded)
            logger.info("Removed %d superseded record(s) of %s", len(superseded), source)

    async def _flush(self, records: list[DocumentRecord]) -> None:
        keys = await self.index.upsert_batch(records)
        self.stats.upserts += 1
        logger.debug("Upserted %d record(s): %s", len(keys), ", ".join(keys))


def _build_records(source: str, modified: datetime, vectors: list[list[float]]) -> list[DocumentRecord]:
    return [
        DocumentRecord(source_path=source, chunk_index=i, last_modified=modified, vector=vector)
        for i, vector in enumerate(vectors)
    ]
