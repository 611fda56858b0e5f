"""Core data models shared by ingestion and retrieval."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from os import PathLike
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from ragfusion.hashing import path_fingerprint, record_key
from ragfusion.similarity import cosine_similarity

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def file_modified_utc(path: str | PathLike[str]) -> datetime:
    """Modification time of *path* as an exact UTC ``datetime``.

    Built from ``st_mtime_ns`` (truncated to microseconds) so the value
    round-trips through ISO strings and cache stamps without float drift.
    """
    mtime_ns = Path(path).stat().st_mtime_ns
    return _EPOCH + timedelta(microseconds=mtime_ns // 1000)


def to_timestamp_ns(moment: datetime) -> int:
    """Inverse of :func:`file_modified_utc`, used to stamp cache artifacts."""
    delta = moment.astimezone(timezone.utc) - _EPOCH
    micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    return micros * 1000


class DocumentRecord(BaseModel):
    """One embedded chunk of a source document.

    Attributes
    ----------
    source_path:
        Full path of the source file; identity is case-insensitive.
    chunk_index:
        0-based position of the chunk within the file.  Chunk 0 is the
        one whose presence in the index marks the file as learned.
    last_modified:
        Source file modification time when the chunk was embedded.  The
        same for every chunk of a file.
    vector:
        The embedding.  An empty list marks a document with nothing to
        embed.
    """

    model_config = ConfigDict(frozen=True)

    source_path: str
    chunk_index: int = Field(ge=0)
    last_modified: datetime
    vector: list[float] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return record_key(self.source_path, self.chunk_index)

    @property
    def file_hash(self) -> str:
        return path_fingerprint(self.source_path)

    def compare(self, vector: list[float]) -> float:
        """Cosine similarity against *vector*, ``-1`` when not comparable."""
        return cosine_similarity(self.vector, vector)


class ChunkText(BaseModel):
    """A paragraph produced by the chunker, with its token count."""

    content: str
    token_count: int


class SearchHit(BaseModel):
    """A record returned by a vector search, with its similarity score."""

    record: DocumentRecord
    score: float


class RankedDocument(BaseModel):
    """A source document selected by the relevance aggregator."""

    source_path: str
    score: float
    hits: int
    chunk_index: int
    content: str = ""

    @property
    def reference(self) -> str:
        return f"{self.source_path}#{self.chunk_index:04d}"


@dataclass
class RelevanceEntry:
    """Per-query accumulator for one source document.  Never persisted."""

    source_path: str
    hits: int
    score: float
    chunk_index: int
