"""Abstract base classes for vector-index backends.

A backend subclasses :class:`VectorIndexBase` and implements ``get``,
``upsert_batch`` and ``search``.  Backends that can vectorise query text
themselves additionally mix in :class:`TextSearchable`; callers check
for that capability once, when they are built.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ragfusion.hashing import record_key
from ragfusion.models import DocumentRecord, SearchHit


class VectorIndexBase(ABC):
    """Backend-agnostic vector index.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def get(self, key: str) -> DocumentRecord | None:
        """Return the record stored under *key*, or ``None``.

        The returned record's ``vector`` may be empty; only its metadata
        is guaranteed.
        """
        ...

    @abstractmethod
    async def upsert_batch(self, records: Sequence[DocumentRecord]) -> list[str]:
        """Insert or replace *records*; return the keys written."""
        ...

    @abstractmethod
    async def search(self, vector: Sequence[float], *, top_k: int = 2) -> list[SearchHit]:
        """Return the *top_k* records most similar to *vector*, best first.

        Scores are cosine similarities (higher = more similar).
        """
        ...

    # -- optional overrides ---------------------------------------------------

    async def delete(self, keys: Sequence[str]) -> None:
        """Delete records by key.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")

    async def keys_for_source(self, source_path: str) -> list[str]:
        """Return the keys of every record stored for *source_path*.

        The default walks chunk indices from 0 until the first gap.
        """
        keys: list[str] = []
        while True:
            record = await self.get(record_key(source_path, len(keys)))
            if record is None:
                return keys
            keys.append(record.key)


class TextSearchable(ABC):
    """Capability mixin for indexes that accept raw query text."""

    @abstractmethod
    async def search_by_text(self, text: str, *, top_k: int = 2) -> list[SearchHit]:
        """Vectorise *text* server-side and search, best first."""
        ...
