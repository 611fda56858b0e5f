"""In-process vector index with brute-force cosine ranking."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ragfusion.models import DocumentRecord, SearchHit
from ragfusion.retrieval.base import VectorIndexBase

logger = logging.getLogger(__name__)


class InMemoryVectorIndex(VectorIndexBase):
    """Keeps every record in a dict and scores all of them per search.

    Suitable for a single process working over a file collection; the
    records vanish with the process, so every run re-learns from the
    local embedding cache.
    """

    def __init__(self, collection_name: str = "ragfusion") -> None:
        super().__init__(collection_name)
        self._records: dict[str, DocumentRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[DocumentRecord]:
        return list(self._records.values())

    async def get(self, key: str) -> DocumentRecord | None:
        return self._records.get(key)

    async def upsert_batch(self, records: Sequence[DocumentRecord]) -> list[str]:
        for record in records:
            self._records[record.key] = record
        logger.debug("Upserted %d record(s) into %s", len(records), self.collection_name)
        return [r.key for r in records]

    async def search(self, vector: Sequence[float], *, top_k: int = 2) -> list[SearchHit]:
        query = list(vector)
        scored = [SearchHit(record=r, score=r.compare(query)) for r in self._records.values()]
        scored.sort(key=lambda hit: hit.score, reverse=True)
        return scored[:top_k]

    async def delete(self, keys: Sequence[str]) -> None:
        for key in keys:
            self._records.pop(key, None)

    async def keys_for_source(self, source_path: str) -> list[str]:
        source = source_path.lower()
        return [key for key, r in self._records.items() if r.source_path.lower() == source]
