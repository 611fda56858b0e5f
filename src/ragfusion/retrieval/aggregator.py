"""Multi-query relevance fusion.

Several paraphrases of one question are searched independently; every
hit is credited to its *source document* (not the chunk) so documents
that keep coming back across paraphrases accumulate score.  The
document with the highest summed score wins; the hit count breaks ties.

Usage::

    aggregator = RelevanceAggregator(index, embeddings)
    best = await aggregator.best_match(["how long is the token cached?",
                                        "token cache lifetime", ...])
    print(best[0].reference, best[0].score, best[0].hits)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from ragfusion.hashing import fingerprint_of_set, path_fingerprint
from ragfusion.models import RankedDocument, RelevanceEntry, SearchHit
from ragfusion.retrieval.base import TextSearchable, VectorIndexBase

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from ragfusion.storage import BlobStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 2


def accumulate(results_per_query: Sequence[Sequence[SearchHit]]) -> dict[str, RelevanceEntry]:
    """Fold per-paraphrase hits into one entry per source document.

    Documents are keyed by their lower-cased path.  The chunk index of the
    first hit is kept as the representative chunk.
    """
    relevancies: dict[str, RelevanceEntry] = {}
    for q, hits in enumerate(results_per_query):
        for a, hit in enumerate(hits):
            record = hit.record
            key = record.source_path.lower()
            entry = relevancies.get(key)
            if entry is None:
                entry = RelevanceEntry(
                    source_path=record.source_path,
                    hits=1,
                    score=hit.score,
                    chunk_index=record.chunk_index,
                )
                relevancies[key] = entry
            else:
                entry.hits += 1
                entry.score += hit.score
            logger.info(
                "[HIT#q%da%d] Relevance: %.2f, Total: %.2f, file: %s#%04d",
                q,
                a,
                hit.score,
                entry.score,
                record.source_path,
                record.chunk_index,
            )
    return relevancies


def rank(entries: Iterable[RelevanceEntry]) -> list[RelevanceEntry]:
    """Order by summed score, then hit count, both descending.

    The path is a last, deterministic tie-break.
    """
    return sorted(entries, key=lambda e: (-e.score, -e.hits, e.source_path.lower()))


class RelevanceAggregator:
    """Pick the best source document for a set of paraphrased questions.

    Parameters
    ----------
    index:
        The vector index to search.  When it is :class:`TextSearchable`
        the paraphrases are sent as text; otherwise they are embedded
        here, in one batch, and searched by vector.
    embeddings:
        Query embedding model; required for vector-only indexes.
    blob_store:
        Where original documents were uploaded.  Content falls back to
        the source file on disk when the blob is missing.
    top_k_per_query:
        Hits requested per paraphrase.
    """

    def __init__(
        self,
        index: VectorIndexBase,
        embeddings: Embeddings | None = None,
        *,
        blob_store: BlobStore | None = None,
        top_k_per_query: int = DEFAULT_TOP_K,
    ) -> None:
        self._index = index
        self._embeddings = embeddings
        self._blob_store = blob_store
        self.top_k_per_query = self._check_top_k(top_k_per_query)
        if isinstance(index, TextSearchable):
            self._search_all = self._search_by_text
        elif embeddings is not None:
            self._search_all = self._search_by_vector
        else:
            raise ValueError(
                f"{type(index).__name__} cannot search by text; an embedding model is required"
            )

    @property
    def searches_by_text(self) -> bool:
        return self._search_all == self._search_by_text

    # -- public API -----------------------------------------------------------

    async def collect(
        self,
        paraphrases: Sequence[str],
        *,
        top_k: int | None = None,
    ) -> dict[str, RelevanceEntry]:
        """Search every paraphrase concurrently and accumulate the hits."""
        questions = [q for q in paraphrases if q and q.strip()]
        if not questions:
            raise ValueError("At least one non-empty question is required")
        k = self._resolve_top_k(top_k)
        logger.debug(
            "Query session %d: %d paraphrase(s), top_k=%d",
            fingerprint_of_set(questions),
            len(questions),
            k,
        )
        results = await self._search_all(questions, k)
        return accumulate(results)

    async def best_match(
        self,
        paraphrases: Sequence[str],
        *,
        top_k: int | None = None,
        limit: int = 1,
    ) -> list[RankedDocument]:
        """Return the *limit* best documents with their original content.

        An empty list means no paraphrase produced any hit.
        """
        k = self._resolve_top_k(top_k)
        entries = await self.collect(paraphrases, top_k=k)
        ranked = rank(entries.values())
        if not ranked:
            logger.warning("No hits for %d question(s)", len(paraphrases))
            return []

        documents: list[RankedDocument] = []
        for entry in ranked[:limit]:
            logger.info(
                "[BestMatchedDoc] Hits: %d out of %d, Relevance: %.2f, file: %s#%04d",
                entry.hits,
                k * len(paraphrases),
                entry.score,
                entry.source_path,
                entry.chunk_index,
            )
            documents.append(
                RankedDocument(
                    source_path=entry.source_path,
                    score=entry.score,
                    hits=entry.hits,
                    chunk_index=entry.chunk_index,
                    content=await self._load_content(entry.source_path),
                )
            )
        return documents

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _check_top_k(k: int) -> int:
        if k < 1:
            raise ValueError(f"top_k must be >= 1, got {k}")
        return k

    def _resolve_top_k(self, top_k: int | None) -> int:
        return self.top_k_per_query if top_k is None else self._check_top_k(top_k)

    async def _search_by_text(self, questions: list[str], top_k: int) -> list[list[SearchHit]]:
        index: TextSearchable = self._index  # type: ignore[assignment]
        return list(await asyncio.gather(*(index.search_by_text(q, top_k=top_k) for q in questions)))

    async def _search_by_vector(self, questions: list[str], top_k: int) -> list[list[SearchHit]]:
        vectors = await self._embeddings.aembed_documents(questions)  # type: ignore[union-attr]
        return list(await asyncio.gather(*(self._index.search(v, top_k=top_k) for v in vectors)))

    async def _load_content(self, source_path: str) -> str:
        if self._blob_store is not None:
            try:
                data = await self._blob_store.download(self._index.collection_name, path_fingerprint(source_path))
                return data.decode("utf-8", errors="replace")
            except FileNotFoundError:
                logger.debug("No blob for %s, reading the source file", source_path)
        return await asyncio.to_thread(Path(source_path).read_text, encoding="utf-8", errors="replace")
