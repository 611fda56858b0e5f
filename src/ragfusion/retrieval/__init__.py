"""
Retrieval — vector indexes and multi-query relevance fusion.

Public surface
--------------
- :class:`RelevanceAggregator` — fuse hits of several paraphrases into one best document.
- :class:`VectorIndexBase` / :class:`TextSearchable` — backend interface and capability.
- :class:`InMemoryVectorIndex` — in-process backend.
- :class:`ChromaVectorIndex`, :class:`ChromaTextSearchIndex` — Chroma backends (lazy).
- :func:`create_vector_index` — build the backend selected in :class:`~ragfusion.config.Settings`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ragfusion.retrieval.aggregator import RelevanceAggregator, accumulate, rank
from ragfusion.retrieval.base import TextSearchable, VectorIndexBase
from ragfusion.retrieval.memory_store import InMemoryVectorIndex

if TYPE_CHECKING:
    from ragfusion.config import Settings

__all__ = [
    "ChromaTextSearchIndex",
    "ChromaVectorIndex",
    "InMemoryVectorIndex",
    "RelevanceAggregator",
    "TextSearchable",
    "VectorIndexBase",
    "accumulate",
    "create_vector_index",
    "rank",
]


def create_vector_index(settings: Settings) -> VectorIndexBase:
    """Return the vector index configured by ``settings.vector_store``."""
    if settings.vector_store == "memory":
        return InMemoryVectorIndex(settings.collection_name)
    if settings.vector_store == "chroma":
        from ragfusion.retrieval.chroma_store import ChromaTextSearchIndex, ChromaVectorIndex

        if settings.chroma_text_search:
            return ChromaTextSearchIndex(
                settings.collection_name,
                embedding_model=settings.embedding_model,
                host=settings.chroma_host,
                port=settings.chroma_port,
            )
        return ChromaVectorIndex(settings.collection_name, host=settings.chroma_host, port=settings.chroma_port)
    raise ValueError(f"Unsupported vector store: {settings.vector_store!r}")


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import the Chroma backends to avoid pulling in chromadb at import time."""
    if name in ("ChromaVectorIndex", "ChromaTextSearchIndex"):
        from ragfusion.retrieval import chroma_store

        return getattr(chroma_store, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
