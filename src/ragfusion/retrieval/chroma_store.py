"""Chroma implementation of the vector-index abstraction."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import chromadb

from ragfusion.models import DocumentRecord, SearchHit
from ragfusion.retrieval.base import TextSearchable, VectorIndexBase

logger = logging.getLogger(__name__)

_COSINE_SPACE = {"hnsw:space": "cosine"}


def _to_metadata(record: DocumentRecord) -> dict[str, Any]:
    return {
        "source": record.source_path,
        "chunk_index": record.chunk_index,
        "last_modified": record.last_modified.isoformat(),
    }


def _from_metadata(meta: dict[str, Any], vector: Sequence[float] | None = None) -> DocumentRecord:
    return DocumentRecord(
        source_path=meta["source"],
        chunk_index=int(meta["chunk_index"]),
        last_modified=datetime.fromisoformat(meta["last_modified"]),
        vector=list(vector) if vector is not None else [],
    )


class ChromaVectorIndex(VectorIndexBase):
    """Chroma-backed vector index (query vectors computed client-side).

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection (created with cosine distance).
    host / port:
        Chroma server location.
    client:
        Pre-built Chroma client; overrides *host* / *port*.
    """

    def __init__(
        self,
        collection_name: str = "ragfusion",
        *,
        host: str = "localhost",
        port: int = 8000,
        client: Any = None,
    ) -> None:
        super().__init__(collection_name)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection = self._client.get_or_create_collection(
            collection_name,
            metadata=_COSINE_SPACE,
            **self._collection_kwargs(),
        )

    def _collection_kwargs(self) -> dict[str, Any]:
        return {}

    # -- VectorIndexBase overrides --------------------------------------------

    async def get(self, key: str) -> DocumentRecord | None:
        result = await asyncio.to_thread(self._collection.get, ids=[key], include=["metadatas"])
        metas = result.get("metadatas") or []
        if not metas or not metas[0]:
            return None
        return _from_metadata(metas[0])

    async def upsert_batch(self, records: Sequence[DocumentRecord]) -> list[str]:
        # Chroma needs a fixed dimension, so empty-document sentinels stay local.
        storable = [r for r in records if r.vector]
        skipped = [r.key for r in records if not r.vector]
        if skipped:
            logger.debug("Not indexing %d record(s) without embedding", len(skipped))
            # An older, non-empty version of the same key must not survive.
            await asyncio.to_thread(self._collection.delete, ids=skipped)
        if not storable:
            return []
        await asyncio.to_thread(
            self._collection.upsert,
            ids=[r.key for r in storable],
            embeddings=[r.vector for r in storable],
            metadatas=[_to_metadata(r) for r in storable],
        )
        return [r.key for r in storable]

    async def search(self, vector: Sequence[float], *, top_k: int = 2) -> list[SearchHit]:
        results = await asyncio.to_thread(
            self._collection.query,
            query_embeddings=[list(vector)],
            n_results=top_k,
            include=["metadatas", "distances"],
        )
        return _to_hits(results)

    async def delete(self, keys: Sequence[str]) -> None:
        await asyncio.to_thread(self._collection.delete, ids=list(keys))

    async def keys_for_source(self, source_path: str) -> list[str]:
        result = await asyncio.to_thread(self._collection.get, where={"source": source_path}, include=[])
        return list(result.get("ids") or [])


class ChromaTextSearchIndex(ChromaVectorIndex, TextSearchable):
    """Chroma index whose collection embeds query text server-side.

    The collection's embedding function must be the model used to embed
    the documents.
    """

    def __init__(
        self,
        collection_name: str = "ragfusion",
        *,
        embedding_model: str,
        host: str = "localhost",
        port: int = 8000,
        client: Any = None,
    ) -> None:
        self.embedding_model = embedding_model
        super().__init__(collection_name, host=host, port=port, client=client)

    def _collection_kwargs(self) -> dict[str, Any]:
        from chromadb.utils.embedding_functions import SentenceTransformerEmbeddingFunction

        return {"embedding_function": SentenceTransformerEmbeddingFunction(model_name=self.embedding_model)}

    async def search_by_text(self, text: str, *, top_k: int = 2) -> list[SearchHit]:
        results = await asyncio.to_thread(
            self._collection.query,
            query_texts=[text],
            n_results=top_k,
            include=["metadatas", "distances"],
        )
        return _to_hits(results)


def _to_hits(results: dict[str, Any]) -> list[SearchHit]:
    metas = (results.get("metadatas") or [[]])[0]
    distances = (results.get("distances") or [[]])[0]
    hits: list[SearchHit] = []
    for meta, distance in zip(metas, distances):
        if not meta:
            continue
        # Cosine distance is 1 - cosine similarity.
        hits.append(SearchHit(record=_from_metadata(meta), score=1.0 - float(distance)))
    return hits
