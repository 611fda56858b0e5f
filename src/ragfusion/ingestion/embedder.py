"""Concurrent, order-preserving embedding of chunk batches."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ragfusion.ingestion.chunker import Chunker
from ragfusion.models import ChunkText

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from ragfusion.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4


def get_embeddings(settings: Settings) -> Embeddings:
    """Return the configured LangChain embedding model.

    Imports are local so that selecting one provider does not require
    the other to be importable.
    """
    if settings.embedding_provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        kwargs: dict = {"model": settings.embedding_model, "api_key": settings.openai_api_key}
        if settings.llm_base_url:
            kwargs["base_url"] = settings.llm_base_url
        return OpenAIEmbeddings(**kwargs)
    if settings.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=settings.embedding_model)
    raise ValueError(f"Unsupported embedding provider: {settings.embedding_provider!r}")


class BoundedEmbedder:
    """Embed chunk batches concurrently under a fixed ceiling.

    Every batch becomes one ``aembed_documents`` call.  At most
    ``concurrency`` calls are in flight; the ceiling is shared by every
    caller of this instance.

    Parameters
    ----------
    embeddings:
        Any LangChain :class:`~langchain_core.embeddings.Embeddings`.
    concurrency:
        Maximum number of simultaneous embedding requests.
    """

    def __init__(self, embeddings: Embeddings, *, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.embeddings = embeddings
        self.concurrency = concurrency
        self._semaphore: asyncio.Semaphore | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def semaphore(self) -> asyncio.Semaphore:
        # One semaphore per event loop; asyncio primitives are loop-bound.
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self.concurrency)
            self._loop = loop
        return self._semaphore

    async def embed_batches(
        self,
        batches: Sequence[Sequence[ChunkText]],
        *,
        label: str = "",
    ) -> list[list[float]]:
        """Embed *batches* and return one vector per chunk, in input order.

        The first failing batch propagates its exception: a file with a
        missing chunk would break the contiguous chunk numbering.
        """
        offsets: list[int] = []
        start = 0
        for batch in batches:
            offsets.append(start)
            start += len(batch)

        tasks = [
            asyncio.ensure_future(self._embed_batch(batch, label=f"{label}#{i:04d}", first_chunk=offsets[i]))
            for i, batch in enumerate(batches)
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return [vector for batch_vectors in results for vector in batch_vectors]

    async def embed_text(
        self,
        text: str,
        chunker: Chunker,
        *,
        is_markdown: bool = False,
        label: str = "",
    ) -> list[list[float]]:
        """Chunk and embed a whole document.

        Blank text returns a single empty vector without calling the
        embedding service, so every file still produces one record.
        """
        batches = list(chunker.chunk_batches(text, is_markdown))
        if not batches:
            logger.info("Nothing to embed for %s", label or "<text>")
            return [[]]
        token_counts = [c.token_count for batch in batches for c in batch]
        logger.info(
            "Chunked %s: requests=%d, chunks=%d, tokenCounts='%s'",
            label or "<text>",
            len(batches),
            len(token_counts),
            ",".join(str(t) for t in token_counts),
        )
        return await self.embed_batches(batches, label=label)

    async def _embed_batch(
        self, batch: Sequence[ChunkText], *, label: str, first_chunk: int
    ) -> list[list[float]]:
        async with self.semaphore:
            try:
                vectors = await self.embeddings.aembed_documents([c.content for c in batch])
            except Exception:
                logger.error(
                    "Error generating embeddings for %s (chunks %d-%d)",
                    label,
                    first_chunk,
                    first_chunk + len(batch) - 1,
                )
                raise
        if len(vectors) != len(batch):
            raise RuntimeError(
                f"Embedding service returned {len(vectors)} vectors for {len(batch)} chunks ({label})"
            )
        logger.debug("Embedded %s (%d chunks)", label, len(batch))
        return [list(v) for v in vectors]
