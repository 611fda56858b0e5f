"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest
from langchain_core.embeddings import Embeddings

from ragfusion.hashing import fingerprint
from ragfusion.ingestion.chunker import Chunker


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


def count_words(text: str) -> int:
    """Whitespace token counter: one token per word, separators are free."""
    return len(text.split())


class FakeEmbeddings(Embeddings):
    """Deterministic embeddings that record every request.

    Parameters
    ----------
    dim:
        Vector dimension.
    delay:
        Seconds each async request takes, to observe concurrency.
    fail_on:
        Any request containing a text with this substring raises.
    """

    def __init__(self, dim: int = 4, *, delay: float = 0.0, fail_on: str | None = None) -> None:
        self.dim = dim
        self.delay = delay
        self.fail_on = fail_on
        self.calls: list[list[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def vector_for(self, text: str) -> list[float]:
        h = fingerprint(text)
        return [float((h >> (8 * i)) & 0xFF) + 1.0 for i in range(self.dim)]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if self.fail_on and any(self.fail_on in t for t in texts):
            raise RuntimeError("embedding service unavailable")
        self.calls.append(list(texts))
        return [self.vector_for(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self.vector_for(text)

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return self.embed_documents(texts)
        finally:
            self.in_flight -= 1


def write_document(path: Path, text: str, mtime: float | None = None) -> Path:
    """Write *text* to *path* and optionally pin its modification time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def words(prefix: str, n: int) -> str:
    """``n`` distinct words, e.g. ``alpha0 alpha1 ...``."""
    return " ".join(f"{prefix}{i}" for i in range(n))


@pytest.fixture
def chunker() -> Chunker:
    return Chunker(count_words)


@pytest.fixture
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()
