"""Unit tests for the serving layer."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeEmbeddings, count_words, words, write_document
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage

from ragfusion.config import Settings
from ragfusion.ingestion import BoundedEmbedder, Chunker, EmbeddingCache, IngestionPipeline
from ragfusion.retrieval import InMemoryVectorIndex, RelevanceAggregator
from ragfusion.serving.app import create_app
from ragfusion.storage import LocalBlobStore


@pytest.fixture
def docs(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    write_document(root / "auth.txt", "tokens are cached for one hour " + words("auth", 20))
    write_document(root / "billing.md", "# Billing\n" + words("bill", 30))
    return root


@pytest.fixture
def llm() -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=AIMessage(content="One hour."))
    return llm


@pytest.fixture
def client(tmp_path: Path, llm: MagicMock) -> TestClient:
    settings = Settings(cache_dir=tmp_path / "cache", blob_dir=tmp_path / "blobs", _env_file=None)
    embeddings = FakeEmbeddings()
    index = InMemoryVectorIndex(settings.collection_name)
    blob_store = LocalBlobStore(settings.blob_dir)
    pipeline = IngestionPipeline(
        index,
        BoundedEmbedder(embeddings),
        Chunker(count_words),
        EmbeddingCache.from_settings(settings),
        blob_store,
    )
    aggregator = RelevanceAggregator(index, embeddings, blob_store=blob_store)
    return TestClient(create_app(settings, pipeline=pipeline, aggregator=aggregator, llm=llm))


def test_health_endpoint(client: TestClient) -> None:
    """GET /health should return 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_ingest(client: TestClient, docs: Path) -> None:
    response = client.post("/ingest", json={"directory": str(docs)})
    assert response.status_code == 200
    body = response.json()
    assert body["records"] == 2
    assert body["stats"]["embedded"] == 2


def test_ingest_with_patterns(client: TestClient, docs: Path) -> None:
    response = client.post("/ingest", json={"directory": str(docs), "patterns": "*.md"})
    assert response.json()["records"] == 1


def test_ingest_missing_directory(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/ingest", json={"directory": str(tmp_path / "missing")})
    assert response.status_code == 404


def test_ingest_empty_patterns(client: TestClient, docs: Path) -> None:
    response = client.post("/ingest", json={"directory": str(docs), "patterns": " ; "})
    assert response.status_code == 400


def test_query_with_paraphrases(client: TestClient, docs: Path, llm: MagicMock) -> None:
    client.post("/ingest", json={"directory": str(docs)})
    question = "tokens are cached for one hour " + words("auth", 20)
    response = client.post("/query", json={"question": question, "paraphrases": [question]})

    assert response.status_code == 200
    body = response.json()
    assert body["answer"] == "One hour."
    assert body["reference"].endswith("auth.txt#0000")
    assert body["hits"] == 1
    assert body["score"] == pytest.approx(1.0)
    assert body["paraphrases"] == [question]
    llm.ainvoke.assert_awaited_once()


def test_query_generates_paraphrases(client: TestClient, docs: Path, llm: MagicMock) -> None:
    client.post("/ingest", json={"directory": str(docs)})
    llm.ainvoke = AsyncMock(
        side_effect=[
            AIMessage(content=json.dumps({"original_question": "q", "alternative_questions": ["billing"]})),
            AIMessage(content="See billing."),
        ]
    )
    body = client.post("/query", json={"question": "how am I billed?"}).json()
    assert body["paraphrases"] == ["how am I billed?", "billing"]
    assert body["answer"] == "See billing."
    assert body["hits"] == 2


def test_query_rejects_blank_question(client: TestClient) -> None:
    assert client.post("/query", json={"question": "  "}).status_code == 400


def test_query_before_ingest(client: TestClient) -> None:
    body = client.post("/query", json={"question": "anything", "paraphrases": ["anything"]}).json()
    assert body["reference"] == ""
    assert body["hits"] is None
