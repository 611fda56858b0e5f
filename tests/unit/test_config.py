"""Tests for environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from ragfusion.config import Settings, split_patterns


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.max_tokens_per_line == 50
    assert settings.max_tokens_per_paragraph == 100
    assert settings.max_tokens_per_request == 8191
    assert settings.max_items_per_request == 16
    assert settings.embed_concurrency == 4
    assert settings.upsert_batch_size == 3
    assert settings.top_k_per_query == 2
    assert settings.llm_temperature == 0.0
    assert settings.patterns() == ["*.txt", "*.md"]


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CACHE_DIR", str(tmp_path))
    monkeypatch.setenv("COLLECTION_NAME", "kb")
    monkeypatch.setenv("EMBED_CONCURRENCY", "8")
    monkeypatch.setenv("VECTOR_STORE", " Chroma ")
    settings = Settings(_env_file=None)
    assert settings.collection_cache_dir == tmp_path / "kb"
    assert settings.embed_concurrency == 8
    assert settings.vector_store == "chroma"


@pytest.mark.parametrize("field", ["embed_concurrency", "max_items_per_request", "upsert_batch_size"])
def test_rejects_non_positive(field: str) -> None:
    with pytest.raises(ValidationError):
        Settings(**{field: 0}, _env_file=None)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("*.txt,*.md", ["*.txt", "*.md"]),
        ("*.txt; *.md", ["*.txt", "*.md"]),
        (" *.rst ", ["*.rst"]),
        (",;", []),
    ],
)
def test_split_patterns(raw: str, expected: list[str]) -> None:
    assert split_patterns(raw) == expected


def test_patterns_override() -> None:
    assert Settings(_env_file=None).patterns("*.log") == ["*.log"]
