"""Configuration loaded from environment / ``.env``.

A :class:`Settings` instance is built once by the entry point (CLI or
FastAPI app) and handed to every factory that needs it.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

_PATTERN_SEPARATORS = re.compile(r"[,;]")


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Local state
    cache_dir: Path = Field(
        default=Path.home() / ".ragfusion" / "cache",
        description="Root of the on-disk embedding cache (safe to delete at any time)",
    )
    blob_dir: Path = Field(
        default=Path.home() / ".ragfusion" / "blobs",
        description="Root of the local blob store holding original document bytes",
    )
    collection_name: str = "ragfusion"

    # Embedding
    embedding_provider: str = Field(default="huggingface", description="'huggingface' or 'openai'")
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    tokenizer_model: str = Field(
        default="text-embedding-3-small",
        description="Model name used to pick the tiktoken encoding for token counting",
    )

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description="Base URL for an OpenAI-compatible endpoint. Leave empty to use OpenAI cloud.",
    )
    llm_temperature: float = Field(
        default=0.0,
        description="Sampling temperature for both the alternative-question and the answer calls",
    )

    # Vector store
    vector_store: str = Field(default="memory", description="'memory' or 'chroma'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_text_search: bool = Field(
        default=False,
        description="Let Chroma vectorise query text itself instead of embedding client-side",
    )

    # Chunking limits; the request caps mirror the embedding backend's limits.
    max_tokens_per_line: int = 50
    max_tokens_per_paragraph: int = 100
    max_tokens_per_request: int = 8191
    max_items_per_request: int = 16

    # Ingestion
    embed_concurrency: int = 4
    upsert_batch_size: int = 3
    file_patterns: str = "*.txt,*.md"
    recursive: bool = True

    # Retrieval
    top_k_per_query: int = 2
    result_limit: int = 1
    paraphrase_count: int = 5

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator(
        "max_tokens_per_line",
        "max_tokens_per_paragraph",
        "max_tokens_per_request",
        "max_items_per_request",
        "embed_concurrency",
        "upsert_batch_size",
        "top_k_per_query",
        "result_limit",
        "paraphrase_count",
    )
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("embedding_provider", "vector_store")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.strip().lower()

    def patterns(self, raw: str | None = None) -> list[str]:
        """Split a ``"*.txt,*.md"`` style pattern list (``,`` or ``;``)."""
        return split_patterns(self.file_patterns if raw is None else raw)

    @property
    def collection_cache_dir(self) -> Path:
        return self.cache_dir / self.collection_name


def split_patterns(raw: str) -> list[str]:
    return [p.strip() for p in _PATTERN_SEPARATORS.split(raw) if p.strip()]
