"""Incremental embedding cache and multi-query retrieval fusion."""

__version__ = "0.1.0"
