"""
Ingestion — chunking, bounded embedding, the local embedding cache and
the incremental directory pipeline that feeds the vector index.
"""

from ragfusion.ingestion.cache import EmbeddingCache
from ragfusion.ingestion.chunker import Chunker
from ragfusion.ingestion.embedder import BoundedEmbedder, get_embeddings
from ragfusion.ingestion.pipeline import IngestionPipeline, IngestionStats

__all__ = [
    "BoundedEmbedder",
    "Chunker",
    "EmbeddingCache",
    "IngestionPipeline",
    "IngestionStats",
    "get_embeddings",
]
