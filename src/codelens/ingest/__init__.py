"""codelens ingest pipeline — chunker, embedder, file/archive ingestion."""

from codelens.ingest.chunker import LineChunker, merge_for_context
from codelens.ingest.embedder import (
    Embedder,
    EmbeddingStrategy,
    HashEmbeddingStrategy,
    SentenceTransformerStrategy,
    get_embedder,
)
from codelens.ingest.pipeline import FileIngestResult, Ingestor

__all__ = [
    "Embedder",
    "EmbeddingStrategy",
    "FileIngestResult",
    "HashEmbeddingStrategy",
    "Ingestor",
    "LineChunker",
    "SentenceTransformerStrategy",
    "get_embedder",
    "merge_for_context",
]
