"""Embedding backends and vector stores."""

from .service import EmbeddingBackend, EmbeddingConfig, HashEmbeddingBackend, HuggingFaceEmbeddingBackend
from .store import ChromaEmbeddingStore, EmbeddingStore, QdrantHttpStore, VectorStoreError

__all__ = [
    "EmbeddingBackend",
    "EmbeddingConfig",
    "EmbeddingStore",
    "ChromaEmbeddingStore",
    "HashEmbeddingBackend",
    "HuggingFaceEmbeddingBackend",
    "QdrantHttpStore",
    "VectorStoreError",
]
