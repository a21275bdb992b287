"""Embedding services and vector stores."""

from .pinecone_store import PineconeVectorStore
from .service import Embedding, EmbeddingBackend, EmbeddingConfig, GeminiEmbeddingBackend, HashEmbeddingBackend
from .store import ChromaVectorStore, VectorStore

__all__ = [
    "Embedding",
    "EmbeddingBackend",
    "EmbeddingConfig",
    "VectorStore",
    "ChromaVectorStore",
    "PineconeVectorStore",
    "GeminiEmbeddingBackend",
    "HashEmbeddingBackend",
]
