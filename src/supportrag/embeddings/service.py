"""Embedding backends for the support assistant."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Protocol, Sequence, Tuple

from langchain_core.embeddings import Embeddings as LangChainEmbeddings
from langchain_google_genai import GoogleGenerativeAIEmbeddings

from supportrag.models import DocumentChunk

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "models/text-embedding-004"
    dim: int = 768
    api_key: str | None = None
    normalize: bool = False


@dataclass(frozen=True)
class Embedding:
    """Vector representation of a document chunk."""

    chunk: DocumentChunk
    vector: Tuple[float, ...]


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    def embed_chunks(self, chunks: Sequence[DocumentChunk]) -> Sequence[Embedding]:
        """Return embeddings for the provided chunks."""

    def embed_query(self, query: str) -> Tuple[float, ...]:
        """Return embedding vector for a query string."""


class HashEmbeddingBackend:
    """Maps text to a SHA-256 derived vector. Offline indexes and tests only."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig(normalize=True)

    def _hash_to_vector(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = tuple(byte / 255.0 for byte in raw)
        return _unit(vector) if self._config.normalize else vector

    def embed_chunks(self, chunks: Sequence[DocumentChunk]) -> Sequence[Embedding]:
        return [Embedding(chunk=chunk, vector=self._hash_to_vector(chunk.text)) for chunk in chunks]

    def embed_query(self, query: str) -> Tuple[float, ...]:
        return self._hash_to_vector(query)


class GeminiEmbeddingBackend:
    """Gemini text embeddings through ``GoogleGenerativeAIEmbeddings``.

    Chunks and queries must use the same model; the index dimension is
    fixed by ``EmbeddingConfig.dim``.
    """

    def __init__(self, config: EmbeddingConfig | None = None, *, client: LangChainEmbeddings | None = None) -> None:
        self._config = config or EmbeddingConfig()
        if client is not None:
            self._client = client
        else:
            self._client = GoogleGenerativeAIEmbeddings(
                model=self._config.model,
                google_api_key=self._config.api_key,
            )
            LOGGER.info("Using embedding model %s", self._config.model)

    def embed_chunks(self, chunks: Sequence[DocumentChunk]) -> Sequence[Embedding]:
        if not chunks:
            return []
        vectors = self._client.embed_documents([chunk.text for chunk in chunks])
        if len(vectors) != len(chunks):
            raise ValueError(f"Gemini returned {len(vectors)} vectors for {len(chunks)} chunks")
        if vectors and len(vectors[0]) != self._config.dim:
            LOGGER.warning("Expected %d-dim vectors from %s, got %d", self._config.dim, self._config.model, len(vectors[0]))
        return [Embedding(chunk=chunk, vector=self._finish(vector)) for chunk, vector in zip(chunks, vectors)]

    def embed_query(self, query: str) -> Tuple[float, ...]:
        return self._finish(self._client.embed_query(query))

    def _finish(self, vector: Sequence[float]) -> Tuple[float, ...]:
        values = tuple(float(value) for value in vector)
        return _unit(values) if self._config.normalize else values


def _unit(vector: Tuple[float, ...]) -> Tuple[float, ...]:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)
