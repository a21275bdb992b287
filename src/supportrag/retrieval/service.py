"""Retrieval orchestration built on top of vector stores."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, Sequence

from supportrag.embeddings import EmbeddingBackend, VectorStore
from supportrag.metrics.observability import PipelineMetrics, get_logger
from supportrag.models import RetrievedChunk


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    top_k: int = 10
    include_metadata: bool = True


class Retriever(Protocol):
    """Retrieve relevant chunks for a query string."""

    def retrieve(self, query: str, *, top_k: int | None = None) -> Sequence[RetrievedChunk]:
        """Return the top-k retrieved chunks, most relevant first."""


class VectorRetriever:
    """Embeds the query and searches a vector store for the nearest chunks."""

    def __init__(
        self,
        embedder: EmbeddingBackend,
        store: VectorStore,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._config = config or RetrievalConfig()
        self._logger = get_logger("retrieval")

    def retrieve(self, query: str, *, top_k: int | None = None) -> Sequence[RetrievedChunk]:
        limit = max(1, top_k or self._config.top_k)
        start = time.perf_counter()
        vector = self._embedder.embed_query(query)
        matches = self._store.query(vector, top_k=limit, include_metadata=self._config.include_metadata)
        # Matches without stored text cannot contribute context.
        chunks = [match for match in matches if match.text]
        duration = time.perf_counter() - start
        PipelineMetrics.observe_retrieval(duration, len(chunks), (chunk.score for chunk in chunks))
        self._logger.info(
            "retrieval.complete",
            match_count=len(matches),
            chunk_count=len(chunks),
            duration_seconds=duration,
            top_k=limit,
        )
        return chunks
