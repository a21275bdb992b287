"""Pinecone-backed vector store."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from pinecone import Pinecone

from supportrag.embeddings.service import Embedding
from supportrag.embeddings.store import TEXT_KEY, chunk_metadata
from supportrag.metrics.observability import get_logger
from supportrag.models import RetrievedChunk


class PineconeVectorStore:
    """Vector store backed by a hosted Pinecone index."""

    def __init__(
        self,
        index_name: str,
        *,
        api_key: str | None = None,
        namespace: str | None = None,
        batch_size: int = 100,
        index: Any | None = None,
    ) -> None:
        if index is None:
            index = Pinecone(api_key=api_key).Index(index_name)
        self._index = index
        self._index_name = index_name
        self._namespace = namespace or ""
        self._batch_size = max(1, batch_size)
        self._logger = get_logger("vectorstore.pinecone")

    def upsert(self, embeddings: Sequence[Embedding]) -> Sequence[str]:
        ids: list[str] = []
        for start in range(0, len(embeddings), self._batch_size):
            batch = embeddings[start : start + self._batch_size]
            vectors = [
                {
                    "id": embedding.chunk.chunk_id,
                    "values": list(embedding.vector),
                    "metadata": dict(chunk_metadata(embedding.chunk)),
                }
                for embedding in batch
            ]
            self._index.upsert(vectors=vectors, namespace=self._namespace)
            ids.extend(vector["id"] for vector in vectors)
            self._logger.debug("pinecone.upsert", index=self._index_name, batch_size=len(vectors))
        return ids

    def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int,
        include_metadata: bool = True,
    ) -> Sequence[RetrievedChunk]:
        if top_k <= 0:
            return []
        response = self._index.query(
            vector=list(vector),
            top_k=top_k,
            include_metadata=include_metadata,
            namespace=self._namespace,
        )
        return [self._to_chunk(match) for match in _field(response, "matches") or []]

    def reset(self) -> None:
        self._index.delete(delete_all=True, namespace=self._namespace)

    def count(self) -> int:
        stats = self._index.describe_index_stats()
        if self._namespace:
            namespaces = _field(stats, "namespaces") or {}
            summary = namespaces.get(self._namespace)
            return int(_field(summary, "vector_count") or 0) if summary else 0
        return int(_field(stats, "total_vector_count") or 0)

    @staticmethod
    def _to_chunk(match: Any) -> RetrievedChunk:
        metadata = dict(_field(match, "metadata") or {})
        return RetrievedChunk(
            text=str(metadata.get(TEXT_KEY) or ""),
            score=float(_field(match, "score") or 0.0),
            chunk_id=str(_field(match, "id") or ""),
            metadata=metadata,
        )


def _field(value: Any, name: str) -> Any:
    """Read ``name`` from SDK response objects and plain dicts alike."""

    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)
