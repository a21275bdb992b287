"""Vector store implementations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, Mapping, MutableMapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI

from supportrag.embeddings.service import Embedding
from supportrag.models import DocumentChunk, RetrievedChunk

# Metadata key holding the chunk text, shared by every backend.
TEXT_KEY = "text"


class VectorStore(Protocol):
    """Protocol for vector persistence and nearest-neighbour search."""

    def upsert(self, embeddings: Sequence[Embedding]) -> Sequence[str]:
        """Persist the provided embeddings and return their ids."""

    def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int,
        include_metadata: bool = True,
    ) -> Sequence[RetrievedChunk]:
        """Return the top-k matches ordered by descending score."""

    def reset(self) -> None:
        """Remove all stored vectors."""

    def count(self) -> int:
        """Return total number of stored vectors."""


def chunk_metadata(chunk: DocumentChunk) -> MutableMapping[str, object]:
    """Flatten chunk metadata into scalar values accepted by vector stores."""

    metadata: MutableMapping[str, object] = {
        TEXT_KEY: chunk.text,
        "document_id": chunk.document_metadata.document_id,
        "source": chunk.document_metadata.source_path,
        "media_type": chunk.document_metadata.media_type,
        "order": chunk.order,
    }
    page = chunk.chunk_metadata.get("page")
    if isinstance(page, int):
        metadata["page"] = page
    extra = {k: v for k, v in chunk.chunk_metadata.items() if k != "page"}
    if extra:
        metadata["chunk_metadata"] = _dumps(extra)
    return metadata


class ChromaVectorStore:
    """Chroma-backed vector store used for local and offline deployments."""

    def __init__(
        self,
        collection_name: str = "supportrag",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection_name = collection_name
        self._collection = self._get_collection()

    def _get_collection(self):
        return self._client.get_or_create_collection(
            name=self._collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, embeddings: Sequence[Embedding]) -> Sequence[str]:
        if not embeddings:
            return []
        ids = [embedding.chunk.chunk_id for embedding in embeddings]
        self._collection.upsert(
            ids=ids,
            documents=[embedding.chunk.text for embedding in embeddings],
            embeddings=[list(embedding.vector) for embedding in embeddings],
            metadatas=[chunk_metadata(embedding.chunk) for embedding in embeddings],
        )
        return ids

    def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int,
        include_metadata: bool = True,
    ) -> Sequence[RetrievedChunk]:
        available = self.count()
        if top_k <= 0 or available == 0:
            return []
        include = ["distances", "documents"]
        if include_metadata:
            include.append("metadatas")
        results = self._collection.query(
            query_embeddings=[list(vector)],
            n_results=min(top_k, available),
            include=include,
        )
        return self._deserialize_results(results)

    def reset(self) -> None:
        self._client.delete_collection(self._collection_name)
        self._collection = self._get_collection()

    def count(self) -> int:
        return int(self._collection.count())

    def _deserialize_results(self, results: Mapping[str, object]) -> Sequence[RetrievedChunk]:
        ids = list(self._first(results.get("ids")))
        documents = list(self._first(results.get("documents")))
        metadatas = list(self._first(results.get("metadatas")))
        distances = list(self._first(results.get("distances")))
        retrieved: list[RetrievedChunk] = []
        for index, chunk_id in enumerate(ids):
            metadata = dict(metadatas[index] or {}) if index < len(metadatas) else {}
            text = documents[index] if index < len(documents) else None
            text = text or str(metadata.get(TEXT_KEY, ""))
            distance = distances[index] if index < len(distances) else None
            score = 1.0 - float(distance) if distance is not None else 0.0
            if "chunk_metadata" in metadata:
                metadata["chunk_metadata"] = _loads_dict(metadata["chunk_metadata"])
            retrieved.append(RetrievedChunk(text=text, score=score, chunk_id=str(chunk_id), metadata=metadata))
        return retrieved

    @staticmethod
    def _first(value: object) -> Iterable:
        if isinstance(value, list):
            return (value[0] or []) if value else []
        return []


def _dumps(value: object) -> str:
    try:
        return json.dumps(value, default=str)
    except TypeError:
        return json.dumps({}, default=str)


def _loads_dict(value: object) -> Dict[str, object]:
    if isinstance(value, str) and value:
        try:
            loaded = json.loads(value)
            if isinstance(loaded, dict):
                return loaded
        except json.JSONDecodeError:
            return {}
    if isinstance(value, Mapping):
        return dict(value)
    return {}
