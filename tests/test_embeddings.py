from __future__ import annotations

import math

import pytest

from supportrag.embeddings.service import EmbeddingConfig, GeminiEmbeddingBackend, HashEmbeddingBackend
from supportrag.models import DocumentChunk, DocumentMetadata


def _make_chunk(text: str) -> DocumentChunk:
    meta = DocumentMetadata(document_id="doc-1", source_path="/tmp/doc.pdf", media_type="pdf")
    return DocumentChunk(chunk_id="c1", text=text, document_metadata=meta, order=0)


class FakeLangChainEmbeddings:
    def __init__(self, dim: int = 3, drop: int = 0) -> None:
        self.dim = dim
        self.drop = drop

    def embed_documents(self, texts):
        return [[float(len(t))] * self.dim for t in texts][self.drop :]

    def embed_query(self, text):
        return [3.0, 4.0, 0.0]


def test_hash_embedding_dim_matches_config() -> None:
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=64))
    vec = backend.embed_query("hello world")
    assert isinstance(vec, tuple)
    assert len(vec) == 64


def test_hash_embedding_is_deterministic() -> None:
    backend = HashEmbeddingBackend()
    assert backend.embed_query("order status") == backend.embed_query("order status")
    assert math.isclose(sum(v * v for v in backend.embed_query("x")), 1.0)


def test_gemini_backend_embeds_chunks_through_client() -> None:
    backend = GeminiEmbeddingBackend(EmbeddingConfig(dim=3), client=FakeLangChainEmbeddings())
    embeddings = backend.embed_chunks([_make_chunk("alpha"), _make_chunk("be")])

    assert [e.vector for e in embeddings] == [(5.0, 5.0, 5.0), (2.0, 2.0, 2.0)]
    assert backend.embed_chunks([]) == []


def test_gemini_backend_normalizes_when_configured() -> None:
    backend = GeminiEmbeddingBackend(EmbeddingConfig(dim=3, normalize=True), client=FakeLangChainEmbeddings())

    assert backend.embed_query("q") == (0.6, 0.8, 0.0)


def test_gemini_backend_rejects_vector_count_mismatch() -> None:
    backend = GeminiEmbeddingBackend(EmbeddingConfig(dim=3), client=FakeLangChainEmbeddings(drop=1))

    with pytest.raises(ValueError):
        backend.embed_chunks([_make_chunk("a"), _make_chunk("b")])
