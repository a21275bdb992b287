"""Builds the pipeline and indexer from settings."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from supportrag.config import Settings
from supportrag.embeddings import (
    ChromaVectorStore,
    EmbeddingBackend,
    EmbeddingConfig,
    GeminiEmbeddingBackend,
    PineconeVectorStore,
    VectorStore,
)
from supportrag.ingestion import DocumentIndexer, IngestionConfig, LangChainDocumentIngestor
from supportrag.retrieval import RetrievalConfig, VectorRetriever
from supportrag.services.extraction import OrderNumberExtractor
from supportrag.services.generation import GenerationConfig, OpenAIChatBackend
from supportrag.services.orders import MagentoOrderClient
from supportrag.services.query import PromptBuilder, QueryPipeline, QueryRewriter


def build_embedder(settings: Settings) -> EmbeddingBackend:
    return GeminiEmbeddingBackend(
        EmbeddingConfig(
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            api_key=settings.gemini_api_key,
        )
    )


def build_vector_store(settings: Settings) -> VectorStore:
    if settings.vector_backend == "chroma":
        return ChromaVectorStore(
            collection_name=settings.chroma_collection,
            persist_directory=settings.chroma_persist_dir,
        )
    return PineconeVectorStore(
        settings.pinecone_index_name or "",
        api_key=settings.pinecone_api_key,
        namespace=settings.pinecone_namespace,
        batch_size=settings.upsert_batch_size,
    )


def build_pipeline(settings: Settings) -> QueryPipeline:
    """Wire the query pipeline; raises ``ConfigurationError`` before any provider call."""

    settings.require(*settings.required_for_chat())
    chat = OpenAIChatBackend(
        GenerationConfig(
            model=settings.chat_model,
            api_key=settings.openai_api_key,
            temperature=settings.chat_temperature,
        )
    )
    retriever = VectorRetriever(
        build_embedder(settings),
        build_vector_store(settings),
        RetrievalConfig(top_k=settings.top_k),
    )
    orders = MagentoOrderClient(
        settings.magento_base_url or "",
        settings.magento_admin_token or "",
        timeout=settings.magento_timeout_seconds,
    )
    return QueryPipeline(
        extractor=OrderNumberExtractor.default(chat, width=settings.order_id_width),
        orders=orders,
        rewriter=QueryRewriter(chat, log_failures=settings.log_rewrite_failures),
        retriever=retriever,
        chat=chat,
        prompt_builder=PromptBuilder(),
        top_k=settings.top_k,
        max_history_turns=settings.max_history_turns,
    )


def build_indexer(settings: Settings) -> DocumentIndexer:
    settings.require(*settings.required_for_ingest())
    config = IngestionConfig(
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        batch_size=settings.upsert_batch_size,
    )
    return DocumentIndexer(
        LangChainDocumentIngestor(config),
        build_embedder(settings),
        build_vector_store(settings),
        config,
    )


@dataclass(frozen=True)
class AppDependencies:
    pipeline: QueryPipeline
    indexer: DocumentIndexer


class LazyDependencies:
    """Builds each collaborator on first use so a missing credential only
    fails the operation that needs it."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._lock = threading.Lock()
        self._pipeline: QueryPipeline | None = None
        self._indexer: DocumentIndexer | None = None

    @property
    def pipeline(self) -> QueryPipeline:
        with self._lock:
            if self._pipeline is None:
                self._pipeline = build_pipeline(self._settings)
            return self._pipeline

    @property
    def indexer(self) -> DocumentIndexer:
        with self._lock:
            if self._indexer is None:
                self._indexer = build_indexer(self._settings)
            return self._indexer
