"""Document ingestion: load, split, embed and index support documents."""

from __future__ import annotations

import re
import time
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Protocol, Sequence
from uuid import NAMESPACE_URL, uuid5

from langchain_community.document_loaders import PyPDFLoader, TextLoader
from langchain_community.document_loaders.base import BaseLoader
from langchain_core.documents import Document as LCDocument
from langchain_text_splitters import RecursiveCharacterTextSplitter

from supportrag.embeddings import EmbeddingBackend, VectorStore
from supportrag.metrics.observability import PipelineMetrics, get_logger
from supportrag.models import DocumentChunk, DocumentMetadata

ProgressCallback = Callable[[str], None]


class IngestionError(RuntimeError):
    """Raised when ingestion fails for a particular document."""


class UnsupportedFileTypeError(IngestionError):
    """Raised when a document extension is not supported by the ingestor."""


@dataclass(frozen=True)
class IngestionConfig:
    """Configuration for document ingestion."""

    chunk_size: int = 1000
    chunk_overlap: int = 200
    encoding: str = "utf-8"
    batch_size: int = 100


class DocumentIngestor(Protocol):
    """Protocol for ingestion implementations."""

    def ingest(self, paths: Sequence[Path], progress: ProgressCallback | None = None) -> Sequence[DocumentChunk]:
        """Ingest the given document paths into normalized chunks."""


def _normalize_text(raw: str) -> str:
    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace("\u00a0", " ")
    normalized = re.sub(r"\s+", " ", normalized)
    return normalized.strip()


def _noop(message: str) -> None:
    return None


class LangChainDocumentIngestor:
    """Ingest documents via LangChain loaders and a recursive character splitter."""

    _LOADERS: Mapping[str, type[BaseLoader]] = {
        ".pdf": PyPDFLoader,
        ".txt": TextLoader,
        ".md": TextLoader,
    }

    _logger = get_logger("ingestion")

    def __init__(self, config: IngestionConfig | None = None) -> None:
        self._config = config or IngestionConfig()
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=self._config.chunk_size,
            chunk_overlap=self._config.chunk_overlap,
        )

    def ingest(self, paths: Sequence[Path], progress: ProgressCallback | None = None) -> Sequence[DocumentChunk]:
        chunks: List[DocumentChunk] = []
        for path in paths:
            chunks.extend(self._ingest_single(Path(path), progress or _noop))
        return chunks

    def _ingest_single(self, path: Path, progress: ProgressCallback) -> Sequence[DocumentChunk]:
        suffix = path.suffix.lower()
        loader_cls = self._LOADERS.get(suffix)
        if loader_cls is None:
            raise UnsupportedFileTypeError(f"Unsupported document type: {suffix or '<none>'}")
        if not path.is_file():
            raise IngestionError(f"Document not found: {path}")

        try:
            documents = self._build_loader(loader_cls, path).load()
        except Exception as exc:  # pragma: no cover - loader specific errors
            raise IngestionError(f"Failed to load {path}: {exc}") from exc
        progress(f"Loaded {len(documents)} page(s) from {path.name}")

        split_docs = self._splitter.split_documents(self._normalize_documents(documents, path))
        doc_id = uuid5(NAMESPACE_URL, str(path.resolve())).hex
        document_metadata = DocumentMetadata(
            document_id=doc_id,
            source_path=str(path.resolve()),
            media_type=suffix.lstrip("."),
            extra={"source": str(path)},
        )

        chunks: List[DocumentChunk] = []
        for order, doc in enumerate(split_docs):
            chunk_metadata: Dict[str, object] = dict(doc.metadata)
            chunk_metadata.setdefault("source", str(path))
            chunks.append(
                DocumentChunk(
                    chunk_id=f"{doc_id}-{order}",
                    text=doc.page_content,
                    document_metadata=document_metadata,
                    order=order,
                    chunk_metadata=chunk_metadata,
                )
            )
        progress(f"Split {path.name} into {len(chunks)} chunk(s)")
        return chunks

    def _build_loader(self, loader_cls: type[BaseLoader], path: Path) -> BaseLoader:
        if loader_cls is TextLoader:
            return loader_cls(str(path), encoding=self._config.encoding)
        return loader_cls(str(path))

    def _normalize_documents(self, documents: Sequence[LCDocument], path: Path) -> Sequence[LCDocument]:
        normalized: List[LCDocument] = []
        for document in documents:
            text = _normalize_text(document.page_content)
            if not text:
                continue
            metadata: Dict[str, object] = dict(document.metadata)
            metadata.setdefault("source", str(path))
            normalized.append(LCDocument(page_content=text, metadata=metadata))
        return normalized


@dataclass(frozen=True)
class IndexingReport:
    """Outcome of an indexing run."""

    chunk_count: int
    ids: Sequence[str]
    duration_seconds: float


class DocumentIndexer:
    """Embeds ingested chunks and upserts them into the vector store."""

    def __init__(
        self,
        ingestor: DocumentIngestor,
        embedder: EmbeddingBackend,
        store: VectorStore,
        config: IngestionConfig | None = None,
    ) -> None:
        self._ingestor = ingestor
        self._embedder = embedder
        self._store = store
        self._config = config or IngestionConfig()
        self._logger = get_logger("ingestion")

    @property
    def store(self) -> VectorStore:
        return self._store

    def index(
        self,
        paths: Sequence[Path],
        *,
        progress: ProgressCallback | None = None,
        reset: bool = False,
    ) -> IndexingReport:
        report = progress or _noop
        start = time.perf_counter()
        if reset:
            self._store.reset()
            report("Cleared existing vectors")
        chunks = self._ingestor.ingest(paths, progress=report)
        if not chunks:
            raise IngestionError("No text could be extracted from the supplied documents")

        ids: list[str] = []
        batch_size = max(1, self._config.batch_size)
        total_batches = (len(chunks) + batch_size - 1) // batch_size
        for number, offset in enumerate(range(0, len(chunks), batch_size), start=1):
            batch = chunks[offset : offset + batch_size]
            ids.extend(self._store.upsert(self._embedder.embed_chunks(batch)))
            report(f"Upserted batch {number}/{total_batches} ({len(batch)} chunk(s))")

        duration = time.perf_counter() - start
        PipelineMetrics.observe_ingestion(duration, len(chunks))
        self._logger.info(
            "ingestion.complete",
            paths=[str(path) for path in paths],
            chunk_count=len(chunks),
            duration_seconds=duration,
        )
        report(f"Indexed {len(chunks)} chunk(s)")
        return IndexingReport(chunk_count=len(chunks), ids=ids, duration_seconds=duration)
