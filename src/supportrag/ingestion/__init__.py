"""Document ingestion pipeline."""

from .service import (
    DocumentIndexer,
    DocumentIngestor,
    IndexingReport,
    IngestionConfig,
    IngestionError,
    LangChainDocumentIngestor,
    UnsupportedFileTypeError,
)

__all__ = [
    "DocumentIndexer",
    "DocumentIngestor",
    "IndexingReport",
    "IngestionConfig",
    "IngestionError",
    "LangChainDocumentIngestor",
    "UnsupportedFileTypeError",
]
