"""Shared domain models used across the support assistant."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Literal, Mapping, Union

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class DocumentMetadata:
    """Metadata captured for an ingested document."""

    document_id: str
    source_path: str
    media_type: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentChunk:
    """Normalized chunk of document text ready for embedding."""

    chunk_id: str
    text: str
    document_metadata: DocumentMetadata
    order: int
    chunk_metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RetrievedChunk:
    """Nearest-neighbour match returned by the vector store."""

    text: str
    score: float
    chunk_id: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OrderRecord:
    """Order status as reported by the commerce system."""

    found: bool
    status: str | None = None
    total: float | str | None = None
    created_at: str | None = None

    @classmethod
    def not_found(cls) -> "OrderRecord":
        return cls(found=False)


@dataclass(frozen=True)
class ChatMessage:
    """Role-tagged message exchanged with the chat completion backend."""

    role: Role
    content: str


# Answer variants. Exactly one is produced per resolved question.


@dataclass(frozen=True)
class OrderStatusAnswer:
    type: ClassVar[str] = "order_status"

    answer: str

    def to_dict(self, *, include_detail: bool = False) -> dict[str, str]:
        return {"type": self.type, "answer": self.answer}


@dataclass(frozen=True)
class RagAnswer:
    type: ClassVar[str] = "rag"

    answer: str

    def to_dict(self, *, include_detail: bool = False) -> dict[str, str]:
        return {"type": self.type, "answer": self.answer}


@dataclass(frozen=True)
class EmptyAnswer:
    """No context was found for the question."""

    type: ClassVar[str] = "empty"

    def to_dict(self, *, include_detail: bool = False) -> dict[str, str]:
        return {"type": self.type}


@dataclass(frozen=True)
class ErrorAnswer:
    """A provider or internal failure; ``detail`` holds the traceback."""

    type: ClassVar[str] = "error"

    message: str
    detail: str | None = None

    def to_dict(self, *, include_detail: bool = False) -> dict[str, str]:
        payload = {"type": self.type, "error": self.message}
        if include_detail and self.detail:
            payload["details"] = self.detail
        return payload


AnswerResult = Union[OrderStatusAnswer, RagAnswer, EmptyAnswer, ErrorAnswer]
