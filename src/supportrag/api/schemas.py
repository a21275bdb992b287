"""Pydantic models for the support assistant API."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, StrictStr

from supportrag.models import AnswerResult

EMPTY_ANSWER_TEXT = "No response generated"
ERROR_ANSWER_TEXT = "Error processing your request"


class ChatRequest(BaseModel):
    message: Optional[StrictStr] = Field(default=None, description="End-user message to answer")


class ChatResponse(BaseModel):
    type: Literal["order_status", "rag", "empty", "error"]
    answer: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = Field(default=None, description="Traceback, only in development mode")

    @classmethod
    def from_result(cls, result: AnswerResult, *, include_detail: bool = False) -> "ChatResponse":
        payload = result.to_dict(include_detail=include_detail)
        if result.type == "empty":
            payload["answer"] = EMPTY_ANSWER_TEXT
        elif result.type == "error":
            payload["answer"] = ERROR_ANSWER_TEXT
        return cls(**payload)


class IngestRequest(BaseModel):
    path: Optional[str] = Field(default=None, description="Document to ingest; defaults to the configured PDF")
    reset: bool = Field(default=False, description="Clear the index before ingesting")


class IngestResponse(BaseModel):
    status: Literal["ok", "error"]
    message: str
    chunks: Optional[int] = Field(default=None, ge=0)
    error: Optional[str] = None


class IndexStatsResponse(BaseModel):
    backend: str
    vectors: int
