"""Query orchestration: order lookups and retrieval-augmented answers."""

from __future__ import annotations

import threading
import traceback
from dataclasses import dataclass
from typing import Sequence
from uuid import uuid4

from supportrag.metrics.observability import PipelineMetrics, get_logger
from supportrag.models import (
    AnswerResult,
    ChatMessage,
    EmptyAnswer,
    ErrorAnswer,
    OrderRecord,
    OrderStatusAnswer,
    RagAnswer,
    RetrievedChunk,
)
from supportrag.retrieval.service import Retriever
from supportrag.services.extraction import OrderNumberExtractor
from supportrag.services.generation import ChatBackend
from supportrag.services.orders import OrderStatusProvider

NOT_FOUND_SENTENCE = "I could not find the answer in the provided document."

RAG_SYSTEM_PROMPT = (
    "You are a Customer Support Assistant for a Magento eCommerce platform.\n"
    "Answer ONLY using the provided context.\n"
    "If the answer is not found, reply exactly:\n"
    f'"{NOT_FOUND_SENTENCE}"\n'
    "\n"
    "Context:\n"
    "{context}"
)

REWRITE_SYSTEM_PROMPT = "Rewrite the question for semantic search."

CONTEXT_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class PromptBuilderConfig:
    """Configuration for prompt construction."""

    system_template: str = RAG_SYSTEM_PROMPT
    separator: str = CONTEXT_SEPARATOR


class PromptBuilder:
    """Builds the grounded prompt sent to the chat backend."""

    def __init__(self, config: PromptBuilderConfig | None = None) -> None:
        self._config = config or PromptBuilderConfig()

    def build_context(self, chunks: Sequence[RetrievedChunk]) -> str:
        return self._config.separator.join(chunk.text for chunk in chunks)

    def build_messages(
        self,
        question: str,
        context: str,
        history: Sequence[ChatMessage] = (),
    ) -> list[ChatMessage]:
        system = self._config.system_template.replace("{context}", context)
        return [
            ChatMessage(role="system", content=system),
            *history,
            ChatMessage(role="user", content=question),
        ]


class QueryRewriter:
    """Rephrases questions for semantic search, keeping the original on failure."""

    def __init__(self, chat: ChatBackend, *, log_failures: bool = True) -> None:
        self._chat = chat
        self._log_failures = log_failures
        self._logger = get_logger("rewrite")

    def rewrite(self, question: str) -> str:
        messages = [
            ChatMessage(role="system", content=REWRITE_SYSTEM_PROMPT),
            ChatMessage(role="user", content=question),
        ]
        try:
            rewritten = self._chat.complete(messages).strip()
        except Exception as exc:
            PipelineMetrics.observe_rewrite_fallback()
            log = self._logger.warning if self._log_failures else self._logger.debug
            log("rewrite.failed", error=str(exc))
            return question
        return rewritten or question


class ConversationSession:
    """Append-only history of one conversation."""

    def __init__(self, session_id: str | None = None) -> None:
        self.session_id = session_id or uuid4().hex
        self._turns: list[ChatMessage] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._turns)

    def history(self, limit: int | None = None) -> list[ChatMessage]:
        with self._lock:
            if limit is None:
                return list(self._turns)
            return self._turns[-limit:] if limit > 0 else []

    def record(self, question: str, answer: str) -> None:
        """Append a question and its answer as adjacent turns."""

        with self._lock:
            self._turns.append(ChatMessage(role="user", content=question))
            self._turns.append(ChatMessage(role="assistant", content=answer))


class SessionStore:
    """Keeps one ``ConversationSession`` per session key."""

    def __init__(self) -> None:
        self._sessions: dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> ConversationSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = ConversationSession(session_id)
                self._sessions[session_id] = session
            return session


def format_order_answer(order_id: str, record: OrderRecord) -> str:
    lines = [
        f"Order #{order_id}",
        f"Status: {record.status}",
        f"Order Date: {record.created_at}",
    ]
    # Orders without a grand_total get no Total line
    if record.total is not None:
        lines.append(f"Total: ${_format_total(record.total)}")
    return "\n".join(lines)


def format_order_not_found(order_id: str) -> str:
    return f"Order #{order_id} was not found."


def _format_total(total: float | str) -> str:
    if isinstance(total, float) and total.is_integer():
        return str(int(total))
    return str(total)


class QueryPipeline:
    """Resolves a user question into exactly one answer variant.

    Questions carrying an order number are answered from the commerce
    system and never reach retrieval. Everything else is rewritten for
    search, embedded, matched against the index, and answered by the chat
    backend from the retrieved context only. ``resolve`` does not raise:
    failures come back as ``ErrorAnswer``.
    """

    def __init__(
        self,
        *,
        extractor: OrderNumberExtractor,
        orders: OrderStatusProvider,
        rewriter: QueryRewriter,
        retriever: Retriever,
        chat: ChatBackend,
        prompt_builder: PromptBuilder | None = None,
        top_k: int = 10,
        max_history_turns: int | None = None,
    ) -> None:
        self._extractor = extractor
        self._orders = orders
        self._rewriter = rewriter
        self._retriever = retriever
        self._chat = chat
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._top_k = top_k
        self._max_history_turns = max_history_turns
        self._logger = get_logger("query")

    def resolve(self, question: str, session: ConversationSession | None = None) -> AnswerResult:
        try:
            result = self._resolve(question, session)
        except Exception as exc:
            self._logger.error("answer.failed", error=str(exc), exc_info=True)
            result = ErrorAnswer(message=str(exc) or type(exc).__name__, detail=traceback.format_exc())
        PipelineMetrics.observe_answer(result.type)
        self._logger.info("answer.resolved", type=result.type)
        return result

    def _resolve(self, question: str, session: ConversationSession | None) -> AnswerResult:
        order_id = self._extractor.extract(question)
        if order_id is not None:
            return self._answer_order(order_id)
        return self._answer_from_documents(question, session)

    def _answer_order(self, order_id: str) -> OrderStatusAnswer:
        try:
            record = self._orders.lookup(order_id)
        except Exception:
            PipelineMetrics.observe_order_lookup("error")
            raise
        if not record.found:
            PipelineMetrics.observe_order_lookup("not_found")
            return OrderStatusAnswer(answer=format_order_not_found(order_id))
        PipelineMetrics.observe_order_lookup("found")
        return OrderStatusAnswer(answer=format_order_answer(order_id, record))

    def _answer_from_documents(self, question: str, session: ConversationSession | None) -> AnswerResult:
        search_query = self._rewriter.rewrite(question)
        chunks = self._retriever.retrieve(search_query, top_k=self._top_k)
        if not chunks:
            return EmptyAnswer()
        context = self._prompt_builder.build_context(chunks)
        history = session.history(self._max_history_turns) if session is not None else []
        messages = self._prompt_builder.build_messages(question, context, history)
        answer = self._chat.complete(messages)
        self._logger.info(
            "generation.complete",
            chunk_count=len(chunks),
            history_turns=len(history),
            rewritten=search_query != question,
        )
        if session is not None:
            session.record(question, answer)
        return RagAnswer(answer=answer)
