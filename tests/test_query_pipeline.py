"""Tests for the query resolution pipeline."""

from __future__ import annotations

import threading
from typing import Sequence

from supportrag.models import (
    ChatMessage,
    EmptyAnswer,
    ErrorAnswer,
    OrderRecord,
    OrderStatusAnswer,
    RagAnswer,
    RetrievedChunk,
)
from supportrag.services.extraction import OrderNumberExtractor
from supportrag.services.orders import OrderLookupError
from supportrag.services.query import (
    CONTEXT_SEPARATOR,
    NOT_FOUND_SENTENCE,
    ConversationSession,
    QueryPipeline,
    QueryRewriter,
    SessionStore,
)


class ScriptedChat:
    """Returns queued replies in order; queued exceptions are raised."""

    def __init__(self, *replies: object) -> None:
        self._replies = list(replies)
        self.calls: list[list[ChatMessage]] = []

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        self.calls.append(list(messages))
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return str(reply)


class StubOrders:
    def __init__(self, outcome: OrderRecord | Exception) -> None:
        self._outcome = outcome
        self.lookups: list[str] = []

    def lookup(self, order_id: str) -> OrderRecord:
        self.lookups.append(order_id)
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


class StubRetriever:
    def __init__(self, chunks: Sequence[RetrievedChunk] = (), error: Exception | None = None) -> None:
        self._chunks = list(chunks)
        self._error = error
        self.queries: list[tuple[str, int | None]] = []

    def retrieve(self, query: str, *, top_k: int | None = None) -> Sequence[RetrievedChunk]:
        self.queries.append((query, top_k))
        if self._error is not None:
            raise self._error
        return self._chunks


def make_pipeline(
    chat: ScriptedChat,
    *,
    orders: StubOrders | None = None,
    retriever: StubRetriever | None = None,
    max_history_turns: int | None = None,
) -> QueryPipeline:
    return QueryPipeline(
        extractor=OrderNumberExtractor.default(chat),
        orders=orders or StubOrders(OrderRecord.not_found()),
        rewriter=QueryRewriter(chat),
        retriever=retriever or StubRetriever(),
        chat=chat,
        top_k=10,
        max_history_turns=max_history_turns,
    )


CHUNKS = [
    RetrievedChunk(text="A binary search tree keeps smaller keys on the left.", score=0.91),
    RetrievedChunk(text="Lookups take O(log n) time when the tree is balanced.", score=0.84),
    RetrievedChunk(text="In-order traversal visits keys in sorted order.", score=0.77),
]


def test_order_found_returns_formatted_status() -> None:
    chat = ScriptedChat()
    orders = StubOrders(OrderRecord(found=True, status="shipped", total=49.99, created_at="2024-01-01"))
    retriever = StubRetriever(CHUNKS)
    pipeline = make_pipeline(chat, orders=orders, retriever=retriever)

    result = pipeline.resolve("Where is order #000123456?")

    assert result == OrderStatusAnswer(
        answer="Order #000123456\nStatus: shipped\nOrder Date: 2024-01-01\nTotal: $49.99"
    )
    assert result.to_dict() == {
        "type": "order_status",
        "answer": "Order #000123456\nStatus: shipped\nOrder Date: 2024-01-01\nTotal: $49.99",
    }
    assert orders.lookups == ["000123456"]
    assert chat.calls == []
    assert retriever.queries == []


def test_order_not_found_is_answered_inline_and_skips_retrieval() -> None:
    chat = ScriptedChat()
    retriever = StubRetriever(CHUNKS)
    pipeline = make_pipeline(chat, orders=StubOrders(OrderRecord.not_found()), retriever=retriever)

    result = pipeline.resolve("order 42")

    assert result.to_dict() == {"type": "order_status", "answer": "Order #000000042 was not found."}
    assert retriever.queries == []
    assert chat.calls == []


def test_order_provider_failure_is_an_error_not_a_fallthrough() -> None:
    chat = ScriptedChat()
    retriever = StubRetriever(CHUNKS)
    orders = StubOrders(OrderLookupError("Order lookup failed with HTTP 401 for order 000000007"))
    pipeline = make_pipeline(chat, orders=orders, retriever=retriever)

    result = pipeline.resolve("what about order #7")

    assert isinstance(result, ErrorAnswer)
    assert result.message == "Order lookup failed with HTTP 401 for order 000000007"
    assert result.to_dict() == {"type": "error", "error": result.message}
    assert retriever.queries == []


def test_whole_number_totals_render_without_decimal_point() -> None:
    orders = StubOrders(OrderRecord(found=True, status="pending", total=120.0, created_at="2024-03-05 10:00:00"))
    pipeline = make_pipeline(ScriptedChat(), orders=orders)

    result = pipeline.resolve("Order #5")

    assert result.answer.endswith("Total: $120")


def test_model_assisted_extraction_handles_free_phrasing() -> None:
    chat = ScriptedChat("77")
    orders = StubOrders(OrderRecord(found=True, status="complete", total="15.00", created_at="2024-02-02"))
    pipeline = make_pipeline(chat, orders=orders)

    result = pipeline.resolve("my purchase number is 77, where is it?")

    assert isinstance(result, OrderStatusAnswer)
    assert orders.lookups == ["000000077"]
    assert "Total: $15.00" in result.answer


def test_rag_answer_is_grounded_in_retrieved_context() -> None:
    chat = ScriptedChat("NONE", "binary search tree definition", "A BST is an ordered binary tree.")
    retriever = StubRetriever(CHUNKS)
    pipeline = make_pipeline(chat, retriever=retriever)

    result = pipeline.resolve("What is a binary search tree?")

    assert result == RagAnswer(answer="A BST is an ordered binary tree.")
    assert retriever.queries == [("binary search tree definition", 10)]
    system, user = chat.calls[-1]
    assert system.role == "system"
    assert CONTEXT_SEPARATOR.join(chunk.text for chunk in CHUNKS) in system.content
    assert f'"{NOT_FOUND_SENTENCE}"' in system.content
    assert "Answer ONLY using the provided context." in system.content
    assert user == ChatMessage(role="user", content="What is a binary search tree?")


def test_no_matches_returns_empty_without_composing() -> None:
    chat = ScriptedChat("NONE", "rewritten question")
    pipeline = make_pipeline(chat, retriever=StubRetriever([]))

    result = pipeline.resolve("How do I reset my password?")

    assert result == EmptyAnswer()
    assert result.to_dict() == {"type": "empty"}
    assert len(chat.calls) == 2


def test_rewrite_failure_falls_back_to_original_question() -> None:
    chat = ScriptedChat("NONE", RuntimeError("rate limited"), "Use the reset link.")
    retriever = StubRetriever(CHUNKS)
    pipeline = make_pipeline(chat, retriever=retriever)

    result = pipeline.resolve("How do I reset my password?")

    assert result == RagAnswer(answer="Use the reset link.")
    assert retriever.queries == [("How do I reset my password?", 10)]


def test_blank_rewrite_uses_original_question() -> None:
    chat = ScriptedChat("NONE", "   ", "ok")
    retriever = StubRetriever(CHUNKS)
    make_pipeline(chat, retriever=retriever).resolve("shipping times?")

    assert retriever.queries[0][0] == "shipping times?"


def test_non_digit_model_reply_is_not_treated_as_order() -> None:
    chat = ScriptedChat("Order number: 12", "returns policy", "30 days.")
    orders = StubOrders(OrderRecord.not_found())
    pipeline = make_pipeline(chat, orders=orders, retriever=StubRetriever(CHUNKS))

    result = pipeline.resolve("what is your returns policy")

    assert isinstance(result, RagAnswer)
    assert orders.lookups == []


def test_retrieval_failure_maps_to_error() -> None:
    chat = ScriptedChat("NONE", "query")
    pipeline = make_pipeline(chat, retriever=StubRetriever(error=ConnectionError("index unavailable")))

    result = pipeline.resolve("anything")

    assert isinstance(result, ErrorAnswer)
    assert result.message == "index unavailable"
    assert result.detail and "ConnectionError" in result.detail
    assert "details" not in result.to_dict()
    assert "details" in result.to_dict(include_detail=True)


def test_completion_failure_maps_to_error_and_leaves_session_untouched() -> None:
    chat = ScriptedChat("NONE", "query", TimeoutError("timed out"))
    session = ConversationSession()
    pipeline = make_pipeline(chat, retriever=StubRetriever(CHUNKS))

    result = pipeline.resolve("anything", session)

    assert isinstance(result, ErrorAnswer)
    assert len(session) == 0


def test_session_history_is_sent_with_later_questions() -> None:
    chat = ScriptedChat("NONE", "q1", "first answer", "NONE", "q2", "second answer")
    session = ConversationSession("abc")
    pipeline = make_pipeline(chat, retriever=StubRetriever(CHUNKS))

    pipeline.resolve("first question", session)
    pipeline.resolve("second question", session)

    messages = chat.calls[-1]
    assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[1].content == "first question"
    assert messages[2].content == "first answer"
    assert messages[3].content == "second question"
    assert len(session) == 4


def test_history_window_limits_turns_sent() -> None:
    chat = ScriptedChat("NONE", "q", "latest")
    session = ConversationSession()
    for index in range(5):
        session.record(f"question {index}", f"answer {index}")
    pipeline = make_pipeline(chat, retriever=StubRetriever(CHUNKS), max_history_turns=2)

    pipeline.resolve("new question", session)

    messages = chat.calls[-1]
    assert [m.content for m in messages[1:]] == ["question 4", "answer 4", "new question"]
    assert len(session) == 12


def test_order_answers_are_not_recorded_in_session() -> None:
    session = ConversationSession()
    make_pipeline(ScriptedChat()).resolve("order 42", session)

    assert len(session) == 0


def test_missing_total_leaves_out_the_total_line() -> None:
    orders = StubOrders(OrderRecord(found=True, status="processing", total=None, created_at="2024-04-01"))
    pipeline = make_pipeline(ScriptedChat(), orders=orders)

    result = pipeline.resolve("order 12")

    assert result.answer == "Order #000000012\nStatus: processing\nOrder Date: 2024-04-01"


def test_concurrent_records_keep_turns_paired() -> None:
    session = ConversationSession()
    barrier = threading.Barrier(8)

    def worker(n: int) -> None:
        barrier.wait()
        for i in range(25):
            session.record(f"q-{n}-{i}", f"a-{n}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    history = session.history()
    assert len(history) == 2 * 8 * 25
    for question, answer in zip(history[::2], history[1::2]):
        assert question.role == "user"
        assert answer.role == "assistant"
        assert answer.content == "a" + question.content[1:]


def test_session_store_hands_out_one_session_per_key() -> None:
    store = SessionStore()
    barrier = threading.Barrier(8)
    seen: list[ConversationSession] = []
    seen_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        session = store.get("k")
        with seen_lock:
            seen.append(session)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(seen) == 8
    assert all(session is seen[0] for session in seen)
    other = store.get("other")
    assert other is not seen[0]
    other.record("q", "a")
    assert len(seen[0]) == 0
