"""Observability helpers for the support assistant."""

from __future__ import annotations

import logging
import time
from typing import Iterable

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "supportrag") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    ingestion_latency = Histogram(
        "supportrag_ingestion_duration_seconds",
        "Time spent ingesting documents.",
        buckets=(0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
    )
    ingestion_chunks = Histogram(
        "supportrag_ingestion_chunk_count",
        "Chunks produced per ingestion run.",
        buckets=(0, 10, 50, 100, 250, 500, 1000, 5000),
    )
    retrieval_latency = Histogram(
        "supportrag_retrieval_duration_seconds",
        "Time spent embedding the query and searching the index.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    retrieved_chunk_count = Histogram(
        "supportrag_retrieved_chunk_count",
        "Number of chunks returned by retrieval.",
        buckets=(0, 1, 2, 3, 5, 8, 10, 13),
    )
    grounding_score = Histogram(
        "supportrag_grounding_score",
        "Similarity score of retrieved chunks.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_latency = Histogram(
        "supportrag_generation_duration_seconds",
        "Time spent generating answers.",
        buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )
    order_lookups = Counter(
        "supportrag_order_lookups_total",
        "Order status lookups by outcome.",
        ["outcome"],
    )
    rewrite_fallbacks = Counter(
        "supportrag_rewrite_fallbacks_total",
        "Query rewrites that fell back to the original question.",
    )
    answers = Counter(
        "supportrag_answers_total",
        "Resolved questions by answer type.",
        ["type"],
    )

    @classmethod
    def observe_ingestion(cls, duration_seconds: float, chunk_count: int) -> None:
        cls.ingestion_latency.observe(duration_seconds)
        cls.ingestion_chunks.observe(chunk_count)

    @classmethod
    def observe_retrieval(
        cls,
        duration_seconds: float,
        chunk_count: int,
        scores: Iterable[float],
    ) -> None:
        cls.retrieval_latency.observe(duration_seconds)
        cls.retrieved_chunk_count.observe(chunk_count)
        for score in scores:
            cls.grounding_score.observe(_clamp_score(score))

    @classmethod
    def observe_generation(cls, duration_seconds: float) -> None:
        cls.generation_latency.observe(duration_seconds)

    @classmethod
    def observe_order_lookup(cls, outcome: str) -> None:
        cls.order_lookups.labels(outcome=outcome).inc()

    @classmethod
    def observe_rewrite_fallback(cls) -> None:
        cls.rewrite_fallbacks.inc()

    @classmethod
    def observe_answer(cls, answer_type: str) -> None:
        cls.answers.labels(type=answer_type).inc()


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback) -> None:
        self._callback = callback
        self._start = 0.0
        self.duration = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.duration = time.perf_counter() - self._start
        if exc_type is None:
            self._callback(self.duration)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
