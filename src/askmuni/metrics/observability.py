"""Observability helpers for askmuni."""

from __future__ import annotations

import logging
import time
from typing import Iterable

import structlog
from prometheus_client import Counter, Histogram

from askmuni.models import SearchMetadata

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
            structlog.processors.JSONRenderer(ensure_ascii=False),
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


def get_logger(name: str = "askmuni") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def log_search_metadata(metadata: SearchMetadata, query: str) -> None:
    """Log what the temporal hybrid search did for one question."""

    get_logger("temporal").info(
        "temporal_search.metadata",
        query=query,
        query_year=metadata.query_year,
        temporal_filter_applied=metadata.temporal_filter_applied,
        temporal_weighting_applied=metadata.temporal_weighting_applied,
        temporal_fallback_applied=metadata.temporal_fallback_applied,
        original_count=metadata.original_count,
        filtered_count=metadata.filtered_count,
    )


def _clamp_score(score: float) -> float:
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    retrieval_latency = Histogram(
        "askmuni_retrieval_duration_seconds",
        "Time spent embedding the question and searching the vector store.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    retrieved_chunk_count = Histogram(
        "askmuni_retrieved_chunk_count",
        "Number of chunks kept after temporal ranking.",
        buckets=(0, 1, 2, 3, 5, 10, 20),
    )
    similarity_score = Histogram(
        "askmuni_similarity_score",
        "Vector similarity of ranked chunks.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_latency = Histogram(
        "askmuni_generation_duration_seconds",
        "Time spent generating answers.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0),
    )
    temporal_searches = Counter(
        "askmuni_temporal_search_total",
        "Hybrid searches by applied temporal stages.",
        ["year_found", "filtered", "weighted"],
    )
    temporal_filtered_out = Histogram(
        "askmuni_temporal_filtered_out_count",
        "Chunks removed by the temporal filter per search.",
        buckets=(0, 1, 2, 5, 10, 20),
    )

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
            cls.similarity_score.observe(_clamp_score(score))

    @classmethod
    def observe_temporal_search(cls, metadata: SearchMetadata) -> None:
        cls.temporal_searches.labels(
            year_found=str(metadata.query_year is not None).lower(),
            filtered=str(metadata.temporal_filter_applied).lower(),
            weighted=str(metadata.temporal_weighting_applied).lower(),
        ).inc()
        if metadata.temporal_filter_applied:
            cls.temporal_filtered_out.observe(metadata.original_count - metadata.filtered_count)

    @classmethod
    def observe_generation(cls, duration_seconds: float) -> None:
        cls.generation_latency.observe(duration_seconds)


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback) -> None:
        self._callback = callback
        self._start = 0.0
        self.elapsed = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.elapsed = time.perf_counter() - self._start
        if self._callback is not None:
            self._callback(self.elapsed)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
    "log_search_metadata",
]
