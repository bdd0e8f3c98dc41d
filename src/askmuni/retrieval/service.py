"""Retrieval orchestration: vector search followed by temporal ranking."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from askmuni.embeddings import EmbeddingStore
from askmuni.metrics.observability import PipelineMetrics, get_logger, log_search_metadata
from askmuni.models import Chunk, SearchMetadata
from askmuni.retrieval.temporal import TemporalSearchConfig, hybrid_search


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    vector_limit: int = 20
    temporal: TemporalSearchConfig = field(default_factory=TemporalSearchConfig)


@dataclass(frozen=True)
class RetrievalResult:
    """Ranked candidates for one question plus the temporal search record."""

    chunks: Sequence[Chunk]
    metadata: SearchMetadata
    duration_seconds: float = 0.0


class Retriever(Protocol):
    """Retrieve ranked chunks for a query string."""

    def retrieve(self, query: str, *, temporal: TemporalSearchConfig | None = None) -> RetrievalResult:
        """Return candidates ranked by similarity and temporal relevance."""


class TemporalRetriever:
    """Retriever that re-ranks vector search hits around the year a question names."""

    def __init__(self, store: EmbeddingStore, config: RetrievalConfig | None = None) -> None:
        self._store = store
        self._config = config or RetrievalConfig()
        self._logger = get_logger("retrieval")

    def retrieve(self, query: str, *, temporal: TemporalSearchConfig | None = None) -> RetrievalResult:
        start = time.perf_counter()
        candidates = [
            chunk
            for chunk in self._store.similarity_search(query, top_k=self._config.vector_limit)
            if chunk.text
        ]
        result = hybrid_search(candidates, query, temporal or self._config.temporal)
        duration = time.perf_counter() - start

        log_search_metadata(result.metadata, query)
        PipelineMetrics.observe_temporal_search(result.metadata)
        PipelineMetrics.observe_retrieval(duration, len(result.chunks), (chunk.score for chunk in result.chunks))
        self._logger.info(
            "retrieval.complete",
            candidate_count=len(candidates),
            chunk_count=len(result.chunks),
            duration_seconds=duration,
        )
        return RetrievalResult(chunks=result.chunks, metadata=result.metadata, duration_seconds=duration)
