"""Retrieval components."""

from .service import RetrievalConfig, RetrievalResult, Retriever, TemporalRetriever
from .temporal import (
    HybridSearchResult,
    TemporalConfigError,
    TemporalSearchConfig,
    apply_temporal_weighting,
    extract_year,
    filter_by_year,
    hybrid_search,
    temporal_proximity,
)

__all__ = [
    "HybridSearchResult",
    "RetrievalConfig",
    "RetrievalResult",
    "Retriever",
    "TemporalConfigError",
    "TemporalRetriever",
    "TemporalSearchConfig",
    "apply_temporal_weighting",
    "extract_year",
    "filter_by_year",
    "hybrid_search",
    "temporal_proximity",
]
