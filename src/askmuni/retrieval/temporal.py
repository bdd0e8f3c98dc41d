"""Hybrid temporal ranking of retrieved council-meeting excerpts.

A question mentioning a year ("Quels sont les projets pour 2025 ?") narrows
the candidate chunks to documents published around that year and blends the
vector similarity with a temporal proximity score:

    final = (1 - w) * similarity + w * 0.8 ** |query_year - document_year|

Chunks without a year are never dropped and never re-weighted. Every function
here is pure: inputs are left untouched and new chunk records are returned.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Pattern, Sequence

from askmuni.models import Chunk, SearchMetadata

MIN_YEAR = 1900
MAX_YEAR = 2100
DECAY_BASE = 0.8

_YEAR = r"([0-9]{4})(?![0-9])"
_APOSTROPHE = r"['’]"

# Ordered from most to least specific; the first pattern with an in-range
# match wins, even if a later pattern matches earlier in the text.
_YEAR_PATTERNS: tuple[tuple[Pattern[str], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), tag)
    for pattern, tag in (
        (
            rf"\b(?:pour\s+l{_APOSTROPHE}\s*ann[ée]e|ann[ée]e|exercice|for\s+the\s+year|year)\s+{_YEAR}",
            "year_noun",
        ),
        (rf"\b(?:en|de|du|pour|depuis|in|for|of|since)\s+{_YEAR}", "preposition"),
        (rf"(?:\bl{_APOSTROPHE}\s*|\b(?:le|la|the)\s+){_YEAR}", "article"),
        (rf"(?<![0-9]){_YEAR}", "bare"),
    )
)


class TemporalConfigError(ValueError):
    """Raised when a temporal search configuration is out of its valid range."""


@dataclass(frozen=True)
class TemporalSearchConfig:
    """Per-call settings for :func:`hybrid_search`."""

    temporal_weight: float = 0.3
    year_tolerance: int = 2
    enable_filtering: bool = True
    enable_weighting: bool = True
    fallback_to_unfiltered: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.temporal_weight, bool) or not isinstance(self.temporal_weight, (int, float)):
            raise TemporalConfigError(f"temporal_weight must be a number, got {self.temporal_weight!r}")
        if not 0.0 <= self.temporal_weight <= 1.0:
            raise TemporalConfigError(f"temporal_weight must be within [0, 1], got {self.temporal_weight}")
        if isinstance(self.year_tolerance, bool) or not isinstance(self.year_tolerance, int):
            raise TemporalConfigError(f"year_tolerance must be an integer, got {self.year_tolerance!r}")
        if self.year_tolerance < 0:
            raise TemporalConfigError(f"year_tolerance must be >= 0, got {self.year_tolerance}")


@dataclass(frozen=True)
class HybridSearchResult:
    """Ranked chunks together with the record of what was applied."""

    chunks: Sequence[Chunk]
    metadata: SearchMetadata


def extract_year(query: str) -> int | None:
    """Return the year a question refers to, or ``None``.

    Cue phrases ("année 2024", "en 2025", "l'2023") take precedence over a bare
    four-digit number. Only exact four-digit runs within [1900, 2100] count, so
    amounts such as "2500000" are ignored.
    """

    if not query:
        return None
    for pattern, _tag in _YEAR_PATTERNS:
        for match in pattern.finditer(query):
            year = int(match.group(1))
            if MIN_YEAR <= year <= MAX_YEAR:
                return year
    return None


def temporal_proximity(query_year: int, document_year: int) -> float:
    """Exponential decay: 1.0 for the same year, times 0.8 per year apart."""

    return DECAY_BASE ** abs(query_year - document_year)


def filter_by_year(chunks: Sequence[Chunk], target_year: int, tolerance: int = 2) -> list[Chunk]:
    """Keep undated chunks and chunks within ``tolerance`` years of ``target_year``."""

    return [
        chunk
        for chunk in chunks
        if chunk.year is None or abs(chunk.year - target_year) <= tolerance
    ]


def apply_temporal_weighting(
    chunks: Sequence[Chunk],
    query_year: int,
    temporal_weight: float = 0.3,
) -> list[Chunk]:
    """Blend similarity and temporal proximity into ``final_score``; order is kept."""

    weighted: list[Chunk] = []
    for chunk in chunks:
        if chunk.year is None:
            weighted.append(replace(chunk, final_score=chunk.score))
            continue
        temporal_score = temporal_proximity(query_year, chunk.year)
        final_score = (1 - temporal_weight) * chunk.score + temporal_weight * temporal_score
        weighted.append(
            replace(
                chunk,
                temporal_score=temporal_score,
                final_score=final_score,
                original_score=chunk.score,
            )
        )
    return weighted


def hybrid_search(
    chunks: Sequence[Chunk],
    query: str,
    config: TemporalSearchConfig | None = None,
) -> HybridSearchResult:
    """Extract the query year, then filter, weight and rank ``chunks``.

    Sorting is stable and descending on ``final_score`` when weighting ran,
    on ``score`` otherwise. An empty result is returned as is unless
    ``config.fallback_to_unfiltered`` is set.
    """

    config = config or TemporalSearchConfig()
    query_year = extract_year(query)
    working = list(chunks)
    original_count = len(working)
    filtered_count = original_count
    filter_applied = False
    weighting_applied = False
    fallback_applied = False

    if query_year is not None and config.enable_filtering:
        filtered = filter_by_year(working, query_year, config.year_tolerance)
        filter_applied = True
        filtered_count = len(filtered)
        if not filtered and working and config.fallback_to_unfiltered:
            fallback_applied = True
        else:
            working = filtered

    if query_year is not None and config.enable_weighting:
        working = apply_temporal_weighting(working, query_year, config.temporal_weight)
        weighting_applied = True

    if weighting_applied:
        ranked = sorted(working, key=lambda chunk: chunk.ranking_score, reverse=True)
    else:
        ranked = sorted(working, key=lambda chunk: chunk.score, reverse=True)

    metadata = SearchMetadata(
        query_year=query_year,
        temporal_filter_applied=filter_applied,
        temporal_weighting_applied=weighting_applied,
        original_count=original_count,
        filtered_count=filtered_count,
        temporal_fallback_applied=fallback_applied,
    )
    return HybridSearchResult(chunks=ranked, metadata=metadata)
