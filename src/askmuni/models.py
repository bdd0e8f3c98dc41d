"""Shared domain models used across the askmuni pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence


def _optional_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class IndexedChunk:
    """Excerpt of a council-meeting document as stored in the vector index."""

    chunk_id: str
    text: str
    filename: str | None = None
    filepath: str | None = None
    page_number: int | None = None
    chunk_index: int = 0
    year: int | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "text": self.text,
            "filename": self.filename,
            "filepath": self.filepath or self.filename,
            "page_number": self.page_number,
            "chunk_index": self.chunk_index,
            "year": self.year,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True)
class Chunk:
    """Scored excerpt returned by the vector search.

    ``temporal_score``, ``final_score`` and ``original_score`` are only set by
    temporal weighting; an unweighted chunk carries ``None`` for all three.
    """

    text: str
    score: float
    filename: str | None = None
    page: int | None = None
    year: int | None = None
    temporal_score: float | None = None
    final_score: float | None = None
    original_score: float | None = None

    @property
    def ranking_score(self) -> float:
        return self.final_score if self.final_score is not None else self.score

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], score: float) -> "Chunk":
        """Build a chunk from a vector-store payload (``page_number`` or ``page``)."""

        page = payload.get("page_number", payload.get("page"))
        filename = payload.get("filename")
        return cls(
            text=str(payload.get("text") or ""),
            score=float(score),
            filename=str(filename) if filename else None,
            page=_optional_int(page),
            year=_optional_int(payload.get("year")),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Chunk":
        """Inverse of :meth:`to_dict`, tolerant of missing optional keys."""

        chunk = cls.from_payload(data, float(data.get("score", 0.0)))
        return cls(
            text=chunk.text,
            score=chunk.score,
            filename=chunk.filename,
            page=chunk.page,
            year=chunk.year,
            temporal_score=data.get("temporalScore"),
            final_score=data.get("finalScore"),
            original_score=data.get("originalScore"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "text": self.text,
            "score": self.score,
            "filename": self.filename,
            "page": self.page,
            "year": self.year,
        }
        if self.temporal_score is not None:
            data["temporalScore"] = self.temporal_score
        if self.final_score is not None:
            data["finalScore"] = self.final_score
        if self.original_score is not None:
            data["originalScore"] = self.original_score
        return data


@dataclass(frozen=True)
class SearchMetadata:
    """Diagnostic record describing one hybrid-search invocation."""

    query_year: int | None
    temporal_filter_applied: bool
    temporal_weighting_applied: bool
    original_count: int
    filtered_count: int
    temporal_fallback_applied: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "queryYear": self.query_year,
            "temporalFilterApplied": self.temporal_filter_applied,
            "temporalWeightingApplied": self.temporal_weighting_applied,
            "originalCount": self.original_count,
            "filteredCount": self.filtered_count,
            "temporalFallbackApplied": self.temporal_fallback_applied,
        }


@dataclass(frozen=True)
class SourceReference:
    """Citation surfaced to the end user, with a link to the source PDF."""

    filename: str | None
    page: int | None
    year: int | None
    score: float
    original_score: float
    temporal_score: float | None = None
    url: str | None = None
    url_with_page: str | None = None


@dataclass(frozen=True)
class Answer:
    """Structured answer produced by the LLM with its sources."""

    text: str
    sources: Sequence[SourceReference]
    chunks: Sequence[Chunk]
    search_metadata: SearchMetadata
    query_id: str
    latency_ms: float
    system_prompt: str = ""
    context_text: str = ""
    user_prompt: str = ""
    retrieval_ms: float | None = None
    generation_ms: float | None = None
