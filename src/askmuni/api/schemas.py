"""Pydantic models for the askmuni API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from askmuni.models import SearchMetadata, SourceReference


class ChatRequest(BaseModel):
    # Left optional so a missing message yields the service's own 400 message.
    message: Optional[str] = Field(default=None, description="Question about the council minutes")


class SearchMetadataModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query_year: Optional[int] = Field(default=None, alias="queryYear")
    temporal_filter_applied: bool = Field(..., alias="temporalFilterApplied")
    temporal_weighting_applied: bool = Field(..., alias="temporalWeightingApplied")
    original_count: int = Field(..., ge=0, alias="originalCount")
    filtered_count: int = Field(..., ge=0, alias="filteredCount")
    temporal_fallback_applied: bool = Field(default=False, alias="temporalFallbackApplied")

    @classmethod
    def from_metadata(cls, metadata: SearchMetadata) -> "SearchMetadataModel":
        return cls.model_validate(metadata.to_dict())


class SourceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: Optional[str] = None
    page: Optional[int] = None
    year: Optional[int] = None
    score: float
    original_score: float = Field(..., alias="originalScore")
    temporal_score: Optional[float] = Field(default=None, alias="temporalScore")
    url: Optional[str] = None
    url_with_page: Optional[str] = Field(default=None, alias="urlWithPage")

    @classmethod
    def from_source(cls, source: SourceReference) -> "SourceModel":
        return cls(
            filename=source.filename,
            page=source.page,
            year=source.year,
            score=source.score,
            original_score=source.original_score,
            temporal_score=source.temporal_score,
            url=source.url,
            url_with_page=source.url_with_page,
        )


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    sources: List[SourceModel]
    chunks_found: int = Field(..., ge=0, alias="chunksFound")
    search_metadata: SearchMetadataModel = Field(..., alias="searchMetadata")
    query_id: str = Field(..., alias="queryId")
    latency_ms: float = Field(..., alias="latencyMs")
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")
    context_text: Optional[str] = Field(default=None, alias="contextText")
    user_prompt: Optional[str] = Field(default=None, alias="userPrompt")


class ErrorResponse(BaseModel):
    detail: str
    correlation_id: Optional[str] = None
