"""Query orchestration combining retrieval and generation."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Sequence
from uuid import NAMESPACE_URL, uuid5

from askmuni.metrics.observability import PipelineMetrics, TimedSection, get_logger
from askmuni.models import Answer, Chunk, SourceReference
from askmuni.retrieval.service import Retriever
from askmuni.services.generation import GenerationBackend, TemplateGenerator
from askmuni.services.prompts import SYSTEM_PROMPT

_FILENAME_YEAR = re.compile(r"([0-9]{4})")


@dataclass(frozen=True)
class PromptBuilderConfig:
    """Configuration for prompt construction."""

    chunk_separator: str = "\n---\n"
    default_source: str = "Document"


class PromptBuilder:
    """Builds the context block and user prompt handed to the model."""

    def __init__(self, config: PromptBuilderConfig | None = None) -> None:
        self._config = config or PromptBuilderConfig()

    def build_context(self, chunks: Sequence[Chunk]) -> str:
        blocks = []
        for chunk in chunks:
            parts = [chunk.filename or self._config.default_source]
            if chunk.page:
                parts.append(f"page {chunk.page}")
            if chunk.year:
                parts.append(f"année {chunk.year}")
            if chunk.temporal_score:
                parts.append(f"pertinence temporelle: {chunk.temporal_score * 100:.1f}%")
            blocks.append(f"[Source: {', '.join(parts)}]\n{chunk.text}")
        return self._config.chunk_separator.join(blocks)

    @staticmethod
    def build_user_prompt(context: str, question: str) -> str:
        return f"Contexte des documents municipaux :\n{context}\n\nQuestion de l'utilisateur : {question}"


def build_sources(chunks: Sequence[Chunk], base_path: str = "/datas") -> list[SourceReference]:
    """Turn context chunks into user-facing citations linking to the PDF page."""

    base = base_path.rstrip("/")
    sources: list[SourceReference] = []
    for chunk in chunks:
        url = None
        if chunk.filename and chunk.year:
            url = f"{base}/{chunk.year}/{chunk.filename}"
        elif chunk.filename:
            # Legacy uploads carry their year only in the file name.
            match = _FILENAME_YEAR.search(chunk.filename)
            if match:
                url = f"{base}/{match.group(1)}/{chunk.filename}"
        sources.append(
            SourceReference(
                filename=chunk.filename,
                page=chunk.page,
                year=chunk.year,
                score=chunk.ranking_score,
                original_score=chunk.original_score if chunk.original_score is not None else chunk.score,
                temporal_score=chunk.temporal_score,
                url=url,
                url_with_page=f"{url}#page={chunk.page}" if url and chunk.page else url,
            )
        )
    return sources


class QueryService:
    """Orchestrates retrieval and generation for incoming questions."""

    def __init__(
        self,
        retriever: Retriever,
        generator: GenerationBackend | None = None,
        prompt_builder: PromptBuilder | None = None,
        *,
        context_limit: int = 10,
        pdf_base_path: str = "/datas",
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._retriever = retriever
        self._generator = generator or TemplateGenerator()
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._context_limit = context_limit
        self._pdf_base_path = pdf_base_path
        self._system_prompt = system_prompt
        self._logger = get_logger("query")

    def answer(self, question: str) -> Answer:
        start = time.perf_counter()
        retrieval = self._retriever.retrieve(question)
        context_chunks = list(retrieval.chunks[: self._context_limit])
        self._logger.info(
            "context.selected",
            ranked_count=len(retrieval.chunks),
            context_count=len(context_chunks),
        )

        context = self._prompt_builder.build_context(context_chunks)
        user_prompt = self._prompt_builder.build_user_prompt(context, question)
        with TimedSection(PipelineMetrics.observe_generation) as timer:
            text = self._generator.generate(
                question=question,
                system_prompt=self._system_prompt,
                user_prompt=user_prompt,
                chunks=context_chunks,
            )
        self._logger.info(
            "generation.complete",
            duration_seconds=timer.elapsed,
            source_count=len(context_chunks),
        )

        latency_ms = (time.perf_counter() - start) * 1000
        return Answer(
            text=text,
            sources=build_sources(context_chunks, self._pdf_base_path),
            chunks=context_chunks,
            search_metadata=retrieval.metadata,
            query_id=uuid5(NAMESPACE_URL, question).hex,
            latency_ms=latency_ms,
            system_prompt=self._system_prompt,
            context_text=context,
            user_prompt=user_prompt,
            retrieval_ms=retrieval.duration_seconds * 1000,
            generation_ms=timer.elapsed * 1000,
        )
