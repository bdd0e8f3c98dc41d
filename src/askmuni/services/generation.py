"""Generation backends for askmuni."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from huggingface_hub import InferenceClient

from askmuni.models import Chunk
from askmuni.services.prompts import LIMITATIONS_NOTICE, NO_ANSWER_REPLY

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = "mistralai/Mistral-7B-Instruct-v0.2"
    max_tokens: int = 512
    temperature: float = 0.3
    api_key: str | None = None


class GenerationBackend(Protocol):
    """Protocol describing generation behaviour."""

    def generate(
        self,
        *,
        question: str,
        system_prompt: str,
        user_prompt: str,
        chunks: Sequence[Chunk],
    ) -> str:
        """Return a grounded answer for the supplied question and prompts."""


class TemplateGenerator:
    """Simple deterministic generator used for tests and offline environments."""

    def generate(
        self,
        *,
        question: str,
        system_prompt: str,
        user_prompt: str,
        chunks: Sequence[Chunk],
    ) -> str:
        if not chunks:
            return (
                "Je n'ai trouvé aucun extrait pertinent dans les comptes-rendus pour répondre à cette question.\n\n"
                f"{LIMITATIONS_NOTICE}"
            )
        best = chunks[0]
        origin = best.filename or "Document"
        if best.year is not None:
            origin = f"{origin} ({best.year})"
        return (
            f"D'après les comptes-rendus ({len(chunks)} extraits analysés), le passage le plus pertinent "
            f"pour « {question} » provient de {origin} :\n{best.text}\n\n"
            f"{LIMITATIONS_NOTICE}"
        )


class HuggingFaceChatGenerator:
    """Generator calling a hosted chat model through the Hugging Face Inference API."""

    def __init__(
        self,
        config: GenerationConfig | None = None,
        *,
        client: InferenceClient | None = None,
    ) -> None:
        self._config = config or GenerationConfig()
        self._client = client or InferenceClient(token=self._config.api_key)
        LOGGER.info("Using hosted generation model %s", self._config.model)

    def generate(
        self,
        *,
        question: str,
        system_prompt: str,
        user_prompt: str,
        chunks: Sequence[Chunk],
    ) -> str:
        response = self._client.chat_completion(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            model=self._config.model,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
        )
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            LOGGER.warning("Empty completion returned by %s", self._config.model)
            return NO_ANSWER_REPLY
        return content.strip()
