"""Embedding backends for askmuni."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Literal, Protocol, Sequence, Tuple

from huggingface_hub import InferenceClient
from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "sentence-transformers/all-MiniLM-L6-v2"
    dim: int = 384
    provider: Literal["hash", "local", "inference"] = "hash"
    api_key: str | None = None
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        """Return one vector per text."""

    def embed_query(self, query: str) -> Tuple[float, ...]:
        """Return embedding vector for a query string."""


def _normalize(vector: Sequence[float]) -> Tuple[float, ...]:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(float(value) / norm for value in vector)


def as_vector(raw: object) -> Tuple[float, ...]:
    """Flatten a feature-extraction response to one vector.

    Hosted inference answers either ``[d0, d1, ...]`` or ``[[d0, d1, ...]]``.
    """

    if hasattr(raw, "tolist"):
        raw = raw.tolist()
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValueError("Empty embedding returned by the inference provider")
    first = raw[0]
    if hasattr(first, "tolist"):
        first = first.tolist()
    if isinstance(first, (list, tuple)):
        return tuple(float(value) for value in first)
    return tuple(float(value) for value in raw)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding fallback used for testing."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    def _hash_to_vector(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            return _normalize(vector)
        return tuple(vector)

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        return [self._hash_to_vector(text) for text in texts]

    def embed_query(self, query: str) -> Tuple[float, ...]:
        return self._hash_to_vector(query)


class HuggingFaceEmbeddingBackend:
    """Sentence-transformer embeddings, hosted or local.

    ``provider="inference"`` calls the Hugging Face feature-extraction API,
    ``provider="local"`` loads the model through LangChain. Any other provider,
    or a model that fails to load, degrades to hash embeddings.
    """

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        client: InferenceClient | None = None,
    ) -> None:
        self._config = config or EmbeddingConfig()
        self._delegate = HashEmbeddingBackend(self._config)
        self._inference: InferenceClient | None = None
        self._local: LangChainEmbeddings | None = None
        if self._config.provider == "inference":
            self._inference = client or InferenceClient(token=self._config.api_key)
            LOGGER.info("Using hosted embeddings from %s", self._config.model)
        elif self._config.provider == "local":
            self._local = self._load_local()
        else:
            LOGGER.info("HuggingFaceEmbeddingBackend running in hash-only mode.")

    def _load_local(self) -> LangChainEmbeddings | None:
        try:
            model_kwargs = {"device": self._config.device} if self._config.device else {}
            embeddings = HuggingFaceEmbeddings(
                model_name=self._config.model,
                model_kwargs=model_kwargs,
                encode_kwargs={"normalize_embeddings": self._config.normalize},
                cache_folder=self._config.cache_folder,
            )
            LOGGER.info("Loaded embedding model %s", self._config.model)
            return embeddings
        except Exception as exc:  # pragma: no cover - depends on local model availability
            LOGGER.warning("Falling back to hash embeddings: %s", exc)
            return None

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        if not texts:
            return []
        if self._inference is not None:
            return [self.embed_query(text) for text in texts]
        if self._local is None:
            return self._delegate.embed_texts(texts)
        vectors = self._local.embed_documents(list(texts))
        if len(vectors) != len(texts):
            LOGGER.error("Embedding backend returned %d vectors for %d texts", len(vectors), len(texts))
            raise ValueError("Mismatch between number of texts and embedding vectors")
        return [self._finish(vector) for vector in vectors]

    def embed_query(self, query: str) -> Tuple[float, ...]:
        if self._inference is not None:
            raw = self._inference.feature_extraction(query, model=self._config.model)
            return self._finish(as_vector(raw))
        if self._local is None:
            return self._delegate.embed_query(query)
        return self._finish(self._local.embed_query(query))

    def _finish(self, vector: Sequence[float]) -> Tuple[float, ...]:
        if len(vector) != self._config.dim:
            LOGGER.warning(
                "Embedding dim mismatch: configured=%d, actual=%d",
                self._config.dim,
                len(vector),
            )
        if not self._config.normalize:
            return tuple(float(value) for value in vector)
        return _normalize(vector)
