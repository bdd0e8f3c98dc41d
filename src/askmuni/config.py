"""Runtime configuration for the askmuni services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from askmuni.retrieval.temporal import TemporalSearchConfig


class ConfigurationError(RuntimeError):
    """Raised when a selected provider is missing its credentials."""


def _env(name: str, *legacy: str) -> AliasChoices:
    return AliasChoices(f"askmuni_{name}", name, *legacy)


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(
        env_prefix="askmuni_",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    environment: Literal["dev", "test", "prod"] = "dev"

    # Vector store
    vector_backend: Literal["chroma", "qdrant"] = "chroma"
    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "municipal_council_minutes"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False
    qdrant_url: str | None = Field(default=None, validation_alias=_env("qdrant_url"))
    qdrant_collection: str = Field(
        default="municipal_council_minutes",
        validation_alias=_env("qdrant_collection", "qdrant_collection_name"),
    )
    qdrant_api_key: str | None = Field(default=None, validation_alias=_env("qdrant_api_key"))
    qdrant_timeout_seconds: float = 30.0

    # Hugging Face hosted inference, shared by embeddings and generation
    huggingface_api_key: str | None = Field(default=None, validation_alias=_env("huggingface_api_key"))

    embedding_provider: Literal["hash", "local", "inference"] = "hash"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dim: int = 384

    generator_provider: Literal["template", "inference"] = "template"
    generator_model: str = "mistralai/Mistral-7B-Instruct-v0.2"
    generator_max_tokens: int = 512
    generator_temperature: float = 0.3

    # Retrieval sizes
    vector_limit: int = Field(default=20, ge=1)
    context_limit: int = Field(default=10, ge=1)

    # Temporal hybrid search
    temporal_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    year_tolerance: int = Field(default=2, ge=0)
    temporal_filtering: bool = True
    temporal_weighting: bool = True
    temporal_fallback_to_unfiltered: bool = True

    # Source links: PDFs are served from <pdf_base_path>/<year>/<filename>
    pdf_base_path: str = "/datas"
    expose_prompts: bool = True

    # CORS
    cors_allow_origins: tuple[str, ...] = ()  # e.g., ("*") to allow all
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header
    rate_limit_requests: int = 60  # per window per client
    rate_limit_window_seconds: int = 60

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    def temporal_config(self) -> TemporalSearchConfig:
        return TemporalSearchConfig(
            temporal_weight=self.temporal_weight,
            year_tolerance=self.year_tolerance,
            enable_filtering=self.temporal_filtering,
            enable_weighting=self.temporal_weighting,
            fallback_to_unfiltered=self.temporal_fallback_to_unfiltered,
        )

    def missing_credentials(self) -> list[str]:
        """Names of the environment variables the selected providers still need."""

        missing: list[str] = []
        uses_inference = self.embedding_provider == "inference" or self.generator_provider == "inference"
        if uses_inference and not self.huggingface_api_key:
            missing.append("HUGGINGFACE_API_KEY")
        if self.vector_backend == "qdrant" and not self.qdrant_url:
            missing.append("QDRANT_URL")
        return missing

    def require_credentials(self) -> None:
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(f"Configuration manquante: {', '.join(missing)}")


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
