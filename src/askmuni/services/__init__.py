"""Service layer orchestrations for askmuni."""

from .generation import GenerationBackend, GenerationConfig, HuggingFaceChatGenerator, TemplateGenerator
from .query import PromptBuilder, PromptBuilderConfig, QueryService, build_sources

__all__ = [
    "GenerationBackend",
    "GenerationConfig",
    "HuggingFaceChatGenerator",
    "TemplateGenerator",
    "PromptBuilder",
    "PromptBuilderConfig",
    "QueryService",
    "build_sources",
]
