"""LLM-backed commit categorization."""

from .categorizer import AICategorizer
from .engine import (
    CategorizationEngine,
    CategorizationResult,
    CommitPrompt,
    build_prompt,
    engine_from_config,
    parse_response,
)
from .errors import LLMError, LLMErrorKind
from .providers import GeminiTransport, LLMTransport, OllamaTransport, create_transport

__all__ = [
    "AICategorizer",
    "CategorizationEngine",
    "CategorizationResult",
    "CommitPrompt",
    "GeminiTransport",
    "LLMError",
    "LLMErrorKind",
    "LLMTransport",
    "OllamaTransport",
    "build_prompt",
    "create_transport",
    "engine_from_config",
    "parse_response",
]
