"""HTTP transports for the supported LLM providers.

A transport only knows how to deliver one prompt and return the raw reply
text. Retries, prompt construction and response parsing live in
:class:`metricmind.llm.engine.CategorizationEngine`.
"""

from __future__ import annotations

import json
from http.client import HTTPException
from typing import Any, Dict, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..config import AIConfig, GeminiConfig, OllamaConfig, validate_ai_config
from ..logging import get_logger
from .errors import LLMError, LLMErrorKind

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
MAX_OUTPUT_TOKENS = 1024

_LOGGER = get_logger("llm.providers")


class LLMTransport(Protocol):
    """Sends a prompt to a provider and returns the reply text."""

    name: str

    def send(self, prompt: str, *, timeout: float) -> str:
        ...


class GeminiTransport:
    """Google Gemini ``generateContent`` REST endpoint."""

    name = "gemini"

    def __init__(self, config: GeminiConfig) -> None:
        if not config.api_key:
            raise LLMError(LLMErrorKind.CONFIGURATION, "Gemini API key is required")
        self.config = config

    @property
    def endpoint(self) -> str:
        return f"{GEMINI_BASE_URL}/{self.config.model}:generateContent?key={quote(self.config.api_key)}"

    def send(self, prompt: str, *, timeout: float) -> str:
        payload = {
            "contents": [{"parts": [{"text": prompt}], "role": "user"}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
            },
        }
        response = _post_json(self.endpoint, payload, timeout=timeout, provider=self.name)
        text = _gemini_text(response)
        if not text:
            raise LLMError(
                LLMErrorKind.TRANSPORT,
                "Gemini returned an empty response",
                {"provider": self.name, "model": self.config.model},
            )
        return text


class OllamaTransport:
    """Local Ollama ``/api/generate`` endpoint."""

    name = "ollama"

    def __init__(self, config: OllamaConfig) -> None:
        self.config = config

    @property
    def endpoint(self) -> str:
        return f"{self.config.url.rstrip('/')}/api/generate"

    def send(self, prompt: str, *, timeout: float) -> str:
        payload = {
            "model": self.config.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": MAX_OUTPUT_TOKENS,
            },
        }
        response = _post_json(self.endpoint, payload, timeout=timeout, provider=self.name)
        text = response.get("response")
        if not isinstance(text, str) or not text.strip():
            raise LLMError(
                LLMErrorKind.TRANSPORT,
                "Ollama returned an empty response",
                {"provider": self.name, "model": self.config.model},
            )
        return text.strip()


def create_transport(ai: AIConfig) -> LLMTransport:
    """Build the transport for ``ai.provider`` or raise a CONFIGURATION error."""
    problems = validate_ai_config(ai)
    if problems:
        raise LLMError(
            LLMErrorKind.CONFIGURATION,
            "Invalid AI configuration: " + "; ".join(problems),
            {"provider": ai.provider},
        )
    _LOGGER.info("Creating LLM transport for provider: %s", ai.provider)
    if ai.provider == "gemini" and ai.gemini is not None:
        return GeminiTransport(ai.gemini)
    if ai.provider == "ollama" and ai.ollama is not None:
        return OllamaTransport(ai.ollama)
    raise LLMError(
        LLMErrorKind.CONFIGURATION,
        f"No settings found for AI provider '{ai.provider}'",
        {"provider": ai.provider},
    )


def _post_json(url: str, payload: Dict[str, Any], *, timeout: float, provider: str) -> Dict[str, Any]:
    data = json.dumps(payload).encode("utf-8")
    request = Request(url, data=data, headers={"Content-Type": "application/json"}, method="POST")
    context = {"provider": provider, "timeout": timeout}

    try:
        with urlopen(request, timeout=timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
        message = detail.strip() or str(exc.reason)
        raise LLMError(
            LLMErrorKind.TRANSPORT,
            f"{provider} request failed with status {exc.code}: {message}",
            {**context, "status": exc.code},
        ) from exc
    except URLError as exc:
        if isinstance(exc.reason, TimeoutError):
            raise LLMError(
                LLMErrorKind.TIMEOUT, f"{provider} request timed out after {timeout} seconds", context
            ) from exc
        raise LLMError(LLMErrorKind.TRANSPORT, f"{provider} request failed: {exc.reason}", context) from exc
    except TimeoutError as exc:
        raise LLMError(
            LLMErrorKind.TIMEOUT, f"{provider} request timed out after {timeout} seconds", context
        ) from exc
    except OSError as exc:
        raise LLMError(LLMErrorKind.TRANSPORT, f"{provider} request failed: {exc}", context) from exc
    except HTTPException as exc:
        raise LLMError(
            LLMErrorKind.TRANSPORT, f"{provider} connection error: {type(exc).__name__}: {exc}", context
        ) from exc

    try:
        decoded = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise LLMError(LLMErrorKind.TRANSPORT, f"{provider} returned invalid JSON", context) from exc
    if not isinstance(decoded, dict):
        raise LLMError(LLMErrorKind.TRANSPORT, f"{provider} returned an unexpected payload", context)
    return decoded


def _gemini_text(payload: Dict[str, Any]) -> str:
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return ""
    text = parts[0].get("text")
    return text.strip() if isinstance(text, str) else ""


__all__ = [
    "GEMINI_BASE_URL",
    "GeminiTransport",
    "LLMTransport",
    "OllamaTransport",
    "create_transport",
]
