"""Prompt, retry and parse logic shared by every LLM provider."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from ..config import AIConfig
from ..logging import get_logger
from ..processors.validator import rejection_reason
from .errors import LLMError, LLMErrorKind
from .providers import LLMTransport, create_transport

DEFAULT_CONFIDENCE = 50
DEFAULT_REASON = "No reason provided"
PROMPT_TEMPLATE = "categorize.j2"

_CATEGORY_PATTERN = re.compile(r"CATEGORY:[*\s]*(.+)", re.IGNORECASE)
_CONFIDENCE_PATTERN = re.compile(r"CONFIDENCE:[*\s]*(\d+)", re.IGNORECASE)
_REASON_PATTERN = re.compile(r"REASON:[*\s]*(.+)", re.IGNORECASE)
_DECORATION = "\"'`* "


@dataclass
class CommitPrompt:
    """The commit facts a model sees."""

    hash: str
    subject: str
    files: List[str] = field(default_factory=list)


@dataclass
class CategorizationResult:
    category: str
    confidence: int
    reason: str


def _create_env() -> Environment:
    templates_dir = Path(__file__).with_name("templates")
    return Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


_ENV = _create_env()


def build_prompt(commit: CommitPrompt, categories: Sequence[str]) -> str:
    """Render the categorization prompt for ``commit`` given the current vocabulary."""
    template = _ENV.get_template(PROMPT_TEMPLATE)
    return template.render(
        subject=commit.subject,
        hash=commit.hash,
        files=list(commit.files),
        categories=list(categories),
    ).strip()


def parse_response(response: str) -> CategorizationResult:
    """Extract category, confidence and reason from a free-text reply.

    A missing ``CATEGORY:`` line is a PARSE error. Confidence defaults to 50 and
    is clamped to 0-100; acceptance of the category itself is left to the
    validator.
    """
    category_match = _CATEGORY_PATTERN.search(response)
    category = category_match.group(1).strip().strip(_DECORATION).upper() if category_match else ""
    if not category:
        raise LLMError(
            LLMErrorKind.PARSE,
            "Could not extract category from response",
            {"response": response[:200]},
        )

    confidence_match = _CONFIDENCE_PATTERN.search(response)
    confidence = int(confidence_match.group(1)) if confidence_match else DEFAULT_CONFIDENCE
    confidence = max(0, min(100, confidence))

    reason_match = _REASON_PATTERN.search(response)
    reason = reason_match.group(1).strip().strip(_DECORATION) if reason_match else ""

    return CategorizationResult(category=category, confidence=confidence, reason=reason or DEFAULT_REASON)


class CategorizationEngine:
    """Categorizes one commit per call through a provider transport."""

    def __init__(
        self,
        transport: LLMTransport,
        *,
        timeout: float = 30.0,
        retries: int = 3,
        prevent_numeric: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if timeout <= 0:
            raise LLMError(LLMErrorKind.CONFIGURATION, f"Timeout must be positive (got: {timeout})")
        if retries < 0:
            raise LLMError(LLMErrorKind.CONFIGURATION, f"Retries must be non-negative (got: {retries})")
        self.transport = transport
        self.timeout = timeout
        self.attempts = max(1, retries)
        self.prevent_numeric = prevent_numeric
        self._sleep = sleep
        self.logger = get_logger("llm.engine")

    @property
    def provider(self) -> str:
        return getattr(self.transport, "name", type(self.transport).__name__)

    def categorize(self, commit: CommitPrompt, categories: Sequence[str]) -> CategorizationResult:
        prompt = build_prompt(commit, categories)
        response = self._send_with_retry(prompt, commit.hash)
        self.logger.debug("Parsing response for %s: %s", commit.hash, response)
        result = parse_response(response)

        reason = rejection_reason(result.category, self.prevent_numeric)
        if reason is not None:
            raise LLMError(
                LLMErrorKind.VALIDATION,
                f"Invalid category '{result.category}': {reason}",
                {"hash": commit.hash, "category": result.category},
            )
        return result

    def _send_with_retry(self, prompt: str, commit_hash: str) -> str:
        attempt = 0
        while True:
            attempt += 1
            try:
                return self.transport.send(prompt, timeout=self.timeout)
            except LLMError as exc:
                if not exc.kind.retryable:
                    raise
                if attempt >= self.attempts:
                    raise LLMError(
                        exc.kind,
                        f"LLM request failed after {attempt} attempt(s): {exc.message}",
                        {**exc.context, "hash": commit_hash, "attempts": attempt},
                    ) from exc
                delay = 2**attempt
                self.logger.warning(
                    "Attempt %d/%d failed for %s: %s. Retrying in %ds...",
                    attempt,
                    self.attempts,
                    commit_hash,
                    exc.message,
                    delay,
                )
                self._sleep(delay)


def engine_from_config(ai: AIConfig, transport: Optional[LLMTransport] = None) -> CategorizationEngine:
    """Build an engine from the AI settings, creating the configured transport unless one is given."""
    return CategorizationEngine(
        transport or create_transport(ai),
        timeout=ai.timeout,
        retries=ai.retries,
        prevent_numeric=ai.prevent_numeric_categories,
    )


__all__ = [
    "CategorizationEngine",
    "CategorizationResult",
    "CommitPrompt",
    "build_prompt",
    "engine_from_config",
    "parse_response",
]
