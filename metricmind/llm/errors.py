"""Closed set of failure kinds for LLM categorization."""

from __future__ import annotations

import enum
from typing import Any, Dict, Optional


class LLMErrorKind(str, enum.Enum):
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    PARSE = "parse"

    @property
    def retryable(self) -> bool:
        return self in (LLMErrorKind.TIMEOUT, LLMErrorKind.TRANSPORT)


class LLMError(RuntimeError):
    """A categorization failure tagged with its kind and structured context.

    Callers branch on :attr:`kind` rather than on exception subclasses.
    """

    def __init__(
        self,
        kind: LLMErrorKind,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


__all__ = ["LLMError", "LLMErrorKind"]
