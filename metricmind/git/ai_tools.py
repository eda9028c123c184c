"""Detect AI-assistant mentions in commit message bodies."""

from __future__ import annotations

import re
from typing import List, Optional

_AI_TOOLS_PATTERN = re.compile(r"\*{0,2}\s*AI\s+tools?\s*:\s*([^\n*]+)", re.IGNORECASE)
_SPLIT_PATTERN = re.compile(r"\s+and\s+|\s*&\s*|\s*,\s*", re.IGNORECASE)

# Checked in order; the first matching rule wins.
_NORMALIZATION_RULES: tuple[tuple[str, str, bool], ...] = (
    # (needle, canonical name, exact match required)
    ("CLAUDE CODE", "CLAUDE CODE", False),
    ("CLAUDE", "CLAUDE", True),
    ("CURSOR", "CURSOR", False),
    ("COPILOT", "GITHUB COPILOT", False),
    ("CHATGPT", "CHATGPT", False),
    ("CHAT GPT", "CHATGPT", False),
    ("CODEIUM", "CODEIUM", False),
    ("TABNINE", "TABNINE", False),
)


def extract_ai_tools(body: str | None) -> Optional[str]:
    """Return the normalized, comma-joined tool list declared in ``body``.

    ``"**AI tools: Claude Code and GitHub Copilot**"`` becomes
    ``"CLAUDE CODE, GITHUB COPILOT"``. Bodies without an ``AI tool(s):`` marker
    yield ``None``.
    """
    if not body or not body.strip():
        return None

    match = _AI_TOOLS_PATTERN.search(body)
    if match is None:
        return None

    tools: List[str] = []
    for token in _SPLIT_PATTERN.split(match.group(1).strip()):
        token = token.strip()
        if not token:
            continue
        normalized = normalize_tool(token)
        if normalized not in tools:
            tools.append(normalized)

    return ", ".join(tools) if tools else None


def normalize_tool(tool: str) -> str:
    upper = " ".join(tool.split()).upper()
    for needle, canonical, exact in _NORMALIZATION_RULES:
        if exact and upper == needle:
            return canonical
        if not exact and needle in upper:
            return canonical
    return upper


__all__ = ["extract_ai_tools", "normalize_tool"]
