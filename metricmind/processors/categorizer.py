"""Deterministic business-category extraction from commit subjects."""

from __future__ import annotations

import re
from typing import Optional

from ..context import RunContext
from ..logging import get_logger
from ..models import CategorizationStats
from ..stores import CommitStore

EXCLUDED_WORDS = frozenset(
    {
        "MERGE",
        "FIX",
        "ADD",
        "UPDATE",
        "REMOVE",
        "DELETE",
        "FEAT",
        "CHORE",
        "DOCS",
        "STYLE",
        "REFACTOR",
        "TEST",
        "PERF",
    }
)

_PIPE_DELIMITER = " | "
_BRACKET_PREFIX = re.compile(r"^\[([^\]]+)\]")
_WHITESPACE = re.compile(r"\s+")


def extract_category(subject: Optional[str]) -> Optional[str]:
    """Return the category encoded in ``subject`` or ``None``.

    Rules are tried in order: ``"BILLING | text"``, ``"[CS] text"`` and finally an
    upper-case first word such as ``"INFRA text"`` that is not a generic verb.
    """
    if subject is None or not subject.strip():
        return None

    if _PIPE_DELIMITER in subject:
        category = subject.split(_PIPE_DELIMITER, 1)[0].strip().upper()
        if category:
            return category

    match = _BRACKET_PREFIX.match(subject)
    if match:
        category = match.group(1).strip().upper()
        if category:
            return category

    first_word = _WHITESPACE.split(subject.strip(), 1)[0]
    if len(first_word) >= 2 and first_word == first_word.upper() and first_word not in EXCLUDED_WORDS:
        return first_word
    return None


class CommitCategorizer:
    """Assigns pattern-derived categories to commits that have none."""

    def __init__(self, context: RunContext, repo_name: Optional[str] = None) -> None:
        self.context = context
        self.repo_name = repo_name
        self.stats = CategorizationStats(dry_run=context.dry_run)
        self.logger = get_logger("processors.categorizer")

    def categorize(self) -> CategorizationStats:
        scope = f"repository: {self.repo_name}" if self.repo_name else "all repositories"
        self.logger.info("Starting commit categorization for %s", scope)
        if self.context.dry_run:
            self.logger.info("DRY RUN MODE - no changes will be saved")

        with self.context.database.transaction() as session:
            commits = CommitStore(session)
            candidates = commits.category_candidates(self.repo_name)
            self.stats.total = len(candidates)
            for candidate in candidates:
                if candidate.category is not None:
                    self.stats.already_categorized += 1
                    continue
                category = extract_category(candidate.subject)
                if category is None:
                    continue
                if not self.context.dry_run:
                    commits.set_category(candidate.id, category)
                self.stats.categorized += 1
                self.logger.debug("Commit %s: %r -> %s", candidate.hash, candidate.subject, category)

        self.logger.info(
            "Categorization complete: %d newly categorized, %d already categorized, coverage: %.1f%%",
            self.stats.categorized,
            self.stats.already_categorized,
            self.stats.coverage,
        )
        return self.stats


__all__ = ["CommitCategorizer", "EXCLUDED_WORDS", "extract_category"]
