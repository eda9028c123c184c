"""Batch AI categorization of stored commits."""

from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..context import RunContext
from ..logging import get_logger
from ..models import AICategorizationStats
from ..stores import CategoryCandidate, CategoryStore, CommitStore
from .engine import CategorizationEngine, CategorizationResult, CommitPrompt, engine_from_config
from .errors import LLMError, LLMErrorKind

SETTLED_CONFIDENCE = 80
STORAGE_ERROR = "storage"
UNEXPECTED_ERROR = "unexpected"


class AICategorizer:
    """Asks an LLM for a category for every unsettled commit in scope.

    A commit is settled when it already carries a category with an AI
    confidence of at least 80. Per-commit failures are counted by kind and the
    run continues; a CONFIGURATION failure aborts the run.
    """

    def __init__(
        self,
        context: RunContext,
        engine: Optional[CategorizationEngine] = None,
        *,
        repo_name: Optional[str] = None,
        batch_size: Optional[int] = None,
        only_uncategorized: bool = False,
    ) -> None:
        self.context = context
        self.engine = engine or engine_from_config(context.config.ai)
        self.repo_name = repo_name
        self.batch_size = batch_size or context.config.ai.batch_size
        if self.batch_size <= 0:
            raise LLMError(
                LLMErrorKind.CONFIGURATION, f"Batch size must be positive (got: {self.batch_size})"
            )
        self.only_uncategorized = only_uncategorized
        self.stats = AICategorizationStats(provider=self.engine.provider, dry_run=context.dry_run)
        self.logger = get_logger("llm.categorizer")

    def categorize(self) -> AICategorizationStats:
        scope = f"repository: {self.repo_name}" if self.repo_name else "all repositories"
        self.logger.info("Starting AI categorization for %s using %s", scope, self.stats.provider)
        if self.context.dry_run:
            self.logger.info("DRY RUN MODE - no changes will be saved")

        with self.context.database.transaction() as session:
            vocabulary = CategoryStore(session).names()
            commits = CommitStore(session).category_candidates(
                self.repo_name, only_uncategorized=self.only_uncategorized
            )
        self.stats.total = len(commits)
        self.logger.info("Found %d existing categories", len(vocabulary))
        self.logger.info("Found %d commits to categorize", len(commits))

        total_batches = (len(commits) + self.batch_size - 1) // self.batch_size
        for index, start in enumerate(range(0, len(commits), self.batch_size), start=1):
            batch = commits[start : start + self.batch_size]
            self.logger.info("Processing batch %d/%d (%d commits)", index, total_batches, len(batch))
            self._process_batch(batch, vocabulary)

        self.logger.info(
            "AI categorization complete: %d categorized, %d errors, %d new categories",
            self.stats.categorized,
            self.stats.errors,
            self.stats.new_categories,
        )
        return self.stats

    def _process_batch(self, batch: Sequence[CategoryCandidate], vocabulary: List[str]) -> None:
        for commit in batch:
            self.stats.processed += 1
            if (
                commit.category is not None
                and commit.ai_confidence is not None
                and commit.ai_confidence >= SETTLED_CONFIDENCE
            ):
                self.logger.debug(
                    "Skipping %s (already categorized with confidence %d)",
                    commit.hash,
                    commit.ai_confidence,
                )
                self.stats.skipped += 1
                continue

            try:
                result = self.engine.categorize(CommitPrompt(hash=commit.hash, subject=commit.subject), vocabulary)
                self.logger.info("%s: %s (%d%%)", commit.hash[:8], result.category, result.confidence)
                self._apply(commit, result, vocabulary)
            except LLMError as exc:
                if exc.kind is LLMErrorKind.CONFIGURATION:
                    raise
                self.logger.error("LLM error for %s: %s", commit.hash, exc)
                self.stats.record_error(exc.kind.value)
            except SQLAlchemyError as exc:
                self.logger.error("Storage error for %s: %s", commit.hash, exc)
                self.stats.record_error(STORAGE_ERROR)
            except Exception as exc:
                self.logger.exception("Unexpected error for %s: %s", commit.hash, exc)
                self.stats.record_error(UNEXPECTED_ERROR)

    def _apply(self, commit: CategoryCandidate, result: CategorizationResult, vocabulary: List[str]) -> None:
        is_new = result.category not in vocabulary
        if self.context.dry_run:
            if is_new:
                vocabulary.append(result.category)
                self.stats.new_categories += 1
            self.stats.categorized += 1
            return

        created = False
        with self.context.database.transaction() as session:
            categories = CategoryStore(session)
            if is_new:
                created = categories.create(result.category, result.reason)
            CommitStore(session).set_category(commit.id, result.category, ai_confidence=result.confidence)
            categories.increment_usage(result.category)

        # Counters and the vocabulary only move once the commit's transaction has committed.
        if is_new:
            vocabulary.append(result.category)
        if created:
            self.stats.new_categories += 1
            self.logger.info("Created new category: %s", result.category)
        self.stats.categorized += 1


__all__ = ["AICategorizer", "SETTLED_CONFIDENCE", "STORAGE_ERROR", "UNEXPECTED_ERROR"]
