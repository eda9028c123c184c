"""Revert-aware commit weighting.

A revert commit and every commit it references by change-request identifier
(``!123`` for GitLab merge requests, ``#123`` for GitHub pull requests) are
given weight 0 so weighted aggregates ignore reverted churn. The pass only
ever zeroes weights; unrevert commits are counted but never modified, and an
already-zero commit is left alone, which makes repeated runs converge.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Pattern

from ..context import RunContext
from ..logging import get_logger
from ..models import WeightStats
from ..stores import CommitStore, WeightCandidate

_IDENTIFIER_PATTERNS = (re.compile(r"!\d+"), re.compile(r"#\d+"))


def is_unrevert(subject: str) -> bool:
    return "unrevert" in subject.lower()


def is_revert(subject: str) -> bool:
    lowered = subject.lower()
    return "revert" in lowered and "unrevert" not in lowered


def extract_identifiers(subject: str) -> List[str]:
    """Return the distinct ``!N`` and ``#N`` identifiers found in ``subject``."""
    identifiers: List[str] = []
    for pattern in _IDENTIFIER_PATTERNS:
        for match in pattern.finditer(subject):
            if match.group(0) not in identifiers:
                identifiers.append(match.group(0))
    return identifiers


def _reference_pattern(identifiers: Iterable[str]) -> Pattern[str]:
    # "!123" must not match inside "!1234".
    alternatives = "|".join(re.escape(identifier) for identifier in identifiers)
    return re.compile(rf"(?:{alternatives})(?!\d)")


class WeightCalculator:
    """Zeroes the weight of revert commits and the commits they revert."""

    def __init__(self, context: RunContext, repo_name: Optional[str] = None) -> None:
        self.context = context
        self.repo_name = repo_name
        self.stats = WeightStats(dry_run=context.dry_run)
        self.logger = get_logger("processors.weights")

    def calculate(self) -> WeightStats:
        scope = f"repository: {self.repo_name}" if self.repo_name else "all repositories"
        self.logger.info("Starting weight calculation for %s", scope)
        if self.context.dry_run:
            self.logger.info("DRY RUN MODE - no changes will be saved")

        with self.context.database.transaction() as session:
            store = CommitStore(session)
            commits = store.weight_candidates(self.repo_name)
            self.stats.total = len(commits)
            by_repository: Dict[int, List[WeightCandidate]] = defaultdict(list)
            for commit in commits:
                by_repository[commit.repository_id].append(commit)

            for commit in commits:
                if is_unrevert(commit.subject):
                    self.stats.unreverts_found += 1
                    self.logger.debug("Unrevert left untouched: %s - %s", commit.hash, commit.subject)
                    continue
                if not is_revert(commit.subject):
                    continue
                self.stats.reverts_found += 1
                self.logger.debug("Revert: %s - %s", commit.hash, commit.subject)
                self._zero(store, commit)

                identifiers = extract_identifiers(commit.subject)
                if not identifiers:
                    continue
                references = _reference_pattern(identifiers)
                for original in by_repository[commit.repository_id]:
                    if original.id == commit.id or is_unrevert(original.subject):
                        continue
                    if references.search(original.subject) and self._zero(store, original):
                        self.logger.debug("  -> zeroed original: %s - %s", original.hash, original.subject)

        self.logger.info(
            "Weight calculation complete: %d reverts, %d unreverts, %d zeroed",
            self.stats.reverts_found,
            self.stats.unreverts_found,
            self.stats.commits_zeroed,
        )
        return self.stats

    def _zero(self, store: CommitStore, commit: WeightCandidate) -> bool:
        if commit.weight == 0:
            return False
        if not self.context.dry_run:
            store.set_weight(commit.id, 0)
        commit.weight = 0
        self.stats.commits_zeroed += 1
        return True


__all__ = ["WeightCalculator", "extract_identifiers", "is_revert", "is_unrevert"]
