"""Commit-table access: idempotent inserts and the narrow reads/updates the processors need."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import CommitRecord
from .schema import CommitRow, RepositoryRow


class InsertOutcome(enum.Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"


@dataclass
class WeightCandidate:
    id: int
    repository_id: int
    hash: str
    subject: str
    weight: int


@dataclass
class CategoryCandidate:
    id: int
    repository_id: int
    hash: str
    subject: str
    category: Optional[str]
    ai_confidence: Optional[int]


class CommitStore:
    """Reads and writes commit rows within one session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def exists(self, repository_id: int, commit_hash: str) -> bool:
        found = self._session.scalar(
            select(CommitRow.id).where(
                CommitRow.repository_id == repository_id,
                CommitRow.hash == commit_hash,
            )
        )
        return found is not None

    def insert(
        self, repository_id: int, record: CommitRecord, *, commit_date: datetime
    ) -> InsertOutcome:
        """Insert ``record`` unless (repository, hash) is already stored.

        The insert runs inside a SAVEPOINT so a failure leaves the enclosing
        transaction usable. A uniqueness violation from a concurrent writer is
        reported as ``DUPLICATE``; any other database error propagates.
        """
        if self.exists(repository_id, record.hash):
            return InsertOutcome.DUPLICATE
        try:
            with self._session.begin_nested():
                self._session.add(
                    CommitRow(
                        repository_id=repository_id,
                        hash=record.hash,
                        commit_date=commit_date,
                        author_name=record.author_name,
                        author_email=record.author_email,
                        subject=record.subject,
                        body=record.body,
                        lines_added=record.lines_added,
                        lines_deleted=record.lines_deleted,
                        files_changed=record.files_changed,
                        weight=record.weight,
                        ai_tools=record.ai_tools,
                        category=record.category,
                        ai_confidence=record.ai_confidence,
                    )
                )
                self._session.flush()
        except IntegrityError:
            if self.exists(repository_id, record.hash):
                return InsertOutcome.DUPLICATE
            raise
        return InsertOutcome.INSERTED

    def weight_candidates(self, repo_name: str | None = None) -> List[WeightCandidate]:
        query = select(
            CommitRow.id,
            CommitRow.repository_id,
            CommitRow.hash,
            CommitRow.subject,
            CommitRow.weight,
        )
        query = _scope(query, repo_name).order_by(CommitRow.repository_id, CommitRow.commit_date, CommitRow.id)
        return [WeightCandidate(*row) for row in self._session.execute(query)]

    def category_candidates(
        self, repo_name: str | None = None, *, only_uncategorized: bool = False
    ) -> List[CategoryCandidate]:
        query = select(
            CommitRow.id,
            CommitRow.repository_id,
            CommitRow.hash,
            CommitRow.subject,
            CommitRow.category,
            CommitRow.ai_confidence,
        )
        query = _scope(query, repo_name)
        if only_uncategorized:
            query = query.where(CommitRow.category.is_(None))
        query = query.order_by(CommitRow.repository_id, CommitRow.commit_date, CommitRow.id)
        return [CategoryCandidate(*row) for row in self._session.execute(query)]

    def set_weight(self, commit_id: int, weight: int) -> None:
        self._session.execute(update(CommitRow).where(CommitRow.id == commit_id).values(weight=weight))

    def set_category(
        self, commit_id: int, category: str, *, ai_confidence: int | None = None
    ) -> None:
        self._session.execute(
            update(CommitRow)
            .where(CommitRow.id == commit_id)
            .values(category=category, ai_confidence=ai_confidence)
        )

    def category_counts(self) -> List[Tuple[str, int]]:
        """Distinct non-null categories with the number of commits carrying each."""
        query = (
            select(CommitRow.category, func.count())
            .where(CommitRow.category.is_not(None))
            .group_by(CommitRow.category)
            .order_by(CommitRow.category)
        )
        return [(name, count) for name, count in self._session.execute(query)]

    def delete_for_repository(self, repository_id: int) -> int:
        result = self._session.execute(delete(CommitRow).where(CommitRow.repository_id == repository_id))
        return result.rowcount or 0


def _scope(query, repo_name: str | None):  # type: ignore[no-untyped-def]
    if repo_name is None:
        return query
    return query.join(RepositoryRow, RepositoryRow.id == CommitRow.repository_id).where(
        RepositoryRow.name == repo_name
    )


__all__ = [
    "CategoryCandidate",
    "CommitStore",
    "InsertOutcome",
    "WeightCandidate",
]
