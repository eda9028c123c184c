"""Repository-table access."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .schema import CommitRow, RepositoryRow


class RepositoryStore:
    """Find, upsert and remove repository rows within one session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_name(self, name: str) -> Optional[RepositoryRow]:
        return self._session.scalars(
            select(RepositoryRow).where(RepositoryRow.name == name)
        ).one_or_none()

    def upsert(
        self, name: str, *, url: str | None, extracted_at: datetime
    ) -> Tuple[RepositoryRow, bool]:
        """Insert a new repository, or refresh only the extraction timestamp of an existing one.

        Returns the row and whether it was created.
        """
        existing = self.find_by_name(name)
        if existing is not None:
            existing.last_extracted_at = extracted_at
            existing.updated_at = datetime.now(timezone.utc)
            self._session.flush()
            return existing, False

        row = RepositoryRow(name=name, url=url, last_extracted_at=extracted_at)
        self._session.add(row)
        self._session.flush()
        return row, True

    def list_names(self) -> List[str]:
        return list(self._session.scalars(select(RepositoryRow.name).order_by(RepositoryRow.name)))

    def count_commits(self, repository_id: int) -> int:
        return self._session.scalar(
            select(func.count()).select_from(CommitRow).where(CommitRow.repository_id == repository_id)
        ) or 0

    def delete(self, repository_id: int) -> bool:
        result = self._session.execute(delete(RepositoryRow).where(RepositoryRow.id == repository_id))
        return bool(result.rowcount)


__all__ = ["RepositoryStore"]
