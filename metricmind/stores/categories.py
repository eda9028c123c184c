"""Approved-category vocabulary access."""

from __future__ import annotations

from typing import Iterable, List, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .schema import CategoryRow

SEED_DESCRIPTION = "Extracted from existing commits"


class CategoryStore:
    """Reads and grows the category vocabulary within one session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def names(self) -> List[str]:
        return list(self._session.scalars(select(CategoryRow.name).order_by(CategoryRow.name)))

    def exists(self, name: str) -> bool:
        return self._session.scalar(select(CategoryRow.id).where(CategoryRow.name == name)) is not None

    def create(self, name: str, description: str | None = None, *, usage_count: int = 0) -> bool:
        """Insert ``name``; returns ``False`` when it already exists (including a concurrent insert)."""
        if self.exists(name):
            return False
        try:
            with self._session.begin_nested():
                self._session.add(
                    CategoryRow(name=name, description=description, usage_count=usage_count)
                )
                self._session.flush()
        except IntegrityError:
            if self.exists(name):
                return False
            raise
        return True

    def increment_usage(self, name: str) -> None:
        self._session.execute(
            update(CategoryRow)
            .where(CategoryRow.name == name)
            .values(usage_count=CategoryRow.usage_count + 1)
        )

    def usage_count(self, name: str) -> int:
        return self._session.scalar(select(CategoryRow.usage_count).where(CategoryRow.name == name)) or 0

    def seed(self, counts: Iterable[Tuple[str, int]]) -> int:
        """Create one entry per ``(name, count)`` pair not yet in the vocabulary."""
        created = 0
        for name, count in counts:
            if self.create(name, SEED_DESCRIPTION, usage_count=count):
                created += 1
        return created


__all__ = ["CategoryStore", "SEED_DESCRIPTION"]
