"""Relational storage for repositories, commits and the category vocabulary."""

from .categories import CategoryStore
from .commits import CategoryCandidate, CommitStore, InsertOutcome, WeightCandidate
from .database import Database
from .repositories import RepositoryStore
from .schema import Base, CategoryRow, CommitRow, RepositoryRow

__all__ = [
    "Base",
    "CategoryCandidate",
    "CategoryRow",
    "CategoryStore",
    "CommitRow",
    "CommitStore",
    "Database",
    "InsertOutcome",
    "RepositoryRow",
    "RepositoryStore",
    "WeightCandidate",
]
