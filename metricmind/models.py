"""Core data models shared across metricmind components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ArtifactModel(BaseModel):
    """Base for the extraction artifact; serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CommitFile(_ArtifactModel):
    """Line counts for one non-binary file touched by a commit."""

    filename: str
    added: int = Field(ge=0)
    deleted: int = Field(ge=0)


class CommitRecord(_ArtifactModel):
    """A parsed commit as carried by the extraction artifact."""

    hash: str
    date: str
    author_name: str
    author_email: str
    subject: str
    body: Optional[str] = None
    lines_added: int = Field(default=0, ge=0)
    lines_deleted: int = Field(default=0, ge=0)
    files_changed: int = Field(default=0, ge=0)
    weight: int = Field(default=100, ge=0, le=100)
    ai_tools: Optional[str] = None
    category: Optional[str] = None
    ai_confidence: Optional[int] = Field(default=None, ge=0, le=100)
    files: List[CommitFile] = Field(default_factory=list)


class DateRange(_ArtifactModel):
    from_: str = Field(alias="from")
    to: str


class ExtractionSummary(_ArtifactModel):
    total_commits: int
    total_lines_added: int
    total_lines_deleted: int
    total_files_changed: int
    unique_authors: int

    @classmethod
    def from_commits(cls, commits: List[CommitRecord]) -> "ExtractionSummary":
        return cls(
            total_commits=len(commits),
            total_lines_added=sum(commit.lines_added for commit in commits),
            total_lines_deleted=sum(commit.lines_deleted for commit in commits),
            total_files_changed=sum(commit.files_changed for commit in commits),
            unique_authors=len({commit.author_email for commit in commits}),
        )


class ExtractionResult(_ArtifactModel):
    """Self-describing output of one extraction, consumed by the loader."""

    repository: str
    repository_path: str
    extraction_date: str
    date_range: DateRange
    summary: ExtractionSummary
    commits: List[CommitRecord] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, payload: str) -> "ExtractionResult":
        return cls.model_validate_json(payload)


# ----------------------------------------------------------------------
# Per-stage run statistics


@dataclass
class LoadStats:
    repos_created: int = 0
    repos_updated: int = 0
    commits_inserted: int = 0
    commits_skipped: int = 0
    errors: int = 0

    def summary_lines(self) -> List[str]:
        return [
            "=== Data Loading Summary ===",
            f"Repositories created: {self.repos_created}",
            f"Repositories updated: {self.repos_updated}",
            f"Commits inserted: {self.commits_inserted}",
            f"Commits skipped (duplicates): {self.commits_skipped}",
            f"Errors: {self.errors}",
        ]


@dataclass
class CategorizationStats:
    total: int = 0
    already_categorized: int = 0
    categorized: int = 0
    dry_run: bool = False

    @property
    def coverage(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.already_categorized + self.categorized) / self.total * 100

    def summary_lines(self) -> List[str]:
        lines = [
            "=== Categorization Summary ===",
            f"Total commits: {self.total}",
            f"Already categorized: {self.already_categorized}",
            f"Newly categorized: {self.categorized}",
            f"Coverage: {self.coverage:.1f}%",
        ]
        if self.dry_run:
            lines.append("(DRY RUN - no changes saved)")
        return lines


@dataclass
class AICategorizationStats:
    provider: str = ""
    total: int = 0
    processed: int = 0
    categorized: int = 0
    skipped: int = 0
    errors: int = 0
    new_categories: int = 0
    errors_by_kind: Dict[str, int] = field(default_factory=dict)
    dry_run: bool = False

    def record_error(self, kind: str) -> None:
        self.errors += 1
        self.errors_by_kind[kind] = self.errors_by_kind.get(kind, 0) + 1

    def summary_lines(self) -> List[str]:
        lines = [
            "=== AI Categorization Summary ===",
            f"Provider: {self.provider}",
            f"Total commits: {self.total}",
            f"Processed: {self.processed}",
            f"Categorized: {self.categorized}",
            f"Skipped: {self.skipped}",
            f"Errors: {self.errors}",
            f"New categories created: {self.new_categories}",
        ]
        for kind, count in sorted(self.errors_by_kind.items()):
            lines.append(f"  {kind}: {count}")
        if self.dry_run:
            lines.append("(DRY RUN - no changes saved)")
        return lines


@dataclass
class WeightStats:
    total: int = 0
    reverts_found: int = 0
    unreverts_found: int = 0
    commits_zeroed: int = 0
    dry_run: bool = False

    def summary_lines(self) -> List[str]:
        lines = [
            "=== Weight Calculation Summary ===",
            f"Total commits: {self.total}",
            f"Reverts found: {self.reverts_found}",
            f"Unreverts found (left untouched): {self.unreverts_found}",
            f"Commits zeroed (weight=0): {self.commits_zeroed}",
        ]
        if self.dry_run:
            lines.append("(DRY RUN - no changes saved)")
        return lines


__all__ = [
    "AICategorizationStats",
    "CategorizationStats",
    "CommitFile",
    "CommitRecord",
    "DateRange",
    "ExtractionResult",
    "ExtractionSummary",
    "LoadStats",
    "WeightStats",
]
