"""Merge extraction artifacts into storage idempotently."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.exc import DataError, IntegrityError

from .context import RunContext
from .git.extractor import read_artifact
from .logging import get_logger
from .models import CommitRecord, ExtractionResult, LoadStats
from .stores import CommitStore, InsertOutcome, RepositoryStore

BATCH_SIZE = 100
_PROGRESS_EVERY = 10

_GIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"
_NAIVE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LoadError(RuntimeError):
    """Raised when an artifact cannot be read."""


class DataLoader:
    """Loads one extraction artifact per call to :meth:`load`."""

    def __init__(self, context: RunContext, *, batch_size: int = BATCH_SIZE) -> None:
        self.context = context
        self.batch_size = batch_size
        self.stats = LoadStats()
        self.logger = get_logger("loader")

    def load_file(self, artifact_path: Path) -> LoadStats:
        """Read the artifact at ``artifact_path`` and load it."""
        self.logger.info("Loading data from %s", artifact_path)
        if not artifact_path.exists():
            raise LoadError(f"JSON file not found: {artifact_path}")
        try:
            artifact = read_artifact(artifact_path)
        except (OSError, ValidationError) as exc:
            raise LoadError(f"Could not read extraction artifact {artifact_path}: {exc}") from exc
        return self.load(artifact)

    def load(self, artifact: ExtractionResult) -> LoadStats:
        """Upsert the repository and insert unseen commits in a single transaction."""
        with self.context.database.transaction() as session:
            repositories = RepositoryStore(session)
            commits = CommitStore(session)
            repository_id = self._load_repository(repositories, artifact)
            self._load_commits(commits, repository_id, artifact.commits)

        self.context.database.refresh_views()
        self.logger.info(
            "Loading complete: %d commits inserted, %d skipped, %d errors",
            self.stats.commits_inserted,
            self.stats.commits_skipped,
            self.stats.errors,
        )
        return self.stats

    def _load_repository(self, repositories: RepositoryStore, artifact: ExtractionResult) -> int:
        extracted_at = parse_timestamp(artifact.extraction_date)
        row, created = repositories.upsert(
            artifact.repository, url=artifact.repository_path, extracted_at=extracted_at
        )
        if created:
            self.stats.repos_created += 1
            self.logger.info("Created repository: %s (ID: %d)", row.name, row.id)
        else:
            self.stats.repos_updated += 1
            self.logger.info("Updated repository: %s (ID: %d)", row.name, row.id)
        return row.id

    def _load_commits(
        self, commits: CommitStore, repository_id: int, records: Sequence[CommitRecord]
    ) -> None:
        self.logger.info("Loading %d commits in batches of %d", len(records), self.batch_size)
        for batch_index, start in enumerate(range(0, len(records), self.batch_size)):
            batch = records[start : start + self.batch_size]
            for record in batch:
                try:
                    outcome = commits.insert(
                        repository_id, record, commit_date=parse_timestamp(record.date)
                    )
                except (IntegrityError, DataError) as exc:
                    self.logger.error("Error inserting commit %s: %s", record.hash, exc)
                    self.stats.errors += 1
                    continue
                if outcome is InsertOutcome.INSERTED:
                    self.stats.commits_inserted += 1
                else:
                    self.stats.commits_skipped += 1
            if (batch_index + 1) % _PROGRESS_EVERY == 0:
                self.logger.info("Processed %d commits...", start + len(batch))


def parse_timestamp(value: str, *, now: Optional[datetime] = None) -> datetime:
    """Parse ISO-8601 (``Z`` allowed) or git's raw date; unparseable values become ``now``."""
    raw = value.strip()
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is None:
        for fmt in (_GIT_DATE_FORMAT, _NAIVE_DATE_FORMAT):
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        get_logger("loader").warning("Failed to parse timestamp: %s, using current time", value)
        return now or datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["BATCH_SIZE", "DataLoader", "LoadError", "parse_timestamp"]
