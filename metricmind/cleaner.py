"""Remove a repository's stored commits, with an explicit confirmation flag."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .context import RunContext
from .logging import get_logger
from .stores import CommitStore, RepositoryStore


@dataclass
class CleanupReport:
    """What a cleanup would delete and, after :meth:`RepositoryCleaner.clean`, what it did."""

    repository: str
    url: Optional[str]
    commit_count: int
    delete_repository: bool
    commits_deleted: int = 0
    repository_deleted: bool = False
    dry_run: bool = False

    def summary_lines(self) -> List[str]:
        lines = [
            "=== Deletion Summary ===",
            f"Repository: {self.repository}",
            f"URL: {self.url or 'N/A'}",
            f"Commits to delete: {self.commit_count}",
        ]
        if self.delete_repository:
            lines.append("Repository record: WILL BE DELETED")
        else:
            lines.append("Repository record: will be kept (use --delete-repo to remove)")
        lines.append(f"Commits deleted: {self.commits_deleted}")
        lines.append(f"Repository deleted: {'yes' if self.repository_deleted else 'no'}")
        if self.dry_run:
            lines.append("(DRY RUN - no changes saved)")
        return lines


class RepositoryCleaner:
    """Deletes one repository's commits (and optionally the repository row)."""

    def __init__(self, context: RunContext, repo_name: str, *, delete_repository: bool = False) -> None:
        self.context = context
        self.repo_name = repo_name
        self.delete_repository = delete_repository
        self.logger = get_logger("cleaner")

    def plan(self) -> CleanupReport:
        """Return the would-delete report; raises :class:`LookupError` for an unknown repository."""
        with self.context.database.transaction() as session:
            repositories = RepositoryStore(session)
            row = repositories.find_by_name(self.repo_name)
            if row is None:
                available = repositories.list_names()
                listing = ", ".join(available) if available else "(none)"
                raise LookupError(f"Repository not found: {self.repo_name}. Available repositories: {listing}")
            return CleanupReport(
                repository=row.name,
                url=row.url,
                commit_count=repositories.count_commits(row.id),
                delete_repository=self.delete_repository,
                dry_run=self.context.dry_run,
            )

    def clean(self, *, confirmed: bool = False) -> CleanupReport:
        """Delete the planned data when ``confirmed`` and not in dry-run mode."""
        self.logger.info("Starting cleanup for repository: %s", self.repo_name)
        report = self.plan()
        if self.context.dry_run:
            self.logger.info("DRY RUN MODE - no changes will be saved")
            return report
        if not confirmed:
            self.logger.info("Cleanup not confirmed; nothing deleted")
            return report

        with self.context.database.transaction() as session:
            repositories = RepositoryStore(session)
            row = repositories.find_by_name(self.repo_name)
            if row is None:
                return report
            report.commits_deleted = CommitStore(session).delete_for_repository(row.id)
            self.logger.info("Deleted %d commits", report.commits_deleted)
            if self.delete_repository:
                report.repository_deleted = repositories.delete(row.id)
                self.logger.info("Deleted repository record")

        self.context.database.refresh_views()
        return report


__all__ = ["CleanupReport", "RepositoryCleaner"]
