"""End-to-end pipeline: extract, load, categorize and weight configured repositories."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .cleaner import CleanupReport, RepositoryCleaner
from .config import ConfigError, RepositoryEntry
from .context import RunContext
from .git import GitExtractor
from .llm import AICategorizer, CategorizationEngine
from .loader import DataLoader
from .logging import get_logger
from .models import AICategorizationStats, CategorizationStats, LoadStats, WeightStats
from .processors import CommitCategorizer, WeightCalculator


@dataclass
class WorkflowResult:
    """Per-stage statistics collected by :meth:`Workflow.run`."""

    repositories: List[str] = field(default_factory=list)
    extracted: Dict[str, int] = field(default_factory=dict)
    cleanups: Dict[str, CleanupReport] = field(default_factory=dict)
    loads: Dict[str, LoadStats] = field(default_factory=dict)
    categorization: Optional[CategorizationStats] = None
    ai_categorization: Optional[AICategorizationStats] = None
    weights: Optional[WeightStats] = None

    def summary_lines(self) -> List[str]:
        lines: List[str] = []
        for name in self.repositories:
            lines.append(f"[{name}] extracted {self.extracted.get(name, 0)} commits")
            if name in self.loads:
                lines.extend(self.loads[name].summary_lines())
        if self.categorization is not None:
            lines.extend(self.categorization.summary_lines())
        if self.ai_categorization is not None:
            lines.extend(self.ai_categorization.summary_lines())
        if self.weights is not None:
            lines.extend(self.weights.summary_lines())
        lines.append(f"Repositories processed: {len(self.repositories)}")
        return lines


class Workflow:
    """Runs every stage for the configured repositories, one repository at a time."""

    def __init__(
        self,
        context: RunContext,
        *,
        extractor: Optional[GitExtractor] = None,
        engine: Optional[CategorizationEngine] = None,
    ) -> None:
        self.context = context
        self.extractor = extractor or GitExtractor()
        self.engine = engine
        self.result: Optional[WorkflowResult] = None
        self.logger = get_logger("workflow")

    def run(
        self,
        repo: Optional[str] = None,
        *,
        clean: bool = False,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> WorkflowResult:
        config = self.context.config
        entries = self._select_repositories(repo)
        date_from = date_from or config.default_from
        date_to = date_to or config.default_to
        # Kept on the instance so callers can report completed stages after a failure.
        result = self.result = WorkflowResult()

        self.logger.info("Processing %d repository(ies)", len(entries))
        for index, entry in enumerate(entries, start=1):
            self.logger.info("[%d/%d] Processing: %s", index, len(entries), entry.name)
            result.repositories.append(entry.name)
            self._process_repository(entry, result, clean=clean, date_from=date_from, date_to=date_to)

        self.logger.info("Running post-processing (strategy: %s)", config.strategy)
        if config.strategy in ("pattern", "layered"):
            categorizer = CommitCategorizer(self.context)
            result.categorization = categorizer.stats
            categorizer.categorize()
        if config.strategy in ("ai", "layered"):
            ai_categorizer = AICategorizer(
                self.context,
                self.engine,
                only_uncategorized=config.strategy == "layered",
            )
            result.ai_categorization = ai_categorizer.stats
            ai_categorizer.categorize()
        calculator = WeightCalculator(self.context)
        result.weights = calculator.stats
        calculator.calculate()
        self.logger.info("Workflow finished: %d repositories processed", len(entries))
        return result

    def _select_repositories(self, repo: Optional[str]) -> List[RepositoryEntry]:
        entries = [entry for entry in self.context.config.repositories if entry.enabled]
        if repo is not None:
            entries = [entry for entry in entries if entry.name == repo]
        if not entries:
            if repo is not None:
                raise ConfigError(f"Repository not found among enabled repositories: {repo}")
            raise ConfigError("No enabled repositories configured")
        return entries

    def _process_repository(
        self,
        entry: RepositoryEntry,
        result: WorkflowResult,
        *,
        clean: bool,
        date_from: str,
        date_to: str,
    ) -> None:
        if clean:
            try:
                result.cleanups[entry.name] = RepositoryCleaner(self.context, entry.name).clean(confirmed=True)
            except LookupError:
                self.logger.warning("Clean skipped: repository %s is not stored yet", entry.name)

        output_file = self.context.config.output_dir / f"{entry.name}.json"
        artifact = self.extractor.extract(
            entry.resolved_path(),
            date_from,
            date_to,
            repo_name=entry.name,
            output_file=output_file,
        )
        result.extracted[entry.name] = artifact.summary.total_commits

        try:
            if self.context.dry_run:
                self.logger.info("DRY RUN MODE - skipping load of %s", output_file)
            else:
                loader = DataLoader(self.context)
                result.loads[entry.name] = loader.stats
                loader.load_file(output_file)
        finally:
            output_file.unlink(missing_ok=True)


__all__ = ["Workflow", "WorkflowResult"]
