"""Tests for the end-to-end workflow."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import List

import pytest

from metricmind.config import ConfigError, MetricMindConfig, RepositoryEntry
from metricmind.context import RunContext
from metricmind.git import ExtractionError, GitExtractor
from metricmind.llm import CategorizationEngine, LLMError, LLMErrorKind
from metricmind.stores import Database
from metricmind.workflow import Workflow
from tests._fixtures.builders import FakeGitRunner, log_block, stored_commits
from tests._fixtures.llm import ScriptedTransport, reply

ORIGINAL = "BILLING | Add invoice export (!42)"
REVERT = "Revert invoice export (!42)"
PLAIN = "Tune search ranking"

GIT_LOG = (
    log_block("a" * 40, ORIGINAL, date="2024-03-01 12:00:00 +0000", numstat=[("10", "2", "billing.py")])
    + log_block("b" * 40, REVERT, date="2024-03-02 12:00:00 +0000")
    + log_block("c" * 40, PLAIN, date="2024-03-03 12:00:00 +0000")
)


def _workflow_context(
    config: MetricMindConfig, database: Database, tmp_path: Path, *, strategy: str = "pattern", dry_run: bool = False
) -> RunContext:
    checkout = tmp_path / "checkout"
    (checkout / ".git").mkdir(parents=True, exist_ok=True)
    repositories = [
        RepositoryEntry(name="app", path=str(checkout)),
        RepositoryEntry(name="archived", path=str(tmp_path / "missing"), enabled=False),
    ]
    configured = replace(config, repositories=repositories, strategy=strategy)
    return RunContext(config=configured, database=database, dry_run=dry_run)


def _engine(transport: ScriptedTransport) -> CategorizationEngine:
    sleeps: List[float] = []
    return CategorizationEngine(transport, retries=1, sleep=sleeps.append)


def test_pattern_workflow_loads_categorizes_and_weights(
    config: MetricMindConfig, database: Database, tmp_path: Path
) -> None:
    context = _workflow_context(config, database, tmp_path)
    runner = FakeGitRunner(GIT_LOG)

    result = Workflow(context, extractor=GitExtractor(runner=runner)).run()

    assert result.repositories == ["app"]
    assert result.extracted == {"app": 3}
    assert result.loads["app"].commits_inserted == 3
    assert result.categorization is not None
    assert result.categorization.categorized == 1
    assert result.ai_categorization is None
    assert result.weights is not None
    assert result.weights.commits_zeroed == 2
    assert not (context.config.output_dir / "app.json").exists()
    assert "Repositories processed: 1" in result.summary_lines()

    commits = stored_commits(context)
    assert commits[ORIGINAL].category == "BILLING"
    assert commits[ORIGINAL].weight == 0
    assert commits[REVERT].weight == 0
    assert commits[PLAIN].weight == 100


def test_layered_workflow_sends_only_uncategorized_commits_to_the_model(
    config: MetricMindConfig, database: Database, tmp_path: Path
) -> None:
    context = _workflow_context(config, database, tmp_path, strategy="layered")
    transport = ScriptedTransport([reply("SEARCH", 92)])

    result = Workflow(
        context, extractor=GitExtractor(runner=FakeGitRunner(GIT_LOG)), engine=_engine(transport)
    ).run("app")

    assert result.categorization is not None
    assert result.ai_categorization is not None
    assert result.ai_categorization.total == 2
    assert len(transport.prompts) == 2
    assert all(ORIGINAL not in prompt for prompt in transport.prompts)
    commits = stored_commits(context)
    assert commits[ORIGINAL].category == "BILLING"
    assert commits[PLAIN].category == "SEARCH"
    assert commits[PLAIN].ai_confidence == 92


def test_rerun_with_clean_reloads_from_scratch(
    config: MetricMindConfig, database: Database, tmp_path: Path
) -> None:
    context = _workflow_context(config, database, tmp_path)
    runner = FakeGitRunner(GIT_LOG)
    Workflow(context, extractor=GitExtractor(runner=runner)).run()

    result = Workflow(context, extractor=GitExtractor(runner=runner)).run(clean=True)

    assert result.cleanups["app"].commits_deleted == 3
    assert result.loads["app"].commits_inserted == 3
    assert result.loads["app"].commits_skipped == 0


def test_dry_run_extracts_without_loading(
    config: MetricMindConfig, database: Database, tmp_path: Path
) -> None:
    context = _workflow_context(config, database, tmp_path, dry_run=True)

    result = Workflow(context, extractor=GitExtractor(runner=FakeGitRunner(GIT_LOG))).run()

    assert result.extracted == {"app": 3}
    assert result.loads == {}
    assert stored_commits(context) == {}
    assert not (context.config.output_dir / "app.json").exists()


@pytest.mark.parametrize("repo", [None, "archived", "unknown"])
def test_unmatched_repository_selection_raises(
    config: MetricMindConfig, database: Database, tmp_path: Path, repo: str | None
) -> None:
    context = _workflow_context(config, database, tmp_path)
    if repo is None:
        context = replace(context, config=replace(context.config, repositories=[]))

    with pytest.raises(ConfigError):
        Workflow(context, extractor=GitExtractor(runner=FakeGitRunner(GIT_LOG))).run(repo)


def test_failed_extraction_keeps_completed_stages_on_the_workflow(
    config: MetricMindConfig, database: Database, tmp_path: Path
) -> None:
    context = _workflow_context(config, database, tmp_path)
    repositories = context.config.repositories + [RepositoryEntry(name="api", path=str(tmp_path / "no-checkout"))]
    context = replace(context, config=replace(context.config, repositories=repositories))
    workflow = Workflow(context, extractor=GitExtractor(runner=FakeGitRunner(GIT_LOG)))

    with pytest.raises(ExtractionError):
        workflow.run()

    assert workflow.result is not None
    assert workflow.result.repositories == ["app", "api"]
    assert workflow.result.loads["app"].commits_inserted == 3
    assert "api" not in workflow.result.loads
    assert "Commits inserted: 3" in workflow.result.summary_lines()


def test_missing_ai_configuration_after_loading_keeps_load_stats(
    config: MetricMindConfig, database: Database, tmp_path: Path
) -> None:
    context = _workflow_context(config, database, tmp_path, strategy="ai")
    workflow = Workflow(context, extractor=GitExtractor(runner=FakeGitRunner(GIT_LOG)))

    with pytest.raises(LLMError) as excinfo:
        workflow.run()

    assert excinfo.value.kind is LLMErrorKind.CONFIGURATION
    assert workflow.result is not None
    assert workflow.result.loads["app"].commits_inserted == 3
    assert workflow.result.ai_categorization is None
    assert len(stored_commits(context)) == 3
