"""Tests for loading extraction artifacts."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Set

import pytest

from metricmind.context import RunContext
from metricmind.git import write_artifact
from metricmind.loader import DataLoader, LoadError, parse_timestamp
from metricmind.models import ExtractionResult
from metricmind.stores import CommitStore, RepositoryStore
from tests._fixtures.builders import make_artifact, make_record, stored_commits


def _artifact() -> ExtractionResult:
    return make_artifact(
        "app",
        [
            make_record("c1", "BILLING | Add invoices", day=1, lines_added=10, ai_tools="CLAUDE CODE"),
            make_record("c2", "Fix rounding", day=2, body="Details"),
            make_record("c3", "Docs", day=3),
        ],
        repository_path="/src/app",
    )


def test_load_inserts_repository_and_commits(context: RunContext) -> None:
    stats = DataLoader(context).load(_artifact())

    assert stats.repos_created == 1
    assert stats.commits_inserted == 3
    assert stats.commits_skipped == 0
    assert stats.errors == 0
    commits = stored_commits(context)
    assert commits["BILLING | Add invoices"].lines_added == 10
    assert commits["BILLING | Add invoices"].ai_tools == "CLAUDE CODE"
    assert commits["Fix rounding"].body == "Details"
    assert all(row.weight == 100 for row in commits.values())


def test_reloading_same_artifact_skips_everything(context: RunContext) -> None:
    DataLoader(context).load(_artifact())

    stats = DataLoader(context).load(_artifact())

    assert stats.repos_created == 0
    assert stats.repos_updated == 1
    assert stats.commits_inserted == 0
    assert stats.commits_skipped == 3
    assert len(stored_commits(context)) == 3


def test_small_batches_load_every_commit(context: RunContext) -> None:
    stats = DataLoader(context, batch_size=2).load(_artifact())

    assert stats.commits_inserted == 3


def test_load_file_round_trip(context: RunContext, tmp_path: Path) -> None:
    path = write_artifact(_artifact(), tmp_path / "app.json")

    stats = DataLoader(context).load_file(path)

    assert stats.commits_inserted == 3
    with context.database.transaction() as session:
        repository = RepositoryStore(session).find_by_name("app")
        assert repository is not None
        assert repository.url == "/src/app"


def test_load_file_missing_raises(context: RunContext, tmp_path: Path) -> None:
    with pytest.raises(LoadError, match="not found"):
        DataLoader(context).load_file(tmp_path / "missing.json")


def test_load_file_invalid_artifact_raises(context: RunContext, tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text('{"repository": "app"}', encoding="utf-8")

    with pytest.raises(LoadError, match="Could not read"):
        DataLoader(context).load_file(path)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-03-01T12:00:00Z", datetime(2024, 3, 1, 12, tzinfo=timezone.utc)),
        ("2024-03-01T14:00:00+02:00", datetime(2024, 3, 1, 12, tzinfo=timezone.utc)),
        ("2024-03-01 14:00:00 +0200", datetime(2024, 3, 1, 12, tzinfo=timezone.utc)),
        ("2024-03-01 12:00:00", datetime(2024, 3, 1, 12, tzinfo=timezone.utc)),
    ],
)
def test_parse_timestamp_formats(value: str, expected: datetime) -> None:
    assert parse_timestamp(value) == expected


def test_parse_timestamp_falls_back_to_now() -> None:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert parse_timestamp("not a date", now=now) == now


def test_uniqueness_violation_from_concurrent_writer_counts_as_skipped(
    context: RunContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    DataLoader(context).load(_artifact())
    real_exists = CommitStore.exists
    checked: Set[str] = set()

    def stale_exists(self: CommitStore, repository_id: int, commit_hash: str) -> bool:
        # The first lookup per hash misses the row, as if another writer inserted it meanwhile.
        if commit_hash not in checked:
            checked.add(commit_hash)
            return False
        return real_exists(self, repository_id, commit_hash)

    monkeypatch.setattr(CommitStore, "exists", stale_exists)

    stats = DataLoader(context).load(_artifact())

    assert stats.commits_inserted == 0
    assert stats.commits_skipped == 3
    assert stats.errors == 0
    assert len(stored_commits(context)) == 3


def test_rejected_record_is_counted_and_batch_continues(context: RunContext) -> None:
    records = [
        make_record("c1", "First", day=1),
        make_record("c2", "Out of range", day=2).model_copy(update={"ai_confidence": 150}),
        make_record("c3", "Third", day=3),
    ]

    stats = DataLoader(context, batch_size=2).load(make_artifact("app", records))

    assert stats.commits_inserted == 2
    assert stats.errors == 1
    assert stats.commits_skipped == 0
    assert sorted(stored_commits(context)) == ["First", "Third"]
