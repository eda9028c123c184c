from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Iterator

import pytest

from metricmind.config import DatabaseConfig, MetricMindConfig
from metricmind.context import RunContext
from metricmind.stores import Database


@pytest.fixture
def config(tmp_path: Path) -> MetricMindConfig:
    """Configuration pointing at a throwaway SQLite database under tmp_path."""
    return MetricMindConfig(
        root=tmp_path,
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'metricmind.db'}"),
        output_dir=tmp_path / "exports",
    )


@pytest.fixture
def database(config: MetricMindConfig) -> Iterator[Database]:
    db = Database(config.database.url)
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def context(config: MetricMindConfig, database: Database) -> RunContext:
    return RunContext(config=config, database=database)


@pytest.fixture
def dry_context(context: RunContext) -> RunContext:
    """Same storage as ``context`` but with dry-run enabled."""
    return replace(context, dry_run=True)
