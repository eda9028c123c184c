"""Explicit per-run context handed to every pipeline component."""

from __future__ import annotations

from dataclasses import dataclass

from .config import MetricMindConfig
from .stores import Database


@dataclass
class RunContext:
    """Configuration and storage for one pipeline run.

    Built once by the command surface (or a test) and passed down; no component
    reaches for process-wide state.
    """

    config: MetricMindConfig
    database: Database
    dry_run: bool = False

    @classmethod
    def from_config(cls, config: MetricMindConfig, *, dry_run: bool = False) -> "RunContext":
        database = Database(config.database.url, echo=config.database.echo)
        return cls(config=config, database=database, dry_run=dry_run)

    def close(self) -> None:
        self.database.dispose()


__all__ = ["RunContext"]
