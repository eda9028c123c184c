"""Helpers for building git output, artifacts and stored commits in tests."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from metricmind.context import RunContext
from metricmind.git import GitCommandError
from metricmind.git.log_parser import BODY_END_MARKER, BODY_MARKER, COMMIT_MARKER, FIELD_SEPARATOR
from metricmind.loader import DataLoader
from metricmind.models import CommitRecord, DateRange, ExtractionResult, ExtractionSummary
from metricmind.stores import CommitRow

NumstatLine = Tuple[str, str, str]


def log_block(
    commit_hash: str,
    subject: str,
    *,
    date: str = "2024-03-01 12:00:00 +0000",
    author_name: str = "Ada Lovelace",
    author_email: str = "ada@example.com",
    body: str = "",
    numstat: Sequence[NumstatLine] = (),
) -> str:
    """Render one commit the way ``git log --numstat`` prints it with our pretty format."""
    fields = FIELD_SEPARATOR.join([commit_hash, date, author_name, author_email, subject])
    header = f"{COMMIT_MARKER}{fields}{BODY_MARKER}{body}{BODY_END_MARKER}"
    if not numstat:
        return header + "\n"
    stats = "\n".join("\t".join(line) for line in numstat)
    return f"{header}\n\n{stats}\n"


def make_record(commit_hash: str, subject: str, *, day: int = 1, **overrides: object) -> CommitRecord:
    data: Dict[str, object] = {
        "hash": commit_hash,
        "date": f"2024-03-{day:02d}T12:00:00Z",
        "author_name": "Ada Lovelace",
        "author_email": "ada@example.com",
        "subject": subject,
    }
    data.update(overrides)
    return CommitRecord(**data)  # type: ignore[arg-type]


def make_artifact(
    repository: str,
    commits: Iterable[CommitRecord],
    *,
    repository_path: str = "/tmp/repo",
) -> ExtractionResult:
    records = list(commits)
    return ExtractionResult(
        repository=repository,
        repository_path=repository_path,
        extraction_date="2024-04-01T00:00:00Z",
        date_range=DateRange(from_="2024-01-01", to="2024-04-01"),
        summary=ExtractionSummary.from_commits(records),
        commits=records,
    )


def seed_subjects(context: RunContext, repository: str, subjects: Sequence[str]) -> None:
    """Load one commit per subject, in order, into ``repository``."""
    records = [
        make_record(f"{repository}-{index:04d}", subject, day=index + 1)
        for index, subject in enumerate(subjects)
    ]
    DataLoader(context).load(make_artifact(repository, records))


def stored_commits(context: RunContext) -> Dict[str, CommitRow]:
    """Return every stored commit keyed by subject."""
    with context.database.transaction() as session:
        rows = session.query(CommitRow).order_by(CommitRow.id).all()
        return {row.subject: row for row in rows}


class FakeGitRunner:
    """Records git invocations; replays canned log output and an optional origin URL."""

    def __init__(self, log_output: str = "", *, remote: Optional[str] = None) -> None:
        self.log_output = log_output
        self.remote = remote
        self.calls: List[List[str]] = []

    def __call__(self, args: Iterable[str], *, cwd: Path) -> str:
        command = list(args)
        self.calls.append(command)
        if "config" in command:
            if self.remote is None:
                raise GitCommandError(command, 1, "")
            return self.remote + "\n"
        return self.log_output


__all__ = [
    "FakeGitRunner",
    "log_block",
    "make_artifact",
    "make_record",
    "seed_subjects",
    "stored_commits",
]
