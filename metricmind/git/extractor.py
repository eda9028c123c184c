"""Drive ``git log`` against a working copy and emit an extraction artifact."""

from __future__ import annotations

import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from ..logging import get_logger
from ..models import CommitRecord, DateRange, ExtractionResult, ExtractionSummary
from .log_parser import PRETTY_FORMAT, parse_log


class ExtractionError(RuntimeError):
    """Raised when the extraction inputs are invalid."""


class GitCommandError(ExtractionError):
    """Raised when a git invocation exits non-zero; carries the combined output."""

    def __init__(self, command: Sequence[str], returncode: int, output: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Git command failed with exit code {returncode}: {' '.join(self.command)}\n{output}"
        )


Runner = Callable[..., str]


class GitExtractor:
    """Extracts commits for one repository and date window."""

    def __init__(self, runner: Runner | None = None) -> None:
        self._runner = runner or self._default_runner
        self.logger = get_logger("git.extractor")

    def extract(
        self,
        repo_path: str | Path,
        date_from: str,
        date_to: str,
        *,
        repo_name: str | None = None,
        output_file: Path | None = None,
    ) -> ExtractionResult:
        """Run the extraction and optionally write the artifact to ``output_file``."""
        repo = Path(repo_path).expanduser().resolve()
        self.logger.info("Starting git extraction from %s", repo)

        self._validate_repository(repo)
        self._validate_date_range(date_from, date_to)

        commits = self.extract_commits(repo, date_from, date_to)
        name = repo_name or self.detect_repository_name(repo)

        result = ExtractionResult(
            repository=name,
            repository_path=str(repo),
            extraction_date=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            date_range=DateRange(from_=date_from, to=date_to),
            summary=ExtractionSummary.from_commits(commits),
            commits=commits,
        )

        if output_file is not None:
            write_artifact(result, output_file)
            self.logger.info("Output written to: %s", output_file)

        self.logger.info(
            "Extraction complete: %d commits from %s (%d added, %d deleted)",
            result.summary.total_commits,
            name,
            result.summary.total_lines_added,
            result.summary.total_lines_deleted,
        )
        return result

    def extract_commits(self, repo: Path, date_from: str, date_to: str) -> List[CommitRecord]:
        self.logger.info("Extracting commits from %s to %s", date_from, date_to)
        output = self._run(
            [
                "git",
                "-C",
                str(repo),
                "log",
                f"--since={date_from}",
                f"--until={date_to}",
                "--numstat",
                f"--pretty=format:{PRETTY_FORMAT}",
            ],
            cwd=repo,
        )
        return parse_log(output)

    def detect_repository_name(self, repo: Path) -> str:
        """Resolve a display name from ``remote.origin.url``, falling back to the directory name."""
        try:
            remote = self._run(
                ["git", "-C", str(repo), "config", "--get", "remote.origin.url"], cwd=repo
            )
        except GitCommandError as exc:
            self.logger.warning("Could not get git remote: %s", exc.output.strip() or exc.returncode)
            remote = ""
        name = repository_name_from_url(remote)
        return name or repo.name

    # ------------------------------------------------------------------
    # Internals

    @staticmethod
    def _validate_repository(repo: Path) -> None:
        # Worktrees and submodules use a `.git` file rather than a directory.
        if not (repo / ".git").exists():
            raise ExtractionError(f"Not a git repository: {repo}")

    @staticmethod
    def _validate_date_range(date_from: str, date_to: str) -> None:
        if not date_from or not date_from.strip() or not date_to or not date_to.strip():
            raise ExtractionError("Date range cannot be empty")

    def _run(self, args: Iterable[str], *, cwd: Path) -> str:
        return self._runner(args, cwd=cwd)

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
        command = list(args)
        completed = subprocess.run(
            command,
            cwd=str(cwd),
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
        )
        if completed.returncode != 0:
            raise GitCommandError(command, completed.returncode, completed.stdout)
        return completed.stdout


def repository_name_from_url(url: str | None) -> Optional[str]:
    """``git@github.com:user/repo.git`` and ``https://host/user/repo.git`` both become ``repo``."""
    if not url:
        return None
    cleaned = url.strip().rstrip("/")
    if not cleaned:
        return None
    name = cleaned.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or None


def write_artifact(result: ExtractionResult, output_file: Path) -> Path:
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(result.to_json(), encoding="utf-8")
    return output_file


def read_artifact(path: Path) -> ExtractionResult:
    return ExtractionResult.from_json(path.read_text(encoding="utf-8"))


__all__ = [
    "ExtractionError",
    "GitCommandError",
    "GitExtractor",
    "read_artifact",
    "repository_name_from_url",
    "write_artifact",
]
