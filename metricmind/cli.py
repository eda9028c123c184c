"""CLI entrypoints for metricmind commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from .cleaner import RepositoryCleaner
from .config import ConfigError, load_config
from .context import RunContext
from .git import ExtractionError, GitExtractor
from .llm import AICategorizer, LLMError
from .loader import DataLoader, LoadError
from .logging import configure_logging
from .processors import CommitCategorizer, WeightCalculator
from .stores import CategoryStore, CommitStore
from .workflow import Workflow


def _add_common_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress_default else value

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default(False),
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=default(None),
        help="Path to .metricmind.yml or the directory containing it (defaults to cwd).",
    )
    parser.add_argument(
        "--repo",
        default=default(None),
        help="Limit the command to one repository by name.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=default(False),
        help="Compute and report changes without writing to the database.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metricmind",
        description="Extract git history into a database and derive commit categories and weights.",
    )
    _add_common_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    setup_parser = subparsers.add_parser(
        "setup", help="Create the schema and seed categories from existing commits."
    )
    _add_common_options(setup_parser, suppress_default=True)

    extract_parser = subparsers.add_parser(
        "extract", help="Extract commits from a git repository into a JSON artifact."
    )
    _add_common_options(extract_parser, suppress_default=True)
    extract_parser.add_argument(
        "path",
        nargs="?",
        help="Repository path (defaults to the configured repositories).",
    )
    extract_parser.add_argument("--from", dest="date_from", help="Start date (git --since syntax).")
    extract_parser.add_argument("--to", dest="date_to", help="End date (git --until syntax).")
    extract_parser.add_argument(
        "--output",
        type=Path,
        help="Output file for a single repository (defaults to <output_dir>/<name>.json).",
    )

    load_parser = subparsers.add_parser("load", help="Load an extraction artifact into the database.")
    _add_common_options(load_parser, suppress_default=True)
    load_parser.add_argument("artifact", type=Path, help="Path to the JSON artifact.")

    categorize_parser = subparsers.add_parser("categorize", help="Assign categories to commits.")
    _add_common_options(categorize_parser, suppress_default=True)
    categorize_parser.add_argument(
        "--ai",
        action="store_true",
        help="Use the configured LLM provider instead of subject patterns.",
    )
    categorize_parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Commits per AI batch (defaults to ai.batch_size).",
    )

    weights_parser = subparsers.add_parser(
        "weights", help="Zero the weight of revert commits and the commits they revert."
    )
    _add_common_options(weights_parser, suppress_default=True)

    clean_parser = subparsers.add_parser("clean", help="Delete the stored commits of one repository.")
    _add_common_options(clean_parser, suppress_default=True)
    clean_parser.add_argument(
        "--delete-repo",
        action="store_true",
        help="Also delete the repository record.",
    )
    clean_parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the deletion; without it only the report is printed.",
    )

    run_parser = subparsers.add_parser(
        "run", help="Run extract, load, categorize and weights for the configured repositories."
    )
    _add_common_options(run_parser, suppress_default=True)
    run_parser.add_argument("--clean", action="store_true", help="Clean each repository first.")
    run_parser.add_argument("--from", dest="date_from", help="Start date (git --since syntax).")
    run_parser.add_argument("--to", dest="date_to", help="End date (git --until syntax).")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for metricmind commands."""
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"metricmind: invalid configuration: {exc}\n")

    context = RunContext.from_config(config, dry_run=bool(args.dry_run))
    try:
        if args.command != "extract":
            context.database.create_schema()
        _COMMANDS[args.command](context, args)
    except (ConfigError, ExtractionError, LoadError, LookupError, SQLAlchemyError) as exc:
        parser.exit(1, f"metricmind {args.command} failed: {exc}\n")
    except LLMError as exc:
        parser.exit(1, f"metricmind {args.command} failed: {exc}\n")
    finally:
        context.close()


def _run_setup(context: RunContext, args: argparse.Namespace) -> None:
    with context.database.transaction() as session:
        counts = CommitStore(session).category_counts()
        created = 0 if context.dry_run else CategoryStore(session).seed(counts)
    _print_lines(
        [
            "=== Setup Summary ===",
            f"Categories found in commits: {len(counts)}",
            f"Categories created: {created}",
        ]
    )


def _run_extract(context: RunContext, args: argparse.Namespace) -> None:
    config = context.config
    date_from = args.date_from or config.default_from
    date_to = args.date_to or config.default_to
    extractor = GitExtractor()

    if args.path:
        targets: List[Tuple[Optional[str], Path]] = [(args.repo, Path(args.path).expanduser())]
    else:
        entries = [entry for entry in config.repositories if entry.enabled]
        if args.repo:
            entries = [entry for entry in entries if entry.name == args.repo]
        if not entries:
            raise ConfigError("No repository path given and no matching enabled repositories configured")
        targets = [(entry.name, entry.resolved_path()) for entry in entries]

    for name, path in targets:
        output = args.output if len(targets) == 1 else None
        if output is None:
            name = name or extractor.detect_repository_name(path.resolve())
            output = config.output_dir / f"{name}.json"
        result = extractor.extract(path, date_from, date_to, repo_name=name, output_file=output)
        _print_lines(
            [
                "=== Extraction Summary ===",
                f"Repository: {result.repository}",
                f"Total commits: {result.summary.total_commits}",
                f"Lines added: {result.summary.total_lines_added}",
                f"Lines deleted: {result.summary.total_lines_deleted}",
                f"Files changed: {result.summary.total_files_changed}",
                f"Unique authors: {result.summary.unique_authors}",
                f"Output: {output}",
            ]
        )


def _run_load(context: RunContext, args: argparse.Namespace) -> None:
    if context.dry_run:
        print(f"DRY RUN - skipping load of {args.artifact}")
        return
    loader = DataLoader(context)
    try:
        loader.load_file(args.artifact)
    finally:
        _print_lines(loader.stats.summary_lines())


def _run_categorize(context: RunContext, args: argparse.Namespace) -> None:
    if args.ai:
        ai_categorizer = AICategorizer(context, repo_name=args.repo, batch_size=args.batch_size)
        try:
            ai_categorizer.categorize()
        finally:
            _print_lines(ai_categorizer.stats.summary_lines())
        return
    categorizer = CommitCategorizer(context, repo_name=args.repo)
    try:
        categorizer.categorize()
    finally:
        _print_lines(categorizer.stats.summary_lines())


def _run_weights(context: RunContext, args: argparse.Namespace) -> None:
    calculator = WeightCalculator(context, repo_name=args.repo)
    try:
        calculator.calculate()
    finally:
        _print_lines(calculator.stats.summary_lines())


def _run_clean(context: RunContext, args: argparse.Namespace) -> None:
    if not args.repo:
        raise ConfigError("clean requires --repo")
    cleaner = RepositoryCleaner(context, args.repo, delete_repository=bool(args.delete_repo))
    report = cleaner.clean(confirmed=bool(args.yes))
    _print_lines(report.summary_lines())
    if not args.yes and not context.dry_run:
        print("Nothing deleted. Re-run with --yes to confirm.")


def _run_workflow(context: RunContext, args: argparse.Namespace) -> None:
    workflow = Workflow(context)
    try:
        workflow.run(
            args.repo,
            clean=bool(args.clean),
            date_from=args.date_from,
            date_to=args.date_to,
        )
    finally:
        if workflow.result is not None:
            _print_lines(workflow.result.summary_lines())


def _print_lines(lines: Iterable[str]) -> None:
    print()
    for line in lines:
        print(line)
    print()


_COMMANDS: Dict[str, Callable[[RunContext, argparse.Namespace], None]] = {
    "setup": _run_setup,
    "extract": _run_extract,
    "load": _run_load,
    "categorize": _run_categorize,
    "weights": _run_weights,
    "clean": _run_clean,
    "run": _run_workflow,
}


if __name__ == "__main__":
    main(sys.argv[1:])
