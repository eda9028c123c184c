"""Parse ``git log --numstat`` output into commit records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from ..logging import get_logger
from ..models import CommitFile, CommitRecord
from .ai_tools import extract_ai_tools

# \x1e (record separator) anchors block splits and \x1f (unit separator) delimits
# fields; neither appears in names, subjects or bodies.
FIELD_SEPARATOR = "\x1f"
COMMIT_MARKER = "\x1eCOMMIT\x1f"
BODY_MARKER = "\x1fBODY\x1f"
BODY_END_MARKER = "\x1fBODYEND\x1f"
PRETTY_FORMAT = "%x1eCOMMIT%x1f%H%x1f%ai%x1f%an%x1f%ae%x1f%s%x1fBODY%x1f%b%x1fBODYEND%x1f"

_HEADER_FIELDS = 5
_BINARY_PLACEHOLDER = "-"
_GIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

_logger = get_logger("git.log_parser")


class CommitParseError(ValueError):
    """Raised when a single commit block does not match the expected layout."""


def parse_log(output: str) -> List[CommitRecord]:
    """Split raw log output into blocks and parse each, skipping malformed ones."""
    commits: List[CommitRecord] = []
    for block in output.split(COMMIT_MARKER):
        if not block.strip():
            continue
        try:
            commits.append(parse_commit_block(block))
        except CommitParseError as exc:
            _logger.warning("Failed to parse commit block: %s", exc)
    return commits


def parse_commit_block(block: str) -> CommitRecord:
    """Parse one ``hash, date, name, email, subject, BODY, body, BODYEND`` block plus numstat lines."""
    header, body_marker, remainder = block.partition(BODY_MARKER)
    if not body_marker:
        raise CommitParseError("missing body marker")

    fields = header.strip("\n").split(FIELD_SEPARATOR, _HEADER_FIELDS - 1)
    if len(fields) < _HEADER_FIELDS:
        raise CommitParseError(
            f"expected {_HEADER_FIELDS} header fields, found {len(fields)}"
        )
    commit_hash, raw_date, author_name, author_email, subject = (part.strip() for part in fields)
    if not commit_hash:
        raise CommitParseError("empty commit hash")

    body_text, end_marker, stats_text = remainder.partition(BODY_END_MARKER)
    if not end_marker:
        raise CommitParseError(f"missing body terminator for {commit_hash}")
    body = body_text.strip() or None

    files = parse_numstat(stats_text)

    return CommitRecord(
        hash=commit_hash,
        date=normalize_date(raw_date),
        author_name=author_name,
        author_email=author_email,
        subject=subject,
        body=body,
        lines_added=sum(item.added for item in files),
        lines_deleted=sum(item.deleted for item in files),
        files_changed=len(files),
        ai_tools=extract_ai_tools(body),
        files=files,
    )


def parse_numstat(text: str) -> List[CommitFile]:
    """Return per-file stats, excluding binary entries (``-`` counts)."""
    files: List[CommitFile] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        added_raw, deleted_raw, filename = parts[0], parts[1], "\t".join(parts[2:])
        if added_raw == _BINARY_PLACEHOLDER or deleted_raw == _BINARY_PLACEHOLDER:
            continue
        try:
            added = int(added_raw)
            deleted = int(deleted_raw)
        except ValueError:
            _logger.debug("Ignoring numstat line with non-numeric counts: %r", line)
            continue
        files.append(CommitFile(filename=filename, added=added, deleted=deleted))
    return files


def normalize_date(raw: str) -> str:
    """Convert git's ``%ai`` date to a UTC ISO-8601 instant, keeping ``raw`` on failure."""
    parsed = _parse_git_date(raw)
    if parsed is None:
        _logger.warning("Failed to parse date: %s, using as-is", raw)
        return raw
    return parsed.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_git_date(raw: str) -> Optional[datetime]:
    try:
        return datetime.strptime(raw.strip(), _GIT_DATE_FORMAT)
    except ValueError:
        return None


__all__ = [
    "BODY_END_MARKER",
    "BODY_MARKER",
    "COMMIT_MARKER",
    "FIELD_SEPARATOR",
    "PRETTY_FORMAT",
    "CommitParseError",
    "normalize_date",
    "parse_commit_block",
    "parse_log",
    "parse_numstat",
]
