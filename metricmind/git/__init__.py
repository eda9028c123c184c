"""Git log extraction and parsing."""

from .ai_tools import extract_ai_tools
from .extractor import (
    ExtractionError,
    GitCommandError,
    GitExtractor,
    read_artifact,
    repository_name_from_url,
    write_artifact,
)
from .log_parser import parse_commit_block, parse_log

__all__ = [
    "ExtractionError",
    "GitCommandError",
    "GitExtractor",
    "extract_ai_tools",
    "parse_commit_block",
    "parse_log",
    "read_artifact",
    "repository_name_from_url",
    "write_artifact",
]
