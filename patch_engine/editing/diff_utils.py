"""
Diff utilities — validation, reversal and small helpers for diff text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .diff_generator import calculate_file_hash
from .diff_parser import (
    DEV_NULL,
    DiffParser,
    normalize_path,
    render_multi_file_diff,
)
from .edit_result import to_camel_dict

logger = logging.getLogger(__name__)

_TIMESTAMP = re.compile(r"\t\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}(?:\.\d+)?(?: [+-]\d{4})?")
_UNKNOWN_HASH = "0000000"


@dataclass
class DiffValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return to_camel_dict(self)


@dataclass
class ReverseDiffResult:
    success: bool
    reversed_diff: str
    message: str
    affected_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return to_camel_dict(self)


def validate_diff_format(diff_text: str) -> DiffValidationResult:
    """Check *diff_text* for structural errors and formatting issues.

    Parser diagnostics are errors; Windows line endings and a missing final
    newline are warnings.
    """
    parsed = DiffParser().parse(diff_text)
    errors = [str(e) for e in parsed.errors]
    warnings: list[str] = []
    if "\r\n" in diff_text:
        warnings.append(
            "Diff contains Windows line endings (\\r\\n), which may cause issues"
        )
    if diff_text.strip() and not diff_text.endswith("\n"):
        warnings.append("Diff does not end with a newline character")
    return DiffValidationResult(
        is_valid=not errors, errors=errors, warnings=warnings,
    )


def reverse_diff(
    diff_text: str,
    include_files: Optional[list[str]] = None,
    exclude_files: Optional[list[str]] = None,
) -> ReverseDiffResult:
    """Invert every file diff in *diff_text* so that applying it undoes
    the original change.

    Parameters
    ----------
    diff_text:
        A single or multi-file unified diff.
    include_files:
        When given, only files whose path contains one of these substrings
        are reversed.
    exclude_files:
        Files whose path contains one of these substrings are left out.

    Returns
    -------
    ReverseDiffResult
    """
    parsed = DiffParser().parse(diff_text)
    if not parsed.file_diffs:
        message = parsed.error_message or "No valid file diffs found"
        return ReverseDiffResult(
            success=False,
            reversed_diff="",
            message=f"No valid file diffs found in the provided content: {message}",
        )

    selected = []
    for file_diff in parsed.file_diffs:
        path = file_diff.file_path
        if include_files and not any(f in path for f in include_files):
            continue
        if exclude_files and any(f in path for f in exclude_files):
            continue
        selected.append(file_diff)

    if not selected:
        return ReverseDiffResult(
            success=False,
            reversed_diff="",
            message="No file diffs matched the filter criteria",
        )

    reversed_diffs = [fd.reversed() for fd in selected]
    logger.debug("[DiffUtils] Reversed %d file diff(s)", len(reversed_diffs))
    return ReverseDiffResult(
        success=True,
        reversed_diff=render_multi_file_diff(reversed_diffs),
        message=f"Successfully reversed {len(reversed_diffs)} file diff(s)",
        affected_files=[fd.file_path for fd in selected],
    )


def clean_diff_timestamps(diff_text: str) -> str:
    """Drop ``\\t<date> <time>`` suffixes some tools add to file headers."""
    return _TIMESTAMP.sub("", diff_text)


def extract_file_path(old_path: str, new_path: str) -> str:
    """Return the normalized path a ``---``/``+++`` pair refers to."""
    if new_path == DEV_NULL:
        return normalize_path(old_path) or ""
    return normalize_path(new_path) or ""


def is_file_creation(old_path: str) -> bool:
    return old_path == DEV_NULL


def is_file_deletion(new_path: str) -> bool:
    return new_path == DEV_NULL


def count_diff_changes(diff_text: str) -> int:
    """Number of added plus removed lines, headers excluded."""
    changes = 0
    for line in diff_text.split("\n"):
        if line.startswith("+") and not line.startswith("+++"):
            changes += 1
        elif line.startswith("-") and not line.startswith("---"):
            changes += 1
    return changes


def ensure_diff_line_ending(diff_text: str) -> str:
    if not diff_text.endswith("\n"):
        return diff_text + "\n"
    return diff_text


def add_file_hashes_to_diff(
    diff_text: str,
    old_content: Optional[str] = None,
    new_content: Optional[str] = None,
) -> str:
    """Prefix each ``---``/``+++`` pair with ``diff --git`` and ``index`` lines.

    Hashes are computed from the contents when both are given, otherwise
    ``0000000`` is used.
    """
    if old_content is not None and new_content is not None:
        old_hash = calculate_file_hash(old_content)
        new_hash = calculate_file_hash(new_content)
    else:
        old_hash = new_hash = _UNKNOWN_HASH

    lines = diff_text.split("\n")
    out: list[str] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if (
            line.startswith("--- ")
            and i + 1 < len(lines)
            and lines[i + 1].startswith("+++ ")
        ):
            old_path = line[4:].split("\t", 1)[0]
            new_path = lines[i + 1][4:].split("\t", 1)[0]
            out.append(f"diff --git {old_path} {new_path}")
            out.append(f"index {old_hash}..{new_hash} 100644")
            out.extend((line, lines[i + 1]))
            i += 2
            continue
        out.append(line)
        i += 1
    return "\n".join(out)
