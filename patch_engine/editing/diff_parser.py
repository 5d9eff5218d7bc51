"""
Diff parser — parses unified-diff text into a structured multi-file model
and renders that model back to unified-diff text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .edit_result import EditErrorKind

logger = logging.getLogger(__name__)

DEV_NULL = "/dev/null"
NO_NEWLINE_MARKER = "\\ No newline at end of file"

# Patterns
_HUNK_HEADER = re.compile(
    r"^@@\s+-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s+@@(.*)$"
)
_GIT_HEADER_PREFIXES = (
    "index ",
    "new file mode ",
    "deleted file mode ",
    "old mode ",
    "new mode ",
    "similarity index ",
    "dissimilarity index ",
    "rename from ",
    "rename to ",
    "copy from ",
    "copy to ",
    "Binary files ",
)


class LineKind(str, Enum):
    """Hunk line kind, valued by its unified-diff prefix."""
    CONTEXT = " "
    ADDITION = "+"
    DELETION = "-"


@dataclass
class HunkLine:
    """A single hunk line.

    ``no_newline`` is set when the line was followed by a
    ``\\ No newline at end of file`` marker.
    """
    kind: LineKind
    text: str
    no_newline: bool = False

    def reversed(self) -> "HunkLine":
        if self.kind is LineKind.ADDITION:
            kind = LineKind.DELETION
        elif self.kind is LineKind.DELETION:
            kind = LineKind.ADDITION
        else:
            kind = LineKind.CONTEXT
        return HunkLine(kind, self.text, self.no_newline)


def _format_range(start: int, count: int) -> str:
    return str(start) if count == 1 else f"{start},{count}"


@dataclass
class Hunk:
    """One ``@@`` block: old/new ranges plus its lines."""
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[HunkLine] = field(default_factory=list)
    section: str = ""

    @property
    def old_block(self) -> list[str]:
        """Context + deletion texts (the pre-image)."""
        return [l.text for l in self.lines if l.kind is not LineKind.ADDITION]

    @property
    def new_block(self) -> list[str]:
        """Context + addition texts (the post-image)."""
        return [l.text for l in self.lines if l.kind is not LineKind.DELETION]

    @property
    def old_missing_newline(self) -> bool:
        return any(
            l.no_newline for l in self.lines if l.kind is not LineKind.ADDITION
        )

    @property
    def new_missing_newline(self) -> bool:
        return any(
            l.no_newline for l in self.lines if l.kind is not LineKind.DELETION
        )

    @property
    def is_pure_insertion(self) -> bool:
        return self.old_lines == 0

    @property
    def is_additive(self) -> bool:
        """True when the hunk only adds lines, so its post-image still
        contains its whole pre-image."""
        return all(l.kind is not LineKind.DELETION for l in self.lines)

    @property
    def changes(self) -> int:
        return sum(1 for l in self.lines if l.kind is not LineKind.CONTEXT)

    def counts_match(self) -> bool:
        return (
            len(self.old_block) == self.old_lines
            and len(self.new_block) == self.new_lines
        )

    def header(self) -> str:
        return (
            f"@@ -{_format_range(self.old_start, self.old_lines)} "
            f"+{_format_range(self.new_start, self.new_lines)} @@{self.section}"
        )

    def reversed(self) -> "Hunk":
        return Hunk(
            old_start=self.new_start,
            old_lines=self.new_lines,
            new_start=self.old_start,
            new_lines=self.old_lines,
            lines=_deletions_first([l.reversed() for l in self.lines]),
            section=self.section,
        )


def _deletions_first(lines: list[HunkLine]) -> list[HunkLine]:
    """Within each run of changed lines, put deletions before additions."""
    out: list[HunkLine] = []
    run: list[HunkLine] = []
    for line in lines + [None]:
        if line is not None and line.kind is not LineKind.CONTEXT:
            run.append(line)
            continue
        out.extend(sorted(run, key=lambda l: l.kind is LineKind.ADDITION))
        run = []
        if line is not None:
            out.append(line)
    return out


def normalize_path(path: Optional[str]) -> Optional[str]:
    """Strip a leading ``a/`` or ``b/`` prefix from a diff header path."""
    if path is None:
        return None
    if path.startswith("a/") or path.startswith("b/"):
        return path[2:]
    return path


def _swap_prefix(path: Optional[str], prefix: str) -> Optional[str]:
    if path is None:
        return None
    if path.startswith("a/") or path.startswith("b/"):
        return prefix + path[2:]
    return path


@dataclass
class FileDiff:
    """All hunks for a single file.

    Paths keep their header form (``a/src/x.py``); ``/dev/null`` is ``None``.
    """
    old_path: Optional[str]
    new_path: Optional[str]
    hunks: list[Hunk] = field(default_factory=list)
    git_header_lines: list[str] = field(default_factory=list)

    @property
    def is_creation(self) -> bool:
        return self.old_path is None

    @property
    def is_deletion(self) -> bool:
        return self.new_path is None

    @property
    def file_path(self) -> str:
        """Normalized identity of the file this diff touches."""
        path = self.new_path if self.new_path is not None else self.old_path
        return normalize_path(path) or ""

    @property
    def changes(self) -> int:
        return sum(h.changes for h in self.hunks)

    def reversed(self) -> "FileDiff":
        """Return the inverse diff (git headers are dropped)."""
        return FileDiff(
            old_path=_swap_prefix(self.new_path, "a/"),
            new_path=_swap_prefix(self.old_path, "b/"),
            hunks=[h.reversed() for h in self.hunks],
        )


@dataclass
class DiffError:
    """A single parser diagnostic."""
    kind: EditErrorKind
    message: str
    line: Optional[int] = None

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"Line {self.line}: {self.message}"


@dataclass
class ParsedDiff:
    """The complete parsed diff."""
    file_diffs: list[FileDiff] = field(default_factory=list)
    errors: list[DiffError] = field(default_factory=list)

    @property
    def parse_successful(self) -> bool:
        return not self.errors and bool(self.file_diffs)

    @property
    def error_kind(self) -> Optional[EditErrorKind]:
        return self.errors[0].kind if self.errors else None

    @property
    def error_message(self) -> str:
        return "; ".join(str(e) for e in self.errors)


def _parse_header_path(raw: str) -> Optional[str]:
    path = raw.split("\t", 1)[0].strip()
    if len(path) >= 2 and path[0] == '"' and path[-1] == '"':
        path = path[1:-1]
    if path == DEV_NULL:
        return None
    return path


def _is_section_start(lines: list[str], i: int) -> bool:
    return (
        lines[i].startswith("--- ")
        and i + 1 < len(lines)
        and lines[i + 1].startswith("+++ ")
    )


class DiffParser:
    """Parse unified diffs (single or multi-file, optionally git-style)."""

    def parse(self, diff_text: str) -> ParsedDiff:
        """Parse *diff_text* into a :class:`ParsedDiff`.

        Never raises for malformed input; diagnostics are collected in
        ``ParsedDiff.errors`` and file diffs parsed before the problem
        are kept.
        """
        result = ParsedDiff()
        if not diff_text or not diff_text.strip():
            result.errors.append(
                DiffError(EditErrorKind.PARSE_ERROR, "Empty diff")
            )
            return result

        lines = diff_text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()

        pending_git: list[str] = []
        current: Optional[FileDiff] = None
        section_failed = False
        i = 0

        def close_section() -> None:
            if current is None or section_failed:
                return
            if not current.hunks:
                result.errors.append(DiffError(
                    EditErrorKind.INCONSISTENT_HEADERS,
                    "Missing hunk header (@@) after file headers for "
                    f"{current.file_path}",
                ))
                return
            result.file_diffs.append(current)

        while i < len(lines):
            line = lines[i]

            if line.startswith("--- "):
                close_section()
                if not _is_section_start(lines, i):
                    result.errors.append(DiffError(
                        EditErrorKind.INCONSISTENT_HEADERS,
                        "Missing +++ header after --- header",
                        i + 1,
                    ))
                    current, section_failed = None, True
                    pending_git = []
                    i += 1
                    continue
                old_path = _parse_header_path(line[4:])
                new_path = _parse_header_path(lines[i + 1][4:])
                if old_path is None and new_path is None:
                    result.errors.append(DiffError(
                        EditErrorKind.INCONSISTENT_HEADERS,
                        "Both file headers are /dev/null",
                        i + 1,
                    ))
                    current, section_failed = None, True
                else:
                    current = FileDiff(
                        old_path=old_path,
                        new_path=new_path,
                        git_header_lines=pending_git,
                    )
                    section_failed = False
                pending_git = []
                i += 2
                continue

            if line.startswith("+++ ") and not section_failed:
                close_section()
                result.errors.append(DiffError(
                    EditErrorKind.INCONSISTENT_HEADERS,
                    "Found +++ header without preceding --- header",
                    i + 1,
                ))
                current, section_failed = None, True
                i += 1
                continue

            if line.startswith("@@"):
                match = _HUNK_HEADER.match(line)
                if match is None:
                    result.errors.append(DiffError(
                        EditErrorKind.PARSE_ERROR,
                        f"Malformed hunk header: {line}",
                        i + 1,
                    ))
                    section_failed = True
                    i = self._skip_body(lines, i + 1)
                    continue
                if current is None and not section_failed:
                    result.errors.append(DiffError(
                        EditErrorKind.INCONSISTENT_HEADERS,
                        "Found hunk header without proper file headers",
                        i + 1,
                    ))
                    section_failed = True
                hunk, i, error = self._read_hunk(lines, i, match)
                if error is not None:
                    result.errors.append(error)
                    section_failed = True
                elif current is not None and not section_failed:
                    current.hunks.append(hunk)
                continue

            if line.startswith("diff --git "):
                close_section()
                current, section_failed = None, False
                pending_git = [line]
                i += 1
                continue

            if pending_git and line.startswith(_GIT_HEADER_PREFIXES):
                pending_git.append(line)
                i += 1
                continue

            if (
                current is not None
                and current.hunks
                and not section_failed
                and line[:1] in ("+", "-", " ")
            ):
                result.errors.append(DiffError(
                    EditErrorKind.INCONSISTENT_HEADERS,
                    "Hunk line count mismatch: unexpected line after "
                    f"{current.hunks[-1].header()}",
                    i + 1,
                ))
                section_failed = True
                i += 1
                continue

            # Prose around the diff, stray markers, blank separators.
            i += 1

        close_section()

        if not result.file_diffs and not result.errors:
            result.errors.append(DiffError(
                EditErrorKind.PARSE_ERROR,
                "No unified diff found. Expected '---' and '+++' headers "
                "followed by '@@' hunks.",
            ))

        if result.errors:
            logger.debug(
                "[DiffParse] %d error(s): %s",
                len(result.errors), result.error_message,
            )
        return result

    # ------------------------------------------------------------------
    # Internal parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _read_hunk(
        lines: list[str],
        i: int,
        match: re.Match,
    ) -> tuple[Optional[Hunk], int, Optional[DiffError]]:
        """Read one hunk whose header is ``lines[i]``.

        Returns (hunk, next_index, error).
        """
        old_lines = int(match.group(2)) if match.group(2) is not None else 1
        new_lines = int(match.group(4)) if match.group(4) is not None else 1
        hunk = Hunk(
            old_start=int(match.group(1)),
            old_lines=old_lines,
            new_start=int(match.group(3)),
            new_lines=new_lines,
            section=match.group(5),
        )

        old_seen = new_seen = 0
        j = i + 1
        while j < len(lines) and (old_seen < old_lines or new_seen < new_lines):
            body = lines[j]
            if body.startswith("\\"):
                if hunk.lines:
                    hunk.lines[-1].no_newline = True
                j += 1
                continue
            if body.startswith("@@"):
                break
            # A "--- "/"+++ " pair that still fits the counts is a deletion
            # and an addition, not a new file section.
            if _is_section_start(lines, j) and not (
                old_seen < old_lines and new_seen < new_lines
            ):
                break
            if body == "":
                kind, text = LineKind.CONTEXT, ""
            elif body[0] == " ":
                kind, text = LineKind.CONTEXT, body[1:]
            elif body[0] == "-":
                kind, text = LineKind.DELETION, body[1:]
            elif body[0] == "+":
                kind, text = LineKind.ADDITION, body[1:]
            else:
                break

            if kind is not LineKind.ADDITION:
                old_seen += 1
            if kind is not LineKind.DELETION:
                new_seen += 1
            if old_seen > old_lines or new_seen > new_lines:
                break
            hunk.lines.append(HunkLine(kind, text))
            j += 1

        if j < len(lines) and lines[j].startswith("\\") and hunk.lines:
            hunk.lines[-1].no_newline = True
            j += 1

        if not hunk.counts_match():
            error = DiffError(
                EditErrorKind.INCONSISTENT_HEADERS,
                f"Hunk line count mismatch in {lines[i]}: expected "
                f"-{old_lines}/+{new_lines} lines, got "
                f"-{len(hunk.old_block)}/+{len(hunk.new_block)} lines",
                i + 1,
            )
            return None, j, error
        return hunk, j, None

    @staticmethod
    def _skip_body(lines: list[str], j: int) -> int:
        """Skip the body of a hunk whose header could not be parsed."""
        while j < len(lines):
            body = lines[j]
            if body.startswith("@@") or _is_section_start(lines, j):
                break
            if body and body[0] not in (" ", "+", "-", "\\"):
                break
            j += 1
        return j


# ----------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------

def render_hunk(hunk: Hunk) -> list[str]:
    """Render a hunk as unified-diff lines (without line terminators)."""
    out = [hunk.header()]
    for line in hunk.lines:
        out.append(line.kind.value + line.text)
        if line.no_newline:
            out.append(NO_NEWLINE_MARKER)
    return out


def render_file_diff(
    file_diff: FileDiff,
    include_git_headers: bool = False,
    hunks: Optional[list[Hunk]] = None,
) -> str:
    """Render a file diff; *hunks* overrides ``file_diff.hunks`` if given."""
    out: list[str] = []
    if include_git_headers:
        out.extend(file_diff.git_header_lines)
    out.append(f"--- {file_diff.old_path or DEV_NULL}")
    out.append(f"+++ {file_diff.new_path or DEV_NULL}")
    for hunk in file_diff.hunks if hunks is None else hunks:
        out.extend(render_hunk(hunk))
    return "\n".join(out) + "\n"


def render_multi_file_diff(
    file_diffs: list[FileDiff],
    include_git_headers: bool = False,
) -> str:
    return "".join(
        render_file_diff(fd, include_git_headers) for fd in file_diffs
    )
