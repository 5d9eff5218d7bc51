"""
Hunk applier — applies one file's hunks to in-memory content, forward or in
reverse, tolerating small line drift.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterator, Optional

from .diff_parser import FileDiff, Hunk, render_file_diff
from .edit_result import EditErrorKind, EditResult

logger = logging.getLogger(__name__)

# Hunks are searched at most this many lines away from their header position.
DEFAULT_SLACK = 3


class Direction(str, Enum):
    FORWARD = "forward"
    REVERSE = "reverse"


def split_content(content: str) -> tuple[list[str], bool]:
    """Split *content* into lines plus a trailing-newline flag."""
    if not content:
        return [], False
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
        return lines, True
    return lines, False


def join_content(lines: list[str], trailing_newline: bool) -> str:
    if not lines:
        return ""
    text = "\n".join(lines)
    return text + "\n" if trailing_newline else text


class HunkApplier:
    """Apply a :class:`FileDiff` to a content buffer."""

    def __init__(
        self,
        slack: int = DEFAULT_SLACK,
        loose_whitespace: bool = False,
    ) -> None:
        if slack < 0:
            raise ValueError(f"slack must be >= 0, got {slack}")
        self._slack = slack
        self._loose_whitespace = loose_whitespace

    @classmethod
    def from_config(cls, config) -> "HunkApplier":
        return cls(
            slack=config.HUNK_SLACK_LINES,
            loose_whitespace=config.IGNORE_WHITESPACE,
        )

    def apply(
        self,
        content: Optional[str],
        file_diff: FileDiff,
        direction: Direction | str = Direction.FORWARD,
    ) -> EditResult:
        """Apply *file_diff* to *content*.

        Parameters
        ----------
        content:
            Current file content; ``None`` or ``""`` for a missing file.
        file_diff:
            The parsed diff for this file.
        direction:
            ``forward`` applies the diff, ``reverse`` undoes it.

        Returns
        -------
        EditResult
            ``content`` holds the new text on success. An already applied
            diff succeeds with ``changes_applied == 0``.
        """
        direction = Direction(direction)
        diff = file_diff.reversed() if direction is Direction.REVERSE else file_diff
        content = content or ""

        if diff.is_creation:
            return self._apply_creation(content, diff)
        if diff.is_deletion:
            return self._apply_deletion(content, diff)
        return self._apply_modification(content, diff)

    # ------------------------------------------------------------------
    # Creation / deletion
    # ------------------------------------------------------------------

    def _apply_creation(self, content: str, diff: FileDiff) -> EditResult:
        path = diff.file_path
        new_lines = [text for hunk in diff.hunks for text in hunk.new_block]
        missing_newline = any(h.new_missing_newline for h in diff.hunks)
        new_content = join_content(new_lines, not missing_newline)

        if content == "":
            return EditResult(
                success=True,
                diff=render_file_diff(diff),
                message=f"Created {path}",
                changes_applied=len(diff.hunks),
                affected_files=[path],
                content=new_content,
                strategy="create",
            )
        if self._lines_equal(split_content(content)[0], new_lines):
            return self._already_applied(content, diff)

        logger.warning("[HunkApply] Cannot create %s: file has content", path)
        return EditResult.failure(
            EditErrorKind.CONTEXT_MISMATCH,
            f"Cannot create {path}: file already exists with different content",
            affected_files=[path],
        )

    def _apply_deletion(self, content: str, diff: FileDiff) -> EditResult:
        path = diff.file_path
        if content == "":
            return self._already_applied(content, diff)

        old_lines = [text for hunk in diff.hunks for text in hunk.old_block]
        if not self._lines_equal(split_content(content)[0], old_lines):
            logger.warning(
                "[HunkApply] Deletion hunk does not match content of %s", path
            )
            return EditResult.failure(
                EditErrorKind.CONTEXT_MISMATCH,
                f"Cannot delete {path}: content does not match the deletion hunk",
                affected_files=[path],
            )
        return EditResult(
            success=True,
            diff=render_file_diff(diff),
            message=f"Removed all content of {path}; the file should be deleted",
            changes_applied=len(diff.hunks),
            affected_files=[path],
            content="",
            strategy="delete",
        )

    # ------------------------------------------------------------------
    # Modification
    # ------------------------------------------------------------------

    def _apply_modification(self, content: str, diff: FileDiff) -> EditResult:
        path = diff.file_path
        lines, trailing_newline = split_content(content)
        if not lines:
            trailing_newline = True
        work = list(lines)

        offset = 0      # drift of the current content vs. header positions
        floor = 0       # hunks may not match before the previous one ends
        applied = 0
        already = 0
        failed: list[Hunk] = []

        for hunk in sorted(diff.hunks, key=lambda h: h.old_start):
            old_block, new_block = hunk.old_block, hunk.new_block
            base = hunk.old_start if hunk.is_pure_insertion else hunk.old_start - 1
            expected = base + offset

            # An additive hunk's pre-image survives in its post-image, so the
            # post-image is looked for first.
            if hunk.is_additive and new_block:
                found = self._find(work, new_block, expected, floor)
                if found is not None:
                    already += 1
                    offset = found - base + len(new_block) - len(old_block)
                    floor = found + len(new_block)
                    continue

            if not old_block:
                pos = self._insertion_point(work, expected, floor)
            else:
                pos = self._find(work, old_block, expected, floor)
                if pos is None and not hunk.is_additive:
                    found = (
                        self._find(work, new_block, expected, floor)
                        if new_block else None
                    )
                    if found is not None:
                        already += 1
                        offset = found - base + len(new_block) - len(old_block)
                        floor = found + len(new_block)
                        continue

            if pos is None:
                logger.warning(
                    "[HunkApply] Hunk %s failed for %s", hunk.header(), path,
                )
                failed.append(hunk)
                continue

            if pos != expected:
                logger.debug(
                    "[HunkApply] Hunk %s matched at line %d (offset %+d)",
                    hunk.header(), pos + 1, pos - expected,
                )
            work[pos:pos + len(old_block)] = new_block
            offset = pos - base + len(new_block) - len(old_block)
            floor = pos + len(new_block)
            applied += 1
            if hunk.old_missing_newline or hunk.new_missing_newline:
                trailing_newline = not hunk.new_missing_newline

        if failed:
            headers = ", ".join(h.header() for h in failed)
            return EditResult.failure(
                EditErrorKind.CONTEXT_MISMATCH,
                f"{len(failed)} of {len(diff.hunks)} hunk(s) failed to apply "
                f"to {path}: {headers}",
                affected_files=[path],
            )

        if applied == 0:
            return self._already_applied(content, diff)

        message = f"Applied {applied} hunk(s) to {path}"
        if already:
            message += f" ({already} already applied)"
        return EditResult(
            success=True,
            diff=render_file_diff(diff),
            message=message,
            changes_applied=applied,
            affected_files=[path],
            content=join_content(work, trailing_newline),
            strategy="hunk",
        )

    # ------------------------------------------------------------------
    # Matching helpers
    # ------------------------------------------------------------------

    def _offsets(self) -> Iterator[int]:
        yield 0
        for offset in range(1, self._slack + 1):
            yield -offset
            yield offset

    def _find(
        self,
        work: list[str],
        block: list[str],
        expected: int,
        floor: int,
    ) -> Optional[int]:
        """Locate *block* near *expected*, never before *floor*."""
        for delta in self._offsets():
            start = expected + delta
            if start < floor or start + len(block) > len(work):
                continue
            if self._lines_equal(work[start:start + len(block)], block):
                return start
        return None

    def _insertion_point(
        self,
        work: list[str],
        expected: int,
        floor: int,
    ) -> Optional[int]:
        pos = min(max(expected, floor), len(work))
        if abs(pos - expected) > self._slack:
            return None
        return pos

    def _lines_equal(self, actual: list[str], wanted: list[str]) -> bool:
        if len(actual) != len(wanted):
            return False
        if self._loose_whitespace:
            return all(a.rstrip() == w.rstrip() for a, w in zip(actual, wanted))
        return actual == wanted

    @staticmethod
    def _already_applied(content: str, diff: FileDiff) -> EditResult:
        path = diff.file_path
        logger.debug("[HunkApply] Diff already applied to %s", path)
        return EditResult(
            success=True,
            diff=render_file_diff(diff),
            message=f"Diff already applied to {path}; no changes made",
            changes_applied=0,
            affected_files=[path],
            content=content,
            strategy="hunk",
        )
