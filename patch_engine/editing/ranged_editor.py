"""
Ranged editor — replace an inclusive, 1-indexed line range with new text.
"""

from __future__ import annotations

import logging
from typing import Optional

from .block_matcher import is_elision_marker
from .diff_generator import DiffGenerator
from .edit_result import EditErrorKind, EditResult
from .hunk_applier import join_content, split_content
from .syntax_check import detect_language

logger = logging.getLogger(__name__)

APPEND = -1


class RangedEditor:
    """Line-range edits on raw text.

    ``apply_range(content, text, 3, 5)`` replaces lines 3..5,
    ``apply_range(content, text, 4, 3)`` inserts before line 4 and
    ``apply_range(content, text, -1, -1)`` appends after the last line.
    """

    def __init__(self, generator: Optional[DiffGenerator] = None) -> None:
        self._generator = generator or DiffGenerator()

    def apply_range(
        self,
        content: Optional[str],
        new_text: str,
        start_line: int,
        end_line: int,
        preserve_unchanged_markers: bool = False,
        path: Optional[str] = None,
    ) -> EditResult:
        """Replace lines ``start_line..end_line`` of *content* with *new_text*.

        Out-of-range positions are a ``bounds_error``; they are never
        clamped. The original trailing-newline state is kept.
        """
        content = content or ""
        lines, trailing_newline = split_content(content)
        if not lines:
            trailing_newline = True
        n = len(lines)

        if start_line == APPEND and end_line == APPEND:
            start, end = n + 1, n
        else:
            start, end = start_line, end_line
            if not (1 <= start <= n + 1 and start - 1 <= end <= n):
                message = (
                    f"Line range {start_line}-{end_line} is out of bounds for "
                    f"a file with {n} line(s)"
                )
                logger.warning("[RangedEdit] %s", message)
                return EditResult.failure(
                    EditErrorKind.BOUNDS_ERROR,
                    message,
                    affected_files=[path] if path else None,
                )

        if new_text.endswith("\n"):
            new_text = new_text[:-1]
        replacement = new_text.split("\n") if new_text else []
        original = lines[start - 1:end]

        if preserve_unchanged_markers:
            language = detect_language(path)
            expanded = self._expand_markers(replacement, original, language)
            if expanded is None:
                message = (
                    "Could not locate the lines around an unchanged-content "
                    f"marker within lines {start}-{end}"
                )
                logger.warning("[RangedEdit] %s", message)
                return EditResult.failure(
                    EditErrorKind.CONTEXT_MISMATCH,
                    message,
                    affected_files=[path] if path else None,
                )
            replacement = expanded

        new_lines = lines[:start - 1] + replacement + lines[end:]
        new_content = join_content(new_lines, trailing_newline)
        name = path or "file"
        if end < start:
            message = f"Inserted {len(replacement)} line(s) before line {start}"
        else:
            message = (
                f"Replaced lines {start}-{end} with {len(replacement)} line(s)"
            )
        logger.debug("[RangedEdit] %s: %s", name, message)
        return EditResult(
            success=True,
            diff=self._generator.generate(
                content, new_content, f"a/{name}", f"b/{name}",
            ),
            message=message,
            changes_applied=1,
            affected_files=[path] if path else None,
            content=new_content,
            strategy="range",
        )

    @staticmethod
    def _expand_markers(
        replacement: list[str],
        original: list[str],
        language: Optional[str],
    ) -> Optional[list[str]]:
        """Expand marker lines into the original lines they stand for.

        A marker covers everything between the previous literal segment and
        the next one, both located in order within *original*. Returns None
        when a segment cannot be located.
        """
        if not any(is_elision_marker(l, language) for l in replacement):
            return replacement

        # Runs of literal lines; each marker is a run of its own.
        runs: list[tuple[bool, list[str]]] = []
        for line in replacement:
            marker = is_elision_marker(line, language)
            if runs and not marker and not runs[-1][0]:
                runs[-1][1].append(line)
            else:
                runs.append((marker, [line]))

        out: list[str] = []
        cursor = 0
        for idx, (marker, block) in enumerate(runs):
            following = runs[idx + 1] if idx + 1 < len(runs) else None
            if not marker:
                out.extend(block)
                if following is not None and following[0]:
                    pos = _locate(original, block[-1], cursor)
                    if pos is None:
                        return None
                    cursor = pos + 1
                continue
            if following is None:
                stop = len(original)
            elif following[0]:
                stop = cursor
            else:
                stop = _locate(original, following[1][0], cursor)
                if stop is None:
                    return None
            out.extend(original[cursor:stop])
            cursor = stop
        return out


def _locate(lines: list[str], wanted: str, start: int) -> Optional[int]:
    for i in range(start, len(lines)):
        if lines[i] == wanted:
            return i
    return None
