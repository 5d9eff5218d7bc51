"""
Diff generator — compute unified diffs between two texts (or two files)
for audit logs and later undo.
"""

from __future__ import annotations

import difflib
import hashlib
import logging
import os
from datetime import datetime, timedelta
from typing import Optional

from .diff_parser import (
    DEV_NULL,
    FileDiff,
    Hunk,
    HunkLine,
    LineKind,
    render_hunk,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LINES = 3


def calculate_file_hash(content: str) -> str:
    """Short (7 hex chars) SHA-1 of *content*, as used on ``index`` lines."""
    return hashlib.sha1(content.encode("utf-8")).hexdigest()[:7]


def git_timestamp(now: Optional[datetime] = None) -> str:
    """Return a git-style ``<epoch> +HHMM`` timestamp."""
    now = now or datetime.now().astimezone()
    offset = now.utcoffset() or timedelta(0)
    minutes = int(offset.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return f"{int(now.timestamp())} {sign}{minutes // 60:02d}{minutes % 60:02d}"


def split_keepends(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping terminators (unlike ``splitlines``)."""
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _hunk_line(kind: LineKind, raw: str) -> HunkLine:
    if raw.endswith("\n"):
        return HunkLine(kind, raw[:-1])
    return HunkLine(kind, raw, no_newline=True)


class DiffGenerator:
    """Line-based unified diff generation on top of difflib."""

    def __init__(self, context_lines: int = DEFAULT_CONTEXT_LINES) -> None:
        self._context = context_lines

    @classmethod
    def from_config(cls, config) -> "DiffGenerator":
        return cls(context_lines=config.CONTEXT_LINES)

    def generate_file_diff(
        self,
        old_content: str,
        new_content: str,
        old_path: Optional[str] = "a/file",
        new_path: Optional[str] = "b/file",
    ) -> Optional[FileDiff]:
        """Return the structured diff, or None when the texts are equal."""
        old_content = old_content or ""
        new_content = new_content or ""
        if old_content == new_content:
            return None

        a = split_keepends(old_content)
        b = split_keepends(new_content)
        matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)

        hunks: list[Hunk] = []
        for group in matcher.get_grouped_opcodes(self._context):
            i1, i2 = group[0][1], group[-1][2]
            j1, j2 = group[0][3], group[-1][4]
            hunk = Hunk(
                old_start=i1 + 1 if i2 > i1 else i1,
                old_lines=i2 - i1,
                new_start=j1 + 1 if j2 > j1 else j1,
                new_lines=j2 - j1,
            )
            for tag, a1, a2, b1, b2 in group:
                if tag == "equal":
                    hunk.lines.extend(
                        _hunk_line(LineKind.CONTEXT, line) for line in a[a1:a2]
                    )
                    continue
                if tag in ("replace", "delete"):
                    hunk.lines.extend(
                        _hunk_line(LineKind.DELETION, line) for line in a[a1:a2]
                    )
                if tag in ("replace", "insert"):
                    hunk.lines.extend(
                        _hunk_line(LineKind.ADDITION, line) for line in b[b1:b2]
                    )
            hunks.append(hunk)

        return FileDiff(old_path=old_path, new_path=new_path, hunks=hunks)

    def generate(
        self,
        old_content: str,
        new_content: str,
        old_path: Optional[str] = "a/file",
        new_path: Optional[str] = "b/file",
        git_header: bool = False,
        old_hash: Optional[str] = None,
        new_hash: Optional[str] = None,
        timestamp: bool = False,
    ) -> str:
        """Return unified diff text from *old_content* to *new_content*.

        ``None`` paths render as ``/dev/null``. Identical inputs give ``""``.
        """
        file_diff = self.generate_file_diff(
            old_content, new_content, old_path, new_path,
        )
        if file_diff is None:
            return ""

        out: list[str] = []
        if git_header:
            name = file_diff.file_path
            out.append(f"diff --git a/{name} b/{name}")
            out.append(
                f"index {old_hash or calculate_file_hash(old_content or '')}.."
                f"{new_hash or calculate_file_hash(new_content or '')} 100644"
            )
        suffix = f"\t{git_timestamp()}" if timestamp else ""
        out.append(f"--- {old_path or DEV_NULL}{suffix}")
        out.append(f"+++ {new_path or DEV_NULL}{suffix}")
        for hunk in file_diff.hunks:
            out.extend(render_hunk(hunk))
        return "\n".join(out) + "\n"

    def compare_files(
        self,
        old_file: str,
        new_file: str,
        old_path: Optional[str] = None,
        new_path: Optional[str] = None,
    ) -> str:
        """Diff two files on disk; a missing file counts as ``/dev/null``."""
        old_content, old_exists = self._read(old_file)
        new_content, new_exists = self._read(new_file)
        if old_exists:
            old_path = old_path or f"a/{os.path.basename(old_file)}"
        else:
            old_path = None
        if new_exists:
            new_path = new_path or f"b/{os.path.basename(new_file)}"
        else:
            new_path = None
        return self.generate(old_content, new_content, old_path, new_path)

    @staticmethod
    def _read(path: str) -> tuple[str, bool]:
        try:
            with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
                return f.read(), True
        except FileNotFoundError:
            logger.debug("[DiffGen] %s not found, treating as /dev/null", path)
            return "", False
