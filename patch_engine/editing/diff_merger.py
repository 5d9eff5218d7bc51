"""
Diff merger — combine several unified diffs into one multi-file diff,
detecting conflicts between hunks that touch the same lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .diff_parser import DiffParser, FileDiff, Hunk, render_file_diff
from .edit_result import to_camel_dict

logger = logging.getLogger(__name__)


class ConflictResolution(str, Enum):
    FAIL = "fail"
    SKIP = "skip"
    CONCATENATE = "concatenate"


class ConflictType(str, Enum):
    OVERLAPPING_HUNKS = "overlapping_hunks"
    INCONSISTENT_HEADERS = "inconsistent_headers"


@dataclass
class Conflict:
    type: ConflictType
    file_path: str
    detail: str = ""


@dataclass
class MergeResult:
    """Outcome of :meth:`DiffMerger.merge`.

    ``conflicts`` and ``warnings`` are ``None`` when empty. ``files_processed``
    counts file diffs from inputs that parsed cleanly.
    """
    success: bool
    merged_diff: str
    files_processed: int
    conflicts: Optional[list[Conflict]] = None
    warnings: Optional[list[str]] = None

    def to_dict(self) -> dict:
        return to_camel_dict(self)


def _hunks_overlap(a: Hunk, b: Hunk) -> bool:
    """True when two hunks against the same base touch the same lines.

    A pure insertion "after line p" collides with another insertion at p and
    with any change spanning both p and p + 1.
    """
    if a.old_lines and b.old_lines:
        return (
            a.old_start < b.old_start + b.old_lines
            and b.old_start < a.old_start + a.old_lines
        )
    if not a.old_lines and not b.old_lines:
        return a.old_start == b.old_start
    insertion, change = (a, b) if not a.old_lines else (b, a)
    p = insertion.old_start
    return change.old_start <= p and p + 1 < change.old_start + change.old_lines


def _renumber(hunks: list[Hunk]) -> list[Hunk]:
    """Sort hunks by old position and recompute their new-side starts."""
    out: list[Hunk] = []
    delta = 0
    for hunk in sorted(hunks, key=lambda h: (h.old_start, h.old_lines)):
        idx0 = hunk.old_start - 1 if hunk.old_lines else hunk.old_start
        new_start = idx0 + delta + 1 if hunk.new_lines else idx0 + delta
        out.append(Hunk(
            old_start=hunk.old_start,
            old_lines=hunk.old_lines,
            new_start=new_start,
            new_lines=hunk.new_lines,
            lines=hunk.lines,
            section=hunk.section,
        ))
        delta += hunk.new_lines - hunk.old_lines
    return out


class DiffMerger:
    """Merge a list of diff texts into one."""

    def __init__(
        self,
        parser: Optional[DiffParser] = None,
        conflict_resolution: ConflictResolution | str = ConflictResolution.FAIL,
        preserve_git_headers: bool = False,
    ) -> None:
        self._parser = parser or DiffParser()
        self._resolution = ConflictResolution(conflict_resolution)
        self._preserve_git_headers = preserve_git_headers

    @classmethod
    def from_config(cls, config) -> "DiffMerger":
        return cls(
            conflict_resolution=config.CONFLICT_RESOLUTION,
            preserve_git_headers=config.PRESERVE_GIT_HEADERS,
        )

    def merge(
        self,
        diffs: list[str],
        conflict_resolution: ConflictResolution | str | None = None,
        preserve_git_headers: Optional[bool] = None,
    ) -> MergeResult:
        """Merge *diffs* into a single multi-file diff.

        Parameters
        ----------
        diffs:
            Unified diff texts, in order.
        conflict_resolution:
            ``fail`` returns no merged diff on any conflict, ``skip`` drops
            conflicted files, ``concatenate`` keeps conflicting hunks as
            separate sections. Defaults to the merger's policy.
        preserve_git_headers:
            Emit captured ``diff --git``/``index`` lines.

        Returns
        -------
        MergeResult
        """
        policy = (
            self._resolution if conflict_resolution is None
            else ConflictResolution(conflict_resolution)
        )
        if preserve_git_headers is None:
            preserve_git_headers = self._preserve_git_headers
        if not diffs:
            return MergeResult(success=True, merged_diff="", files_processed=0)

        conflicts: list[Conflict] = []
        warnings: list[str] = []
        unparsed: list[str] = []
        groups: dict[str, list[FileDiff]] = {}
        files_processed = 0
        parse_failed = False

        for n, text in enumerate(diffs, start=1):
            parsed = self._parser.parse(text)
            if parsed.errors:
                reason = parsed.error_message
                warnings.append(f"Failed to parse diff #{n}: {reason}")
                logger.warning("[DiffMerge] Failed to parse diff #%d: %s", n, reason)
                if policy is ConflictResolution.CONCATENATE:
                    unparsed.append(text)
                    continue
                parse_failed = True
                conflicts.append(Conflict(
                    ConflictType.INCONSISTENT_HEADERS, f"<diff #{n}>", reason,
                ))
                continue
            files_processed += len(parsed.file_diffs)
            for file_diff in parsed.file_diffs:
                groups.setdefault(file_diff.file_path, []).append(file_diff)

        sections: list[str] = []
        extras: list[str] = []
        for path, members in groups.items():
            if len(members) == 1:
                sections.append(self._render(members[0], preserve_git_headers))
                continue

            merged, rejected, group_conflicts = self._merge_group(path, members)
            if not group_conflicts:
                sections.append(
                    self._render(members[0], preserve_git_headers, merged)
                )
                continue

            conflicts.extend(group_conflicts)
            if policy is ConflictResolution.SKIP:
                warnings.append(f"Skipped file {path} due to merge conflicts")
                logger.warning("[DiffMerge] Skipped %s due to merge conflicts", path)
            elif policy is ConflictResolution.CONCATENATE:
                sections.append(
                    self._render(members[0], preserve_git_headers, merged)
                )
                for file_diff, hunks in rejected:
                    extras.append(
                        self._render(file_diff, preserve_git_headers, hunks)
                    )
                warnings.extend(
                    f"Appended conflicting changes for {path} as a separate "
                    f"section: {c.detail}"
                    for c in group_conflicts
                )

        if conflicts and policy is ConflictResolution.FAIL:
            logger.warning(
                "[DiffMerge] %d conflict(s); no merged diff produced", len(conflicts),
            )
            return MergeResult(
                success=False,
                merged_diff="",
                files_processed=files_processed,
                conflicts=conflicts,
                warnings=warnings or None,
            )

        merged_diff = "".join(sections + extras)
        for text in unparsed:
            merged_diff += text if text.endswith("\n") else text + "\n"
        if merged_diff:
            merged_diff = merged_diff.rstrip("\n") + "\n"

        if policy is ConflictResolution.SKIP:
            success = not parse_failed
        else:
            success = True
        return MergeResult(
            success=success,
            merged_diff=merged_diff,
            files_processed=files_processed,
            conflicts=conflicts or None,
            warnings=warnings or None,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _merge_group(
        path: str,
        members: list[FileDiff],
    ) -> tuple[
        list[Hunk],
        list[tuple[FileDiff, list[Hunk]]],
        list[Conflict],
    ]:
        """Merge the hunks of several diffs of one file.

        Returns (accepted hunks, rejected (diff, hunks) pairs, conflicts).
        When the headers disagree the first diff is kept whole.
        """
        if any(m.is_creation or m.is_deletion for m in members):
            conflict = Conflict(
                ConflictType.INCONSISTENT_HEADERS,
                path,
                "File is created or deleted by one diff and changed by another",
            )
            rejected = [(m, m.hunks) for m in members[1:]]
            return list(members[0].hunks), rejected, [conflict]

        accepted: list[tuple[int, Hunk]] = []
        rejected: dict[int, list[Hunk]] = {}
        conflicts: list[Conflict] = []
        for index, member in enumerate(members):
            for hunk in member.hunks:
                clash = next(
                    (
                        other for owner, other in accepted
                        if owner != index and _hunks_overlap(hunk, other)
                    ),
                    None,
                )
                if clash is None:
                    accepted.append((index, hunk))
                    continue
                conflicts.append(Conflict(
                    ConflictType.OVERLAPPING_HUNKS,
                    path,
                    f"{hunk.header()} overlaps {clash.header()}",
                ))
                rejected.setdefault(index, []).append(hunk)

        merged = _renumber([hunk for _, hunk in accepted])
        return (
            merged,
            [(members[i], hunks) for i, hunks in sorted(rejected.items())],
            conflicts,
        )

    @staticmethod
    def _render(
        file_diff: FileDiff,
        preserve_git_headers: bool,
        hunks: Optional[list[Hunk]] = None,
    ) -> str:
        return render_file_diff(
            file_diff,
            include_git_headers=preserve_git_headers,
            hunks=hunks,
        )
