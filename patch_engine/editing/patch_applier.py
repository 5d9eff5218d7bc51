"""
Patch applier — applies a multi-file unified diff to files on disk through a
Runtime, with syntax validation and atomic, all-or-nothing writes.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from typing import Optional

from .diff_parser import DiffParser, FileDiff, render_multi_file_diff
from .edit_result import EditResult
from .hunk_applier import DEFAULT_SLACK, Direction, HunkApplier
from .metrics import DEFAULT_METRICS_DIR, log_edit_metric
from .syntax_check import check_syntax, detect_language

logger = logging.getLogger(__name__)


class LocalRuntime:
    """File access rooted at *base_dir*.

    Writes go to a temp file in the target directory and are renamed into
    place. Writers to the same path are serialized.
    """

    def __init__(self, base_dir: str = ".") -> None:
        self._base = os.path.abspath(base_dir)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def resolve(self, path: str) -> str:
        """Absolute path of *path*; raises ValueError outside the base dir."""
        full = os.path.abspath(os.path.join(self._base, path))
        if os.path.commonpath([self._base, full]) != self._base:
            raise ValueError(f"Path escapes the runtime root: {path}")
        return full

    def _lock_for(self, full: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(full, threading.Lock())

    def file_exists(self, path: str) -> bool:
        return os.path.isfile(self.resolve(path))

    def read_file(self, path: str) -> str:
        with open(self.resolve(path), "r", encoding="utf-8", newline="") as f:
            return f.read()

    def write_file(self, path: str, content: str) -> None:
        full = self.resolve(path)
        with self._lock_for(full):
            directory = os.path.dirname(full)
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=directory, prefix=".patch_engine_", suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                    f.write(content)
                os.replace(tmp_path, full)
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise

    def delete_file(self, path: str) -> bool:
        full = self.resolve(path)
        with self._lock_for(full):
            try:
                os.remove(full)
            except FileNotFoundError:
                return False
        return True


@dataclass
class _PendingFile:
    """One file's computed change, held in memory until all files succeed."""
    path: str
    existed: bool
    original: str
    result: EditResult
    file_diff: FileDiff

    @property
    def delete(self) -> bool:
        return self.result.strategy == "delete"

    @property
    def changed(self) -> bool:
        return bool(self.result.changes_applied)


class PatchApplier:
    """Apply diff text to files through a Runtime."""

    def __init__(
        self,
        runtime,
        slack: int = DEFAULT_SLACK,
        validate_syntax: bool = True,
        fallback_on_syntax_error: bool = True,
        record_metrics: bool = False,
        metrics_root: Optional[str] = None,
        metrics_dir: str = DEFAULT_METRICS_DIR,
        loose_whitespace: bool = False,
    ) -> None:
        self._runtime = runtime
        self._parser = DiffParser()
        self._hunks = HunkApplier(slack=slack, loose_whitespace=loose_whitespace)
        self._validate_syntax = validate_syntax
        self._fallback_on_syntax_error = fallback_on_syntax_error
        self._record_metrics = record_metrics
        self._metrics_root = metrics_root
        self._metrics_dir = metrics_dir

    @classmethod
    def from_config(
        cls, runtime, config, metrics_root: Optional[str] = None,
    ) -> "PatchApplier":
        return cls(
            runtime,
            slack=config.HUNK_SLACK_LINES,
            validate_syntax=config.VALIDATE_SYNTAX,
            record_metrics=config.RECORD_METRICS,
            metrics_root=metrics_root,
            metrics_dir=config.METRICS_DIR,
            loose_whitespace=config.IGNORE_WHITESPACE,
        )

    def apply(
        self,
        diff_text: str,
        reverse: bool = False,
        dry_run: bool = False,
    ) -> EditResult:
        """Apply every file diff in *diff_text*.

        Multi-file patches are transactional: if any file fails to apply or
        (when enabled) breaks syntax, nothing is written. A failed write
        rolls back the files already written.

        Parameters
        ----------
        diff_text:
            Unified diff, possibly covering several files.
        reverse:
            Undo the diff instead of applying it.
        dry_run:
            Compute and validate, but do not touch the files.

        Returns
        -------
        EditResult
            ``file_results`` holds one entry per file diff.
        """
        parsed = self._parser.parse(diff_text)
        if not parsed.parse_successful:
            logger.warning("[PatchApply] Could not parse diff: %s", parsed.error_message)
            return EditResult.failure(parsed.error_kind, parsed.error_message)

        direction = Direction.REVERSE if reverse else Direction.FORWARD

        # Phase 1: compute all new contents without writing
        pending: dict[str, _PendingFile] = {}
        file_results: list[dict] = []
        failures: list[EditResult] = []
        for file_diff in parsed.file_diffs:
            path = file_diff.file_path
            try:
                current = pending.get(path)
                if current is not None:
                    existed, original = current.existed, current.original
                    content = current.result.content
                else:
                    existed = self._runtime.file_exists(path)
                    original = self._runtime.read_file(path) if existed else ""
                    content = original
            except (OSError, ValueError) as exc:
                logger.warning("[PatchApply] Cannot read %s: %s", path, exc)
                result = EditResult(
                    success=False,
                    message=f"Cannot read {path}: {exc}",
                    changes_applied=0,
                    affected_files=[path],
                )
            else:
                result = self._hunks.apply(content, file_diff, direction)

            file_results.append(self._file_result(path, result))
            self._log_metric(path, result, reverse)
            if not result.success:
                failures.append(result)
                continue
            if current is not None:
                result.changes_applied += current.result.changes_applied
            pending[path] = _PendingFile(path, existed, original, result, file_diff)

        affected = list(dict.fromkeys(fd.file_path for fd in parsed.file_diffs))
        if failures:
            first = failures[0]
            return EditResult(
                success=False,
                message="; ".join(f.message for f in failures if f.message),
                changes_applied=0,
                affected_files=affected,
                error_kind=first.error_kind,
                file_results=file_results,
            )

        # Phase 2: syntax validation of changed files
        if self._validate_syntax:
            for item in pending.values():
                if item.delete or not item.changed:
                    continue
                error = self._syntax_regression(item)
                if error is None:
                    continue
                if self._fallback_on_syntax_error:
                    logger.warning(
                        "[PatchApply] Syntax validation failed for %s, "
                        "aborting all patches",
                        item.path,
                    )
                    return EditResult(
                        success=False,
                        message=f"Syntax error in patched {item.path}: {error}",
                        changes_applied=0,
                        affected_files=affected,
                        file_results=file_results,
                    )
                logger.warning(
                    "[PatchApply] Syntax error in patched %s: %s", item.path, error,
                )

        total = sum(item.result.changes_applied for item in pending.values())
        applied_diffs = [
            fd.reversed() if reverse else fd for fd in parsed.file_diffs
        ]

        # Phase 3: write all files
        if not dry_run:
            error = self._write_all(list(pending.values()))
            if error is not None:
                return EditResult(
                    success=False,
                    message=error,
                    changes_applied=0,
                    affected_files=affected,
                    file_results=file_results,
                )

        if total == 0:
            message = "Diff already applied; no changes made"
        else:
            verb = "Would apply" if dry_run else "Applied"
            message = (
                f"{verb} {total} hunk(s) to {len(pending)} file(s)"
                + (" in reverse" if reverse else "")
            )
        logger.info("[PatchApply] %s", message)
        return EditResult(
            success=True,
            diff=render_multi_file_diff(applied_diffs),
            message=message,
            changes_applied=total,
            affected_files=affected,
            strategy="hunk",
            file_results=file_results,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _syntax_regression(item: _PendingFile) -> Optional[str]:
        """Syntax error introduced by the edit, or None.

        Files that were already broken before the edit are not blamed on it.
        """
        language = detect_language(item.path)
        if language is None:
            return None
        after = check_syntax(item.result.content or "", language)
        if after is None:
            return None
        if item.original and check_syntax(item.original, language) is not None:
            logger.debug(
                "[PatchApply] %s had syntax errors before the edit", item.path,
            )
            return None
        return after

    def _write_all(self, items: list[_PendingFile]) -> Optional[str]:
        """Write or delete every changed file; roll back on failure."""
        done: list[_PendingFile] = []
        current = None
        try:
            for item in items:
                current = item
                if not item.changed:
                    continue
                if item.delete:
                    self._runtime.delete_file(item.path)
                else:
                    self._runtime.write_file(item.path, item.result.content or "")
                done.append(item)
        except OSError as exc:
            logger.error(
                "[PatchApply] Write failed for %s, rolling back %d files: %s",
                current.path, len(done), exc,
            )
            for item in done:
                try:
                    if item.existed:
                        self._runtime.write_file(item.path, item.original)
                    else:
                        self._runtime.delete_file(item.path)
                except OSError as rb_exc:
                    logger.error(
                        "[PatchApply] Rollback failed for %s: %s", item.path, rb_exc,
                    )
            return f"Write failed for {current.path}: {exc}"
        return None

    @staticmethod
    def _file_result(path: str, result: EditResult) -> dict:
        return {
            "filePath": path,
            "success": result.success,
            "message": result.message,
            "changesApplied": result.changes_applied or 0,
        }

    def _log_metric(self, path: str, result: EditResult, reverse: bool) -> None:
        if not self._record_metrics:
            return
        log_edit_metric(
            {
                "file": path,
                "success": result.success,
                "changes_applied": result.changes_applied or 0,
                "strategy": result.strategy,
                "error_kind": result.error_kind.value if result.error_kind else None,
                "reverse": reverse,
            },
            project_root=self._metrics_root,
            metrics_dir=self._metrics_dir,
        )
