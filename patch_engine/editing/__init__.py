"""Text editing — diff parsing, hunk application, block and range edits."""

from .edit_result import EditResult, EditErrorKind
from .diff_parser import (
    DiffParser, ParsedDiff, FileDiff, Hunk, HunkLine, LineKind, DiffError,
    render_hunk, render_file_diff, render_multi_file_diff,
)
from .hunk_applier import HunkApplier, Direction
from .block_matcher import BlockMatcher, MatchOptions, is_elision_marker
from .ranged_editor import RangedEditor
from .diff_generator import DiffGenerator, calculate_file_hash, git_timestamp
from .diff_merger import (
    DiffMerger, MergeResult, Conflict, ConflictType, ConflictResolution,
)
from .diff_utils import (
    DiffValidationResult, ReverseDiffResult, validate_diff_format,
    reverse_diff, clean_diff_timestamps, extract_file_path,
    is_file_creation, is_file_deletion, count_diff_changes,
    ensure_diff_line_ending, add_file_hashes_to_diff,
)
from .patch_applier import PatchApplier, LocalRuntime
from .metrics import log_edit_metric, read_edit_stats

__all__ = [
    "EditResult", "EditErrorKind",
    "DiffParser", "ParsedDiff", "FileDiff", "Hunk", "HunkLine", "LineKind",
    "DiffError", "render_hunk", "render_file_diff", "render_multi_file_diff",
    "HunkApplier", "Direction",
    "BlockMatcher", "MatchOptions", "is_elision_marker",
    "RangedEditor",
    "DiffGenerator", "calculate_file_hash", "git_timestamp",
    "DiffMerger", "MergeResult", "Conflict", "ConflictType",
    "ConflictResolution",
    "DiffValidationResult", "ReverseDiffResult", "validate_diff_format",
    "reverse_diff", "clean_diff_timestamps", "extract_file_path",
    "is_file_creation", "is_file_deletion", "count_diff_changes",
    "ensure_diff_line_ending", "add_file_hashes_to_diff",
    "PatchApplier", "LocalRuntime",
    "log_edit_metric", "read_edit_stats",
]
