"""
patch_engine — diff/patch engine for coding agents.

Public API for library usage::

    from patch_engine import DiffParser, HunkApplier

    parsed = DiffParser().parse(diff_text)
    result = HunkApplier().apply(content, parsed.file_diffs[0])
"""

from .config import Config
from .editing import (
    BlockMatcher,
    DiffGenerator,
    DiffMerger,
    DiffParser,
    EditErrorKind,
    EditResult,
    HunkApplier,
    MatchOptions,
    MergeResult,
    PatchApplier,
    RangedEditor,
)

__all__ = [
    "Config",
    "BlockMatcher",
    "DiffGenerator",
    "DiffMerger",
    "DiffParser",
    "EditErrorKind",
    "EditResult",
    "HunkApplier",
    "MatchOptions",
    "MergeResult",
    "PatchApplier",
    "RangedEditor",
]
