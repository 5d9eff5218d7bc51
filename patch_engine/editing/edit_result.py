"""
Edit result — the common output of every text-editing operation.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Optional


class EditErrorKind(str, Enum):
    """Closed set of expected failure kinds."""
    PARSE_ERROR = "parse_error"
    INCONSISTENT_HEADERS = "inconsistent_headers"
    OVERLAPPING_HUNKS = "overlapping_hunks"
    CONTEXT_MISMATCH = "context_mismatch"
    AMBIGUOUS_MATCH = "ambiguous_match"
    BOUNDS_ERROR = "bounds_error"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_camel_dict(obj: Any) -> dict:
    """Serialize a result dataclass with camelCase keys, dropping ``None``."""
    out: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, list):
            value = [
                to_camel_dict(v) if hasattr(v, "__dataclass_fields__") else v
                for v in value
            ]
        out[_camel(f.name)] = value
    return out


@dataclass
class EditResult:
    """Result of a hunk application, block replacement or ranged edit.

    ``content`` holds the new file content for the caller to persist; it is
    ``None`` on failure. ``changes_applied == 0`` together with
    ``success`` means the edit was already present.
    """
    success: bool
    diff: Optional[str] = None
    message: Optional[str] = None
    changes_applied: Optional[int] = None
    affected_files: Optional[list[str]] = None
    content: Optional[str] = None
    error_kind: Optional[EditErrorKind] = None
    strategy: Optional[str] = None
    file_results: Optional[list[dict]] = None

    @property
    def already_applied(self) -> bool:
        return self.success and self.changes_applied == 0

    @classmethod
    def failure(
        cls,
        kind: EditErrorKind,
        message: str,
        affected_files: Optional[list[str]] = None,
    ) -> "EditResult":
        return cls(
            success=False,
            message=message,
            changes_applied=0,
            affected_files=affected_files,
            error_kind=kind,
        )

    def to_dict(self) -> dict:
        return to_camel_dict(self)
