"""Tests for the RangedEditor."""

import pytest

from patch_engine.editing.edit_result import EditErrorKind
from patch_engine.editing.ranged_editor import RangedEditor


CONTENT = "a\nb\nc\n"

FUNC = """\
def f():
    a = 1
    b = 2
    c = 3
    return a
"""


class TestApplyRange:
    def test_replace_single_line(self):
        result = RangedEditor().apply_range(CONTENT, "B", 2, 2)

        assert result.success is True
        assert result.content == "a\nB\nc\n"
        assert result.changes_applied == 1
        assert result.strategy == "range"
        assert "-b\n+B\n" in result.diff

    def test_replace_with_more_lines(self):
        result = RangedEditor().apply_range(CONTENT, "x\ny\nz\n", 2, 3)

        assert result.content == "a\nx\ny\nz\n"

    def test_insert_at_top(self):
        result = RangedEditor().apply_range(CONTENT, "top", 1, 0)

        assert result.content == "top\na\nb\nc\n"
        assert "Inserted" in result.message

    def test_insert_after_last_line(self):
        result = RangedEditor().apply_range(CONTENT, "d", 4, 3)

        assert result.content == "a\nb\nc\nd\n"

    def test_append_form(self):
        result = RangedEditor().apply_range(CONTENT, "d", -1, -1)

        assert result.content == "a\nb\nc\nd\n"

    def test_delete_range(self):
        result = RangedEditor().apply_range(CONTENT, "", 2, 3)

        assert result.content == "a\n"

    def test_preserves_missing_trailing_newline(self):
        result = RangedEditor().apply_range("a\nb", "A", 1, 1)

        assert result.content == "A\nb"

    def test_empty_content(self):
        result = RangedEditor().apply_range("", "x", 1, 0, path="new.txt")

        assert result.success is True
        assert result.content == "x\n"
        assert result.affected_files == ["new.txt"]

    @pytest.mark.parametrize("start,end", [
        (0, 1),
        (5, 5),
        (2, 0),
        (2, 4),
        (-1, 2),
        (3, 1),
    ])
    def test_bounds_errors(self, start, end):
        result = RangedEditor().apply_range(CONTENT, "x", start, end)

        assert result.success is False
        assert result.error_kind is EditErrorKind.BOUNDS_ERROR
        assert result.content is None


class TestUnchangedMarkers:
    def test_marker_expands_to_original_lines(self):
        new_text = "def f():\n    # ...\n    c = 3\n    return a + c\n"
        result = RangedEditor().apply_range(
            FUNC, new_text, 1, 5, preserve_unchanged_markers=True, path="f.py",
        )

        assert result.success is True
        assert result.content == (
            "def f():\n    a = 1\n    b = 2\n    c = 3\n    return a + c\n"
        )

    def test_trailing_marker_keeps_rest_of_range(self):
        result = RangedEditor().apply_range(
            FUNC, "# header\ndef f():\n    # ...", 1, 5,
            preserve_unchanged_markers=True, path="f.py",
        )

        assert result.success is True
        assert result.content == "# header\n" + FUNC

    def test_unlocatable_anchor(self):
        new_text = "def f():\n    # ...\n    d = 4\n"
        result = RangedEditor().apply_range(
            FUNC, new_text, 1, 5, preserve_unchanged_markers=True, path="f.py",
        )

        assert result.success is False
        assert result.error_kind is EditErrorKind.CONTEXT_MISMATCH

    def test_markers_are_literal_when_disabled(self):
        result = RangedEditor().apply_range(FUNC, "    # ...", 2, 4, path="f.py")

        assert result.content == "def f():\n    # ...\n    return a\n"
