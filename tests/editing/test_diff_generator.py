"""Tests for the DiffGenerator."""

import difflib
import hashlib
from datetime import datetime, timedelta, timezone

from patch_engine.editing.diff_generator import (
    DiffGenerator, calculate_file_hash, git_timestamp, split_keepends,
)
from patch_engine.editing.diff_parser import DiffParser
from patch_engine.editing.hunk_applier import Direction, HunkApplier


OLD = "".join(f"line {i}\n" for i in range(1, 21))
NEW = OLD.replace("line 3\n", "line three\n").replace(
    "line 17\n", "line 17\nline 17.5\n",
)


class TestSplitKeepends:
    def test_keeps_terminators(self):
        assert split_keepends("a\nb\n") == ["a\n", "b\n"]
        assert split_keepends("a\nb") == ["a\n", "b"]
        assert split_keepends("") == []

    def test_only_splits_on_newline(self):
        assert split_keepends("a\rb\n") == ["a\rb\n"]


class TestGenerate:
    def test_identical_inputs(self):
        assert DiffGenerator().generate("same\n", "same\n") == ""

    def test_single_change(self):
        diff = DiffGenerator().generate("a\nb\nc\n", "a\nB\nc\n")

        assert diff == (
            "--- a/file\n+++ b/file\n@@ -1,3 +1,3 @@\n a\n-b\n+B\n c\n"
        )

    def test_matches_difflib_unified_diff(self):
        expected = "".join(difflib.unified_diff(
            OLD.splitlines(keepends=True),
            NEW.splitlines(keepends=True),
            "a/file", "b/file",
        ))
        assert DiffGenerator().generate(OLD, NEW) == expected

    def test_context_lines(self):
        one = DiffGenerator(context_lines=1).generate_file_diff(OLD, NEW)
        assert len(one.hunks) == 2
        assert one.hunks[0].old_start == 2

    def test_creation(self):
        diff = DiffGenerator().generate("", "x\n", None, "b/new.txt")

        assert diff == "--- /dev/null\n+++ b/new.txt\n@@ -0,0 +1 @@\n+x\n"

    def test_deletion(self):
        diff = DiffGenerator().generate("x\ny\n", "", "a/old.txt", None)

        assert diff == "--- a/old.txt\n+++ /dev/null\n@@ -1,2 +0,0 @@\n-x\n-y\n"

    def test_missing_final_newline(self):
        diff = DiffGenerator().generate("a\n", "a\nb")

        assert diff == (
            "--- a/file\n+++ b/file\n@@ -1 +1,2 @@\n a\n+b\n"
            "\\ No newline at end of file\n"
        )

    def test_git_header(self):
        diff = DiffGenerator().generate(
            "a\n", "b\n", "a/x.py", "b/x.py", git_header=True,
        )
        lines = diff.splitlines()

        assert lines[0] == "diff --git a/x.py b/x.py"
        assert lines[1] == (
            f"index {calculate_file_hash('a' + chr(10))}.."
            f"{calculate_file_hash('b' + chr(10))} 100644"
        )
        assert lines[2] == "--- a/x.py"

    def test_explicit_hashes(self):
        diff = DiffGenerator().generate(
            "a\n", "b\n", git_header=True, old_hash="1111111", new_hash="2222222",
        )
        assert "index 1111111..2222222 100644\n" in diff

    def test_timestamp_suffix(self):
        diff = DiffGenerator().generate("a\n", "b\n", timestamp=True)
        first = diff.splitlines()[0]

        assert first.startswith("--- a/file\t")
        parsed = DiffParser().parse(diff)
        assert parsed.file_diffs[0].old_path == "a/file"

    def test_output_parses(self):
        diff = DiffGenerator().generate(OLD, NEW, "a/src/x.txt", "b/src/x.txt")
        parsed = DiffParser().parse(diff)

        assert parsed.parse_successful is True
        assert parsed.file_diffs[0].file_path == "src/x.txt"


class TestRoundTrip:
    def _round_trip(self, old, new):
        fd = DiffGenerator().generate_file_diff(old, new)
        applier = HunkApplier()
        forward = applier.apply(old, fd)
        assert forward.success is True
        assert forward.content == new
        back = applier.apply(forward.content, fd, Direction.REVERSE)
        assert back.success is True
        assert back.content == old

    def test_modification(self):
        self._round_trip(OLD, NEW)

    def test_trailing_newline_changes(self):
        self._round_trip("a\nb", "a\nb\n")
        self._round_trip("a\nb\n", "a\nc")

    def test_from_empty(self):
        self._round_trip("", "first\nsecond\n")


class TestHelpers:
    def test_calculate_file_hash(self):
        assert calculate_file_hash("hello") == hashlib.sha1(b"hello").hexdigest()[:7]
        assert len(calculate_file_hash("")) == 7

    def test_git_timestamp(self):
        utc = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert git_timestamp(utc) == "1704067200 +0000"

        india = datetime(2024, 1, 1, 5, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))
        assert git_timestamp(india) == "1704067200 +0530"

        west = datetime(2023, 12, 31, 19, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert git_timestamp(west) == "1704067200 -0500"


class TestCompareFiles:
    def test_two_files(self, tmp_path):
        old = tmp_path / "old.txt"
        new = tmp_path / "new.txt"
        old.write_text("a\nb\n", encoding="utf-8")
        new.write_text("a\nc\n", encoding="utf-8")

        diff = DiffGenerator().compare_files(str(old), str(new))

        assert diff.startswith("--- a/old.txt\n+++ b/new.txt\n")
        assert "-b\n+c\n" in diff

    def test_missing_file_is_dev_null(self, tmp_path):
        new = tmp_path / "new.txt"
        new.write_text("x\n", encoding="utf-8")

        diff = DiffGenerator().compare_files(
            str(tmp_path / "missing.txt"), str(new), new_path="b/new.txt",
        )

        assert diff == "--- /dev/null\n+++ b/new.txt\n@@ -0,0 +1 @@\n+x\n"
