"""Tests for the DiffMerger."""

import pytest

from patch_engine.editing.diff_merger import (
    ConflictResolution, ConflictType, DiffMerger,
)


SINGLE = """\
--- a/test.js
+++ b/test.js
@@ -1,3 +1,3 @@
 function test() {
-  return "old";
+  return "new";
 }
"""

FILE1 = """\
--- a/file1.js
+++ b/file1.js
@@ -1,3 +1,3 @@
 const value = {
-  old: "value1",
+  new: "value1",
 };
"""

FILE2 = """\
--- a/file2.js
+++ b/file2.js
@@ -1,3 +1,3 @@
 const config = {
-  debug: false,
+  debug: true,
 };
"""

CONFIG_TOP = """\
--- a/config.js
+++ b/config.js
@@ -1,3 +1,3 @@
 const config = {
-  debug: false,
+  debug: true,
 };
"""

CONFIG_BOTTOM = """\
--- a/config.js
+++ b/config.js
@@ -10,2 +10,3 @@
   other: "value",
+  verbose: true,
 };
"""

CONFIG_OVERLAP = """\
--- a/config.js
+++ b/config.js
@@ -2,3 +2,3 @@
   debug: false,
-  mode: "production",
+  mode: "development",
 };
"""

OTHER = """\
--- a/other.js
+++ b/other.js
@@ -1 +1 @@
-old
+new
"""

CREATION = """\
--- /dev/null
+++ b/new-file.js
@@ -0,0 +1,3 @@
+function newFunction() {
+  return "created";
+}
"""

DELETION = """\
--- a/old-file.js
+++ /dev/null
@@ -1,3 +0,0 @@
-function oldFunction() {
-  return "deleted";
-}
"""

GIT_DIFF = """\
diff --git a/test.js b/test.js
index 1234567..abcdefg 100644
--- a/test.js
+++ b/test.js
@@ -1,3 +1,3 @@
 function test() {
-  return "old";
+  return "new";
 }
"""


class TestMergeBasics:
    def test_empty_list(self):
        result = DiffMerger().merge([])

        assert result.success is True
        assert result.merged_diff == ""
        assert result.files_processed == 0
        assert result.conflicts is None
        assert result.warnings is None

    def test_single_diff_unchanged(self):
        result = DiffMerger().merge([SINGLE])

        assert result.success is True
        assert result.merged_diff == SINGLE
        assert result.files_processed == 1

    def test_different_files(self):
        result = DiffMerger().merge([FILE1, FILE2])

        assert result.success is True
        assert result.merged_diff == FILE1 + FILE2
        assert result.files_processed == 2

    def test_same_file_without_conflicts(self):
        result = DiffMerger().merge([CONFIG_TOP, CONFIG_BOTTOM])

        assert result.success is True
        assert result.files_processed == 2
        assert result.merged_diff == (
            "--- a/config.js\n"
            "+++ b/config.js\n"
            "@@ -1,3 +1,3 @@\n"
            " const config = {\n"
            "-  debug: false,\n"
            "+  debug: true,\n"
            " };\n"
            "@@ -10,2 +10,3 @@\n"
            '   other: "value",\n'
            "+  verbose: true,\n"
            " };\n"
        )

    def test_new_start_is_recomputed(self):
        grow = "--- a/f\n+++ b/f\n@@ -1,2 +1,3 @@\n a\n+b\n c\n"
        later = "--- a/f\n+++ b/f\n@@ -10,2 +10,2 @@\n x\n-y\n+Y\n"
        result = DiffMerger().merge([later, grow])

        assert result.success is True
        assert "@@ -1,2 +1,3 @@" in result.merged_diff
        assert "@@ -10,2 +11,2 @@" in result.merged_diff
        assert result.merged_diff.index("@@ -1,2") < result.merged_diff.index("@@ -10,2")

    def test_creation_and_deletion(self):
        result = DiffMerger().merge([CREATION, DELETION])

        assert result.success is True
        assert result.merged_diff == CREATION + DELETION
        assert result.files_processed == 2

    def test_single_trailing_newline(self):
        result = DiffMerger().merge([OTHER + "\n\n", FILE1])

        assert result.merged_diff.endswith("\n")
        assert not result.merged_diff.endswith("\n\n")


class TestGitHeaders:
    def test_preserved_when_requested(self):
        result = DiffMerger().merge([GIT_DIFF], preserve_git_headers=True)

        assert result.success is True
        assert result.merged_diff == GIT_DIFF

    def test_dropped_by_default(self):
        result = DiffMerger().merge([GIT_DIFF])

        assert "diff --git" not in result.merged_diff
        assert "index" not in result.merged_diff
        assert result.merged_diff == SINGLE


class TestConflicts:
    def test_overlap_fails(self):
        result = DiffMerger().merge(
            [CONFIG_TOP, CONFIG_OVERLAP], conflict_resolution="fail",
        )

        assert result.success is False
        assert result.merged_diff == ""
        assert result.files_processed == 2
        assert result.conflicts[0].type is ConflictType.OVERLAPPING_HUNKS
        assert result.conflicts[0].file_path == "config.js"

    def test_skip_drops_conflicted_file(self):
        result = DiffMerger().merge(
            [CONFIG_TOP, CONFIG_OVERLAP, OTHER],
            conflict_resolution=ConflictResolution.SKIP,
        )

        assert result.success is True
        assert result.merged_diff == OTHER
        assert "--- a/config.js" not in result.merged_diff
        assert result.warnings[0] == "Skipped file config.js due to merge conflicts"
        assert result.conflicts[0].file_path == "config.js"

    def test_concatenate_keeps_conflicting_hunks(self):
        result = DiffMerger().merge(
            [CONFIG_TOP, CONFIG_OVERLAP], conflict_resolution="concatenate",
        )

        assert result.success is True
        assert result.merged_diff == CONFIG_TOP + CONFIG_OVERLAP
        assert result.conflicts is not None
        assert any("separate section" in w for w in result.warnings)

    def test_same_point_insertions_conflict(self):
        first = "--- a/f\n+++ b/f\n@@ -2,0 +3 @@\n+x\n"
        second = "--- a/f\n+++ b/f\n@@ -2,0 +3 @@\n+y\n"
        result = DiffMerger().merge([first, second])

        assert result.success is False
        assert result.conflicts[0].type is ConflictType.OVERLAPPING_HUNKS

    def test_insertion_inside_changed_range_conflicts(self):
        insertion = "--- a/f\n+++ b/f\n@@ -2,0 +3 @@\n+x\n"
        change = "--- a/f\n+++ b/f\n@@ -2,2 +2,2 @@\n-b\n-c\n+B\n+C\n"
        result = DiffMerger().merge([insertion, change])

        assert result.success is False

    def test_insertion_at_range_edge_does_not_conflict(self):
        insertion = "--- a/f\n+++ b/f\n@@ -2,0 +3 @@\n+x\n"
        change = "--- a/f\n+++ b/f\n@@ -3 +3 @@\n-c\n+C\n"
        result = DiffMerger().merge([insertion, change])

        assert result.success is True
        assert "@@ -2,0 +3 @@" in result.merged_diff
        assert "@@ -3 +4 @@" in result.merged_diff

    def test_creation_mixed_with_modification_is_inconsistent(self):
        create = "--- /dev/null\n+++ b/f\n@@ -0,0 +1 @@\n+a\n"
        modify = "--- a/f\n+++ b/f\n@@ -1 +1 @@\n-a\n+b\n"
        result = DiffMerger().merge([create, modify])

        assert result.success is False
        assert result.conflicts[0].type is ConflictType.INCONSISTENT_HEADERS


class TestMalformedInput:
    MALFORMED = "This is not a valid diff\nJust some random text"

    def test_concatenate_appends_raw_text(self):
        result = DiffMerger().merge(
            [OTHER, self.MALFORMED], conflict_resolution="concatenate",
        )

        assert result.success is True
        assert result.merged_diff == OTHER + self.MALFORMED + "\n"
        assert result.warnings[0].startswith("Failed to parse diff #2")

    def test_fail(self):
        result = DiffMerger().merge(["This is not a valid diff"])

        assert result.success is False
        assert result.conflicts[0].type is ConflictType.INCONSISTENT_HEADERS
        assert result.conflicts[0].file_path == "<diff #1>"
        assert "Failed to parse diff" in result.warnings[0]

    def test_partial_parse_is_not_counted(self):
        truncated = OTHER + "--- a/bad.js\n+++ b/bad.js\n@@ -1,2 +1,2 @@\n-x\n"
        result = DiffMerger().merge([FILE1, truncated], conflict_resolution="skip")

        assert result.files_processed == 1
        assert result.merged_diff == FILE1

    def test_skip_reports_failure(self):
        result = DiffMerger().merge(
            [OTHER, self.MALFORMED], conflict_resolution="skip",
        )

        assert result.success is False
        assert result.merged_diff == OTHER


class TestOptions:
    def test_unknown_resolution(self):
        with pytest.raises(ValueError):
            DiffMerger().merge([SINGLE], conflict_resolution="theirs")

    def test_from_config(self):
        class _Cfg:
            CONFLICT_RESOLUTION = "skip"
            PRESERVE_GIT_HEADERS = True

        merger = DiffMerger.from_config(_Cfg())
        result = merger.merge([GIT_DIFF, CONFIG_TOP, CONFIG_OVERLAP])

        assert result.merged_diff == GIT_DIFF
        assert result.warnings == ["Skipped file config.js due to merge conflicts"]

    def test_to_dict(self):
        result = DiffMerger().merge([CONFIG_TOP, CONFIG_OVERLAP])
        data = result.to_dict()

        assert data["success"] is False
        assert data["mergedDiff"] == ""
        assert data["filesProcessed"] == 2
        assert data["conflicts"][0]["type"] == "overlapping_hunks"
        assert data["conflicts"][0]["filePath"] == "config.js"
        assert "warnings" not in data
