"""Tests for the name-status change classifier."""

from dataset_recorder.models.change import (
    AddedChange,
    DeletedChange,
    ModifiedChange,
    RenamedChange,
)
from dataset_recorder.tools.name_status import (
    classify_changes,
    parse_name_status_line,
    passes_filter,
)
from dataset_recorder.tools.path_filter import PathFilter


class TestParseNameStatusLine:
    """Tests for single-line parsing."""

    def test_basic_statuses(self):
        assert parse_name_status_line("M\tsrc/a.ts") == ModifiedChange(path="src/a.ts")
        assert parse_name_status_line("A\tsrc/new.ts") == AddedChange(path="src/new.ts")
        assert parse_name_status_line("D\tsrc/b.ts") == DeletedChange(path="src/b.ts")

    def test_rename_with_similarity_score(self):
        change = parse_name_status_line("R100\told.ts\tnew.ts")
        assert change == RenamedChange(old_path="old.ts", new_path="new.ts")

    def test_malformed_lines_return_none(self):
        assert parse_name_status_line("M") is None
        assert parse_name_status_line("R090\tonly-old.ts") is None
        assert parse_name_status_line("") is None

    def test_unknown_status_is_skipped(self):
        assert parse_name_status_line("C75\ta.ts\tb.ts") is None
        assert parse_name_status_line("T\tlink") is None


class TestClassifyChanges:
    """Tests for whole-output classification."""

    def test_preserves_input_order(self):
        output = "M\tsrc/a.ts\nD\tsrc/b.ts\nR100\told.ts\tnew.ts\n"
        changes = classify_changes(output)
        assert changes == [
            ModifiedChange(path="src/a.ts"),
            DeletedChange(path="src/b.ts"),
            RenamedChange(old_path="old.ts", new_path="new.ts"),
        ]

    def test_bad_line_does_not_fail_the_parse(self):
        output = "M\tsrc/a.ts\ngarbage\nX\nA\tb.ts"
        changes = classify_changes(output)
        assert [c.kind for c in changes] == ["modified", "added"]

    def test_empty_output(self):
        assert classify_changes("") == []
        assert classify_changes("\n\n") == []

    def test_filter_applied_before_return(self):
        allow = PathFilter(exclude=["node_modules/**", "dist/**"])
        output = "M\tsrc/a.ts\nA\tnode_modules/x/index.js\nM\tdist/bundle.js"
        changes = classify_changes(output, allow)
        assert changes == [ModifiedChange(path="src/a.ts")]

    def test_rename_passes_if_either_endpoint_passes(self):
        allow = PathFilter(exclude=["dist/**"])
        into_dist = RenamedChange(old_path="src/a.js", new_path="dist/a.js")
        within_dist = RenamedChange(old_path="dist/a.js", new_path="dist/b.js")
        assert passes_filter(into_dist, allow) is True
        assert passes_filter(within_dist, allow) is False

        changes = classify_changes("R100\tsrc/a.js\tdist/a.js", allow)
        assert changes == [into_dist]
