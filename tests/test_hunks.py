"""Tests for hunk extraction."""

from dataset_recorder.tools.hunks import extract_hunk_body

FULL_DIFF = (
    "diff --git a/src/a.ts b/src/a.ts\n"
    "index 1111111..2222222 100644\n"
    "--- a/src/a.ts\n"
    "+++ b/src/a.ts\n"
    "@@ -1 +1 @@\n"
    "-export const a = 1;\n"
    "+export const a = 2;\n"
)


def test_strips_headers():
    """Everything before the first @@ is discarded."""
    body = extract_hunk_body(FULL_DIFF)
    assert body.startswith("@@ -1 +1 @@\n")
    assert "diff --git" not in body
    assert body.endswith("+export const a = 2;\n")


def test_keeps_later_hunks():
    diff = FULL_DIFF + "@@ -10 +10 @@\n-x\n+y\n"
    body = extract_hunk_body(diff)
    assert body.count("@@ -") == 2


def test_no_marker_means_no_hunk():
    """A pure mode change has no textual hunk."""
    mode_only = (
        "diff --git a/run.sh b/run.sh\n"
        "old mode 100644\n"
        "new mode 100755\n"
    )
    assert extract_hunk_body(mode_only) == ""
    assert extract_hunk_body("") == ""
