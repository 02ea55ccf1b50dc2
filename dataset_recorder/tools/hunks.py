"""Hunk extraction from full unified diffs."""

from ..models.change import HUNK_MARKER


def extract_hunk_body(full_diff: str) -> str:
    """Return the diff from its first ``@@`` marker to the end.

    An empty string means there is no textual hunk (a pure mode change, for
    instance) and no update_file operation should be emitted for the path.
    """
    index = full_diff.find(HUNK_MARKER)
    if index < 0:
        return ""
    return full_diff[index:]
