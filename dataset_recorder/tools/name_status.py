"""Change classifier for ``git diff --name-status`` output."""

from typing import Callable, List, Optional

from ..core.logging import get_logger
from ..models.change import (
    AddedChange,
    Change,
    DeletedChange,
    ModifiedChange,
    RenamedChange,
)

logger = get_logger(__name__)

PathPredicate = Callable[[str], bool]


def parse_name_status_line(line: str) -> Optional[Change]:
    """Parse one ``<status>\\t<path>[\\t<newPath>]`` line.

    Returns None for blank or malformed lines and for statuses that are not
    M, A, D or R*.
    """
    parts = line.strip().split("\t")
    status = parts[0] if parts else ""
    first = parts[1] if len(parts) > 1 else ""
    second = parts[2] if len(parts) > 2 else ""

    if status == "M" and first:
        return ModifiedChange(path=first)
    if status == "A" and first:
        return AddedChange(path=first)
    if status == "D" and first:
        return DeletedChange(path=first)
    if status.startswith("R") and first and second:
        return RenamedChange(old_path=first, new_path=second)
    return None


def passes_filter(change: Change, allow: PathPredicate) -> bool:
    """A rename passes if either endpoint passes."""
    if isinstance(change, RenamedChange):
        return allow(change.old_path) or allow(change.new_path)
    return allow(change.path)


def classify_changes(output: str, allow: Optional[PathPredicate] = None) -> List[Change]:
    """Classify name-status output into changes, in input order.

    Malformed lines are skipped rather than failing the whole parse.

    Args:
        output: Raw name-status text, one change per line
        allow: Optional path predicate applied before results are returned

    Returns:
        Ordered list of changes
    """
    changes: List[Change] = []
    skipped = 0
    for line in output.splitlines():
        if not line.strip():
            continue
        change = parse_name_status_line(line)
        if change is None:
            skipped += 1
            continue
        if allow is not None and not passes_filter(change, allow):
            continue
        changes.append(change)

    if skipped:
        logger.debug(f"Skipped {skipped} unrecognised name-status lines")
    return changes
