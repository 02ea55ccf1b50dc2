"""Compile classified changes into an ordered apply_patch operation list.

Mapping per change:
  deleted  -> delete_file
  modified -> update_file with the hunk body of a full-context diff (omitted
              when the diff has no hunk)
  added    -> create_file with the working-tree content, verbatim
  renamed  -> delete_file(old) + create_file(new)

The result is always ordered deletes, updates, creates, each by path.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

from ..core.errors import BinaryUnsupported
from ..core.logging import get_logger
from ..models.change import (
    AddedChange,
    Change,
    CreateFile,
    DeleteFile,
    DeletedChange,
    ModifiedChange,
    PatchOperation,
    RenamedChange,
    UpdateFile,
    order_operations,
)
from .hunks import extract_hunk_body
from .repo_io import decode_text, is_probably_binary

logger = get_logger(__name__)


class ContentSource(Protocol):
    """Supplies diff text and working-tree bytes for changed paths."""

    def full_diff(self, path: str) -> str:
        """Unified diff of path against the baseline with unbounded context."""
        ...

    def read_current(self, path: str) -> bytes:
        """Current working-tree bytes of path."""
        ...


@dataclass
class CompiledPatch:
    """Ordered operations plus the number of logical file changes."""
    operations: List[PatchOperation] = field(default_factory=list)
    files_changed: int = 0
    skipped: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.operations


def _create_from_source(source: ContentSource, path: str) -> CreateFile:
    content = source.read_current(path)
    if is_probably_binary(content):
        raise BinaryUnsupported(f"Binary file not supported for create_file: {path}", path=path)
    return CreateFile(path=path, content=decode_text(content))


def compile_change(change: Change, source: ContentSource) -> List[PatchOperation]:
    """Map one change to zero or more operations (unordered)."""
    if isinstance(change, DeletedChange):
        return [DeleteFile(path=change.path)]
    if isinstance(change, ModifiedChange):
        hunk_body = extract_hunk_body(source.full_diff(change.path))
        if not hunk_body:
            return []
        return [UpdateFile(path=change.path, hunk_body=hunk_body)]
    if isinstance(change, AddedChange):
        return [_create_from_source(source, change.path)]
    if isinstance(change, RenamedChange):
        create = _create_from_source(source, change.new_path)
        return [DeleteFile(path=change.old_path), create]
    raise TypeError(f"Unknown change type: {type(change).__name__}")


def compile_patch_set(
    changes: Sequence[Change],
    source: ContentSource,
    skip_binary: bool = False,
) -> CompiledPatch:
    """Compile changes into one canonical patch.

    Args:
        changes: Classified changes, already filtered
        source: Diff and content provider
        skip_binary: Skip (and report) changes whose new content is binary
            instead of raising BinaryUnsupported

    Returns:
        CompiledPatch with ordered operations
    """
    operations: List[PatchOperation] = []
    skipped: List[str] = []

    for change in changes:
        try:
            operations.extend(compile_change(change, source))
        except BinaryUnsupported as e:
            if not skip_binary:
                raise
            logger.warning(f"Skipping binary file: {e.path}", extra={"path": e.path})
            skipped.append(e.path)

    compiled = CompiledPatch(
        operations=order_operations(operations),
        files_changed=len(changes) - len(skipped),
        skipped=skipped,
    )
    logger.info(
        f"Compiled {len(compiled.operations)} patch operations "
        f"for {compiled.files_changed} changed files"
    )
    return compiled
