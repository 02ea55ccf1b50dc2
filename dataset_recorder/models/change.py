"""Data models for classified changes and patch operations."""

from __future__ import annotations
from typing import Annotated, Iterable, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

HUNK_MARKER = "@@"


class ModifiedChange(BaseModel):
    """File modified in place since the base ref."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["modified"] = "modified"
    path: str = Field(..., min_length=1, description="Repo-relative path")


class AddedChange(BaseModel):
    """File added since the base ref."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["added"] = "added"
    path: str = Field(..., min_length=1, description="Repo-relative path")


class DeletedChange(BaseModel):
    """File deleted since the base ref."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["deleted"] = "deleted"
    path: str = Field(..., min_length=1, description="Repo-relative path")


class RenamedChange(BaseModel):
    """File renamed since the base ref (never decomposed at classification)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["renamed"] = "renamed"
    old_path: str = Field(..., min_length=1)
    new_path: str = Field(..., min_length=1)


Change = Annotated[
    Union[ModifiedChange, AddedChange, DeletedChange, RenamedChange],
    Field(discriminator="kind"),
]


def change_paths(change: Change) -> Tuple[str, ...]:
    """Return every path a change touches, old path first for renames."""
    if isinstance(change, RenamedChange):
        return (change.old_path, change.new_path)
    return (change.path,)


class CreateFile(BaseModel):
    """Create a file; ``diff`` on the wire carries the full file content."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    type: Literal["create_file"] = "create_file"
    path: str = Field(..., min_length=1)
    content: str = Field(..., alias="diff")


class UpdateFile(BaseModel):
    """Update a file with a hunk body starting at its first ``@@`` marker."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    type: Literal["update_file"] = "update_file"
    path: str = Field(..., min_length=1)
    hunk_body: str = Field(..., alias="diff", min_length=1)

    @field_validator("hunk_body")
    @classmethod
    def _requires_hunk_marker(cls, value: str) -> str:
        if HUNK_MARKER not in value:
            raise ValueError("update_file.diff must include @@ hunks")
        return value


class DeleteFile(BaseModel):
    """Delete a file. Carries no diff."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["delete_file"] = "delete_file"
    path: str = Field(..., min_length=1)


PatchOperation = Annotated[
    Union[CreateFile, UpdateFile, DeleteFile],
    Field(discriminator="type"),
]

# deletes, then updates, then creates
_GROUP_ORDER = {"delete_file": 0, "update_file": 1, "create_file": 2}


def operation_sort_key(op: PatchOperation) -> Tuple[int, str]:
    return (_GROUP_ORDER[op.type], op.path)


def order_operations(operations: Iterable[PatchOperation]) -> List[PatchOperation]:
    """Sort operations into the canonical patch-set order."""
    return sorted(operations, key=operation_sort_key)


def is_canonically_ordered(operations: List[PatchOperation]) -> bool:
    keys = [operation_sort_key(op) for op in operations]
    return keys == sorted(keys)
