"""Models package for the dataset recorder."""

from .change import (
    AddedChange,
    Change,
    CreateFile,
    DeleteFile,
    DeletedChange,
    ModifiedChange,
    PatchOperation,
    RenamedChange,
    UpdateFile,
)
from .tooling import (
    AddCommand,
    AllowedCommand,
    ApplyPatchArgs,
    InstallCommand,
    RemoveCommand,
    RunCmdArgs,
    ScriptCommand,
    SessionPayload,
    SessionStatus,
    ToolCall,
    TrainingRecord,
)

__all__ = [
    "AddedChange",
    "Change",
    "CreateFile",
    "DeleteFile",
    "DeletedChange",
    "ModifiedChange",
    "PatchOperation",
    "RenamedChange",
    "UpdateFile",
    "AddCommand",
    "AllowedCommand",
    "ApplyPatchArgs",
    "InstallCommand",
    "RemoveCommand",
    "RunCmdArgs",
    "ScriptCommand",
    "SessionPayload",
    "SessionStatus",
    "ToolCall",
    "TrainingRecord",
]
