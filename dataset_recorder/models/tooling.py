"""Tool-trace record models: tool calls, messages, commands and session payloads."""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, model_validator

from .change import PatchOperation

ToolName = Literal[
    "repo.readFile",
    "repo.search",
    "repo.listTree",
    "run_cmd",
    "apply_patch",
]

TOOL_NAMES: Tuple[str, ...] = (
    "repo.readFile",
    "repo.search",
    "repo.listTree",
    "run_cmd",
    "apply_patch",
)

SessionStatus = Literal["draft", "ready"]
DRAFT: SessionStatus = "draft"
READY: SessionStatus = "ready"

MAX_TIMEOUT_MS = 60 * 60 * 1000


# --- Tool calls and messages ---

class FunctionCall(BaseModel):
    """Function part of a tool call; arguments is a JSON-encoded string."""
    name: ToolName
    arguments: str


class ToolCall(BaseModel):
    id: str = Field(..., min_length=1)
    type: Literal["function"] = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: str


class AssistantTextMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str


class AssistantToolCallsMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    tool_calls: List[ToolCall] = Field(..., min_length=1)


class ToolResultMessage(BaseModel):
    role: Literal["tool"] = "tool"
    tool_call_id: str = Field(..., min_length=1)
    content: str


def _message_tag(value: Any) -> Optional[str]:
    # two variants share role="assistant"; tool_calls tells them apart
    if isinstance(value, dict):
        role = value.get("role")
        has_calls = "tool_calls" in value
    else:
        role = getattr(value, "role", None)
        has_calls = hasattr(value, "tool_calls")
    if role == "assistant":
        return "assistant_tool_calls" if has_calls else "assistant_text"
    if role in ("system", "user", "tool"):
        return role
    return None


Message = Annotated[
    Union[
        Annotated[SystemMessage, Tag("system")],
        Annotated[UserMessage, Tag("user")],
        Annotated[AssistantTextMessage, Tag("assistant_text")],
        Annotated[AssistantToolCallsMessage, Tag("assistant_tool_calls")],
        Annotated[ToolResultMessage, Tag("tool")],
    ],
    Discriminator(_message_tag),
]


class TrainingRecord(BaseModel):
    """Ordered message sequence forming one training example."""
    messages: List[Message] = Field(..., min_length=2)

    def iter_tool_calls(self) -> Iterator[Tuple[int, ToolCall]]:
        """Yield (message index, tool call) pairs in record order."""
        for index, message in enumerate(self.messages):
            if isinstance(message, AssistantToolCallsMessage):
                for call in message.tool_calls:
                    yield index, call

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# --- Tool arguments ---

class RepoReadFileArgs(BaseModel):
    path: str = Field(..., min_length=1)


class RepoSearchArgs(BaseModel):
    query: str = Field(..., min_length=1)


class RepoListTreeArgs(BaseModel):
    path: Optional[str] = None


class PatchAction(BaseModel):
    operations: List[PatchOperation] = Field(..., min_length=1)


class PatchData(BaseModel):
    action: PatchAction


class ApplyPatchArgs(BaseModel):
    """``{"data": {"action": {"operations": [...]}}}``"""
    data: PatchData

    @classmethod
    def from_operations(cls, operations: List[PatchOperation]) -> "ApplyPatchArgs":
        return cls(data=PatchData(action=PatchAction(operations=list(operations))))

    @property
    def operations(self) -> List[PatchOperation]:
        return self.data.action.operations

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RunCmdArgs(BaseModel):
    """Recorded command invocation. Immutable once recorded."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    cmd: Literal["pnpm"] = "pnpm"
    args: List[str] = Field(..., min_length=1)
    cwd: Optional[str] = Field(None, min_length=1)
    timeout_ms: Optional[int] = Field(None, alias="timeoutMs", ge=1, le=MAX_TIMEOUT_MS)
    env: Optional[Dict[str, str]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def display(self) -> str:
        return " ".join([self.cmd, *self.args])


# --- Allowlisted commands ---

class ScriptCommand(BaseModel):
    """``pnpm [--filter SEL | -r] lint|test|build``"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["lint", "test", "build"]
    filter: Optional[str] = None
    recursive: bool = False

    @model_validator(mode="after")
    def _filter_excludes_recursive(self) -> "ScriptCommand":
        if self.filter is not None and self.recursive:
            raise ValueError("filter and recursive are mutually exclusive")
        return self


class InstallCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["install"] = "install"
    filter: Optional[str] = None


class AddCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["add"] = "add"
    filter: Optional[str] = None
    dev: bool = False
    packages: List[str] = Field(..., min_length=1)


class RemoveCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["remove"] = "remove"
    filter: Optional[str] = None
    packages: List[str] = Field(..., min_length=1)


AllowedCommand = Annotated[
    Union[ScriptCommand, InstallCommand, AddCommand, RemoveCommand],
    Field(discriminator="kind"),
]

VALIDATION_KINDS = frozenset({"lint", "test", "build"})


def is_validation_command(command: AllowedCommand) -> bool:
    """True for lint/test/build, the commands that can promote a session to ready."""
    return command.kind in VALIDATION_KINDS


# --- Session payloads ---

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RepoInfo(BaseModel):
    name: str = Field(..., min_length=1)
    root: str = Field(..., min_length=1)
    branch: Optional[str] = None
    remote: Optional[str] = None


class SessionMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files_changed: int = Field(0, alias="filesChanged", ge=0)
    commands_run: List[str] = Field(default_factory=list, alias="commandsRun")


class CreateTaskBody(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class Task(CreateTaskBody):
    model_config = ConfigDict(populate_by_name=True)

    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")


class SessionPayload(BaseModel):
    """Finalized session as written locally and accepted by the ingest service."""
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(..., alias="taskId", min_length=1)
    repo: RepoInfo
    base_ref: str = Field(..., alias="baseRef", min_length=7)
    created_at: datetime = Field(..., alias="createdAt")
    started_at: datetime = Field(..., alias="startedAt")
    metrics: Optional[SessionMetrics] = None
    status: Optional[SessionStatus] = None
    record: TrainingRecord

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StoredSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    task_id: str = Field(..., alias="taskId")
    repo: RepoInfo
    base_ref: str = Field(..., alias="baseRef")
    created_at: datetime = Field(..., alias="createdAt")
    status: SessionStatus
    metrics: Optional[SessionMetrics] = None
    record: TrainingRecord
