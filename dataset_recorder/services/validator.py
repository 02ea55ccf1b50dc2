"""Training record consistency validation and status derivation.

The validator scans messages in order, tracking the tool call ids seen so
far, the apply_patch call (at most one per record) and whether any run_cmd
call parsed to lint, test or build. It stops at the first violation; a
record is either fully valid or rejected.

Status is derived, never trusted: ready iff the record has an apply_patch
call and at least one lint/test/build run_cmd call, otherwise draft.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Type, Union

from pydantic import BaseModel, ValidationError

from ..core.errors import (
    DuplicateToolCallId,
    MalformedGrammar,
    MultipleApplyPatch,
    OrphanToolResult,
    SchemaViolation,
    StatusMismatch,
)
from ..core.logging import get_logger
from ..models.tooling import (
    DRAFT,
    READY,
    AllowedCommand,
    ApplyPatchArgs,
    AssistantToolCallsMessage,
    RepoListTreeArgs,
    RepoReadFileArgs,
    RepoSearchArgs,
    RunCmdArgs,
    SessionStatus,
    ToolCall,
    ToolResultMessage,
    TrainingRecord,
    is_validation_command,
)
from .command_grammar import parse_invocation

logger = get_logger(__name__)

_ARGUMENT_MODELS: Dict[str, Type[BaseModel]] = {
    "repo.readFile": RepoReadFileArgs,
    "repo.search": RepoSearchArgs,
    "repo.listTree": RepoListTreeArgs,
}


@dataclass
class RecordReport:
    """Outcome of a successful validation pass."""
    status: SessionStatus
    tool_call_ids: List[str] = field(default_factory=list)
    apply_patch_call_id: Optional[str] = None
    operation_count: int = 0
    commands: List[AllowedCommand] = field(default_factory=list)

    @property
    def has_validation_command(self) -> bool:
        return any(is_validation_command(command) for command in self.commands)


def describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return f"{location}: {first.get('msg', 'invalid value')}"


def parse_record(data: Union[TrainingRecord, Dict[str, Any]]) -> TrainingRecord:
    """Coerce raw JSON data into a TrainingRecord.

    Raises:
        SchemaViolation: If the message shapes are invalid
    """
    if isinstance(data, TrainingRecord):
        return data
    try:
        return TrainingRecord.model_validate(data)
    except ValidationError as e:
        raise SchemaViolation(f"Invalid training record: {describe_validation_error(e)}")


def parse_arguments(call: ToolCall) -> Any:
    """Decode a call's JSON-encoded arguments string."""
    try:
        return json.loads(call.function.arguments)
    except ValueError:
        raise SchemaViolation(
            "Invalid JSON arguments for tool call",
            tool_call_id=call.id,
            argument=call.function.arguments,
        )


def _validate_model(model: Type[BaseModel], call: ToolCall, parsed: Any) -> Any:
    try:
        return model.model_validate(parsed)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise SchemaViolation(
            f"Invalid {call.name} arguments: {describe_validation_error(e)}",
            tool_call_id=call.id,
            argument=location or None,
        )


def check_apply_patch(call: ToolCall, parsed: Any) -> ApplyPatchArgs:
    """Validate apply_patch arguments and every operation's shape."""
    return _validate_model(ApplyPatchArgs, call, parsed)


def check_run_cmd(call: ToolCall, parsed: Any) -> AllowedCommand:
    """Validate run_cmd arguments and classify them with the command grammar."""
    invocation = _validate_model(RunCmdArgs, call, parsed)
    try:
        return parse_invocation(invocation)
    except MalformedGrammar as e:
        raise e.with_context(tool_call_id=call.id)


def derive_status(has_apply_patch: bool, has_validation_command: bool) -> SessionStatus:
    return READY if has_apply_patch and has_validation_command else DRAFT


def validate_record(data: Union[TrainingRecord, Dict[str, Any]]) -> RecordReport:
    """Check every structural and referential invariant of a record.

    Args:
        data: TrainingRecord or its JSON form

    Returns:
        RecordReport including the derived status

    Raises:
        RecorderError subclass for the first violation encountered
    """
    record = parse_record(data)
    seen: Set[str] = set()
    report = RecordReport(status=DRAFT)

    for message in record.messages:
        if isinstance(message, AssistantToolCallsMessage):
            for call in message.tool_calls:
                if call.id in seen:
                    raise DuplicateToolCallId(
                        f"Duplicate tool_call id: {call.id}", tool_call_id=call.id
                    )
                if call.name == "apply_patch" and report.apply_patch_call_id is not None:
                    raise MultipleApplyPatch(
                        f"Record already has apply_patch call {report.apply_patch_call_id}",
                        tool_call_id=call.id,
                    )
                seen.add(call.id)
                report.tool_call_ids.append(call.id)

                parsed = parse_arguments(call)
                if call.name == "apply_patch":
                    patch_args = check_apply_patch(call, parsed)
                    report.apply_patch_call_id = call.id
                    report.operation_count = len(patch_args.operations)
                elif call.name == "run_cmd":
                    report.commands.append(check_run_cmd(call, parsed))
                else:
                    _validate_model(_ARGUMENT_MODELS[call.name], call, parsed)

        elif isinstance(message, ToolResultMessage):
            if message.tool_call_id not in seen:
                raise OrphanToolResult(
                    f"tool message references unknown tool_call_id: {message.tool_call_id}",
                    tool_call_id=message.tool_call_id,
                )

    report.status = derive_status(
        report.apply_patch_call_id is not None, report.has_validation_command
    )
    return report


def derive_record_status(data: Union[TrainingRecord, Dict[str, Any]]) -> SessionStatus:
    """Validate a record and return its derived status."""
    return validate_record(data).status


def verify_declared_status(
    data: Union[TrainingRecord, Dict[str, Any]],
    declared: Optional[str],
) -> RecordReport:
    """Validate a record and reject a declared status that disagrees with it.

    Raises:
        StatusMismatch: If declared is given and differs from the derived status
    """
    report = validate_record(data)
    if declared is not None and declared != report.status:
        logger.warning(f"Declared status {declared!r} rejected; derived {report.status!r}")
        raise StatusMismatch(
            f"Declared status '{declared}' does not match derived status '{report.status}'",
            argument=declared,
        )
    return report
