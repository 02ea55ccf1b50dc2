"""Builders for training record messages."""

import json
from typing import Any

from ..models.tooling import (
    ApplyPatchArgs,
    AssistantTextMessage,
    AssistantToolCallsMessage,
    FunctionCall,
    RunCmdArgs,
    SystemMessage,
    ToolCall,
    ToolResultMessage,
    TrainingRecord,
    UserMessage,
)
from .redaction import Redactor

APPLY_PATCH_OK = '{"ok":true}'


def encode_arguments(args: Any) -> str:
    """Compact JSON encoding used for ToolCall.function.arguments."""
    if hasattr(args, "to_wire"):
        args = args.to_wire()
    return json.dumps(args, separators=(",", ":"), ensure_ascii=False)


def make_system(content: str) -> SystemMessage:
    return SystemMessage(content=content)


def make_user(content: str) -> UserMessage:
    return UserMessage(content=content)


def make_assistant_text(content: str) -> AssistantTextMessage:
    return AssistantTextMessage(content=content)


def make_tool_call_message(call_id: str, tool_name: str, args: Any) -> AssistantToolCallsMessage:
    """Single-call assistant message; args may be a model with to_wire() or plain JSON data."""
    return AssistantToolCallsMessage(
        tool_calls=[
            ToolCall(
                id=call_id,
                function=FunctionCall(name=tool_name, arguments=encode_arguments(args)),
            )
        ]
    )


def make_tool_result_message(call_id: str, content: str) -> ToolResultMessage:
    return ToolResultMessage(tool_call_id=call_id, content=content)


def new_record(system_prompt: str, user_prompt: str) -> TrainingRecord:
    return TrainingRecord(messages=[make_system(system_prompt), make_user(user_prompt)])


def add_tool_exchange(record: TrainingRecord, call_id: str, tool_name: str, args: Any, result: str) -> None:
    """Append a tool call and its result to record."""
    record.messages.append(make_tool_call_message(call_id, tool_name, args))
    record.messages.append(make_tool_result_message(call_id, result))


def add_apply_patch(
    record: TrainingRecord,
    call_id: str,
    args: ApplyPatchArgs,
    tool_result: str = APPLY_PATCH_OK,
) -> None:
    add_tool_exchange(record, call_id, "apply_patch", args, tool_result)


def add_run_cmd(record: TrainingRecord, call_id: str, args: RunCmdArgs, tool_output: str) -> None:
    add_tool_exchange(record, call_id, "run_cmd", args, tool_output)


def redact_arguments(arguments: str, redactor: Redactor) -> str:
    """Redact the decoded arguments and re-encode them, so escapes in the JSON text stay intact."""
    try:
        decoded = json.loads(arguments)
    except ValueError:
        return redactor.redact_text(arguments)
    return encode_arguments(redactor.redact(decoded))


def redact_record(record: TrainingRecord, redactor: Redactor) -> TrainingRecord:
    """Copy of record with secrets removed from message text and tool call arguments."""
    messages = []
    for message in record.messages:
        if isinstance(message, AssistantToolCallsMessage):
            calls = [
                call.model_copy(update={
                    "function": call.function.model_copy(
                        update={"arguments": redact_arguments(call.function.arguments, redactor)}
                    )
                })
                for call in message.tool_calls
            ]
            messages.append(message.model_copy(update={"tool_calls": calls}))
        else:
            messages.append(message.model_copy(update={"content": redactor.redact_text(message.content)}))
    return TrainingRecord(messages=messages)
