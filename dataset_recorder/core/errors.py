"""Error kinds raised while building, validating and storing training records."""

from typing import Any, Dict, Optional


class RecorderError(ValueError):
    """Base error carrying enough context to reproduce a violation.

    Attributes:
        kind: Stable error kind name
        tool_call_id: Offending tool call id, if any
        path: Offending file path, if any
        argument: Offending argument or token, if any
    """

    kind = "RecorderError"

    def __init__(
        self,
        message: str,
        *,
        tool_call_id: Optional[str] = None,
        path: Optional[str] = None,
        argument: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.tool_call_id = tool_call_id
        self.path = path
        self.argument = argument

    def with_context(self, **context: Optional[str]) -> "RecorderError":
        """Fill in context fields that are still unset and return self."""
        for key in ("tool_call_id", "path", "argument"):
            value = context.get(key)
            if value is not None and getattr(self, key) is None:
                setattr(self, key, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        if self.path is not None:
            out["path"] = self.path
        if self.argument is not None:
            out["argument"] = self.argument
        return out

    def __str__(self) -> str:
        details = []
        if self.tool_call_id is not None:
            details.append(f"tool_call_id={self.tool_call_id}")
        if self.path is not None:
            details.append(f"path={self.path}")
        if self.argument is not None:
            details.append(f"argument={self.argument!r}")
        if details:
            return f"{self.message} ({', '.join(details)})"
        return self.message


class MalformedGrammar(RecorderError):
    """Command arguments do not match any allowlist production."""
    kind = "MalformedGrammar"


class SchemaViolation(RecorderError):
    """A message, tool call or patch operation breaks its shape invariant."""
    kind = "SchemaViolation"


class DuplicateToolCallId(RecorderError):
    kind = "DuplicateToolCallId"


class OrphanToolResult(RecorderError):
    """Tool result references a call id not seen in an earlier message."""
    kind = "OrphanToolResult"


class MultipleApplyPatch(RecorderError):
    kind = "MultipleApplyPatch"


class BinaryUnsupported(RecorderError):
    """create_file source content looks binary."""
    kind = "BinaryUnsupported"


class UnavailableAtBaseline(RecorderError):
    """File content could not be recovered at the base ref."""
    kind = "UnavailableAtBaseline"


class StatusMismatch(RecorderError):
    """Declared session status disagrees with the derived one."""
    kind = "StatusMismatch"


class PayloadTooLarge(RecorderError):
    kind = "PayloadTooLarge"


class SessionError(RecorderError):
    """Session lifecycle misuse or a failed recorded action."""
    kind = "SessionError"


class UnknownTask(RecorderError):
    kind = "UnknownTask"
