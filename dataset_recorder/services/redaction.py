"""Secret redaction over arbitrary nested data.

Strings are scrubbed with an ordered list of regular expressions, every match
replaced by a fixed sentinel. Lists, tuples and dicts are walked recursively
(dict keys are kept as-is); any other leaf passes through unchanged. The
sentinel contains no characters the default patterns can match, so the
result does not depend on pattern order.
"""

import logging
import re
from typing import Any, Iterable, List, Optional, Pattern

from ..core.config import DEFAULT_REDACTION_PATTERNS

# core.logging imports this module, so get_logger is not available here
logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"


def compile_patterns(patterns: Iterable[str]) -> List[Pattern[str]]:
    """Compile patterns, skipping invalid ones with a warning."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            logger.warning(f"Skipping invalid redaction pattern {pattern!r}: {e}")
    return compiled


class Redactor:
    """Applies secret patterns to nested string data."""

    def __init__(self, patterns: Optional[Iterable[str]] = None, sentinel: str = REDACTED):
        if patterns is None:
            patterns = DEFAULT_REDACTION_PATTERNS
        self.patterns = compile_patterns(patterns)
        self.sentinel = sentinel

    def redact_text(self, text: str) -> str:
        for pattern in self.patterns:
            text = pattern.sub(self.sentinel, text)
        return text

    def redact(self, value: Any) -> Any:
        """Return a redacted copy of value.

        Args:
            value: str, list, tuple, dict or any other leaf

        Returns:
            Same shape with secret-shaped substrings replaced
        """
        if isinstance(value, str):
            return self.redact_text(value)
        if isinstance(value, list):
            return [self.redact(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.redact(item) for item in value)
        if isinstance(value, dict):
            return {key: self.redact(item) for key, item in value.items()}
        return value


_default_redactor: Optional[Redactor] = None


def redact_secrets(value: Any) -> Any:
    """Redact with the default pattern set."""
    global _default_redactor
    if _default_redactor is None:
        _default_redactor = Redactor()
    return _default_redactor.redact(value)
