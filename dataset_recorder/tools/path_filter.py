"""Glob-style include/exclude filtering for repo-relative paths."""

import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern

_REGEX_SPECIALS = set("\\^$+?.()|{}[]")


def normalize_path(path: str) -> str:
    return path.replace("\\", "/")


def glob_to_regex(glob_pattern: str) -> str:
    """Translate a glob into a regex body.

    ``**`` matches anything (including ``/``), ``*`` stays within one path
    segment, and a pattern with no ``*`` is treated as a directory prefix
    (``dist`` behaves like ``dist/**``).
    """
    pattern = normalize_path(glob_pattern)
    if "*" not in pattern:
        pattern = pattern.rstrip("/") + "/**"

    out = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "*":
            if index + 1 < len(pattern) and pattern[index + 1] == "*":
                out.append(".*")
                index += 2
                continue
            out.append("[^/]*")
        elif char in _REGEX_SPECIALS:
            out.append("\\" + char)
        else:
            out.append(char)
        index += 1
    return "".join(out)


@lru_cache(maxsize=256)
def _compile_glob(glob_pattern: str) -> Optional[Pattern[str]]:
    try:
        return re.compile(f"^{glob_to_regex(glob_pattern)}$")
    except re.error:
        return None


def glob_match(path: str, glob_pattern: str) -> bool:
    """Match a path against one glob. Invalid patterns never match."""
    regex = _compile_glob(glob_pattern)
    if regex is None:
        return False
    return regex.match(normalize_path(path)) is not None


class PathFilter:
    """Exclude (and optionally include) globs applied to repo-relative paths."""

    def __init__(self, exclude: Iterable[str] = (), include: Iterable[str] = ()):
        self.exclude: List[str] = [p.strip() for p in exclude if p and p.strip()]
        self.include: List[str] = [p.strip() for p in include if p and p.strip()]

    def allows(self, path: str) -> bool:
        if self.include and not any(glob_match(path, p) for p in self.include):
            return False
        return not any(glob_match(path, p) for p in self.exclude)

    __call__ = allows
