"""Repository file I/O with path safety and binary detection."""

from pathlib import Path
from typing import Optional

BINARY_SNIFF_BYTES = 8000


def safe_join(root: str, rel: str) -> str:
    """Resolve rel (relative or absolute) to a path that must stay inside root.

    Raises:
        ValueError: If rel escapes root, including through symlinks
    """
    root_path = Path(root).resolve()
    full_path = (root_path / rel).resolve()
    if not full_path.is_relative_to(root_path):
        raise ValueError(f"Path escapes repository root: {rel}")
    return str(full_path)


def to_repo_relative(root: str, file_path: str) -> Optional[str]:
    """Convert a path to a posix repo-relative path, or None if outside root."""
    root_path = Path(root).resolve()
    candidate = Path(file_path)
    if not candidate.is_absolute():
        candidate = root_path / candidate
    try:
        rel = candidate.resolve().relative_to(root_path)
    except ValueError:
        return None
    rel_posix = rel.as_posix()
    if rel_posix in ("", ".") or rel_posix.startswith(".."):
        return None
    return rel_posix


def is_probably_binary(content: bytes) -> bool:
    """Content is treated as binary if a NUL byte occurs in the first 8000 bytes."""
    return b"\x00" in content[:BINARY_SNIFF_BYTES]


def decode_text(content: bytes) -> str:
    """Decode file bytes verbatim as UTF-8 (undecodable bytes are replaced)."""
    return content.decode("utf-8", errors="replace")


def read_file_bytes(root: str, rel: str) -> bytes:
    """Read a working-tree file inside root.

    Raises:
        ValueError: On path traversal
        OSError: If the file cannot be read
    """
    with open(safe_join(root, rel), "rb") as f:
        return f.read()
