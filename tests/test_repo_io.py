"""Tests for repository file helpers."""

import pytest

from dataset_recorder.tools.repo_io import (
    decode_text,
    is_probably_binary,
    read_file_bytes,
    safe_join,
    to_repo_relative,
)


def test_safe_join_inside_root(tmp_path):
    assert safe_join(str(tmp_path), "src/a.ts") == str(tmp_path.resolve() / "src" / "a.ts")
    assert safe_join(str(tmp_path), str(tmp_path / "b.ts")) == str(tmp_path.resolve() / "b.ts")


@pytest.mark.parametrize("rel", ["../outside.ts", "/etc/passwd"])
def test_safe_join_rejects_escape(tmp_path, rel):
    with pytest.raises(ValueError, match="escapes"):
        safe_join(str(tmp_path), rel)


def test_to_repo_relative(tmp_path):
    root = str(tmp_path)
    assert to_repo_relative(root, str(tmp_path / "src" / "a.ts")) == "src/a.ts"
    assert to_repo_relative(root, "src/../README.md") == "README.md"
    assert to_repo_relative(root, str(tmp_path.parent / "x.ts")) is None
    assert to_repo_relative(root, root) is None


def test_binary_sniffing():
    assert is_probably_binary(b"abc\x00def")
    assert not is_probably_binary(b"plain text\n")
    assert not is_probably_binary(b"a" * 8000 + b"\x00")


def test_decode_is_verbatim():
    assert decode_text("crlf\r\nno newline".encode()) == "crlf\r\nno newline"
    assert decode_text(b"\xff") == "�"


def test_read_file_bytes(tmp_path):
    (tmp_path / "a.txt").write_bytes(b"hi\n")
    assert read_file_bytes(str(tmp_path), "a.txt") == b"hi\n"
    with pytest.raises(ValueError):
        read_file_bytes(str(tmp_path), "../a.txt")
