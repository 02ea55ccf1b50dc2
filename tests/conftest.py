"""Shared fixtures: throwaway git repositories and sample training records."""

from pathlib import Path
from typing import Dict

import git
import pytest

from dataset_recorder.models.change import CreateFile, UpdateFile
from dataset_recorder.models.tooling import ApplyPatchArgs, RunCmdArgs
from dataset_recorder.services.record_builder import (
    add_apply_patch,
    add_run_cmd,
    make_assistant_text,
    new_record,
)

INITIAL_FILES = {
    "src/a.ts": "export const a = 1;\n",
    "src/b.ts": "export const b = 2;\n",
    "old.ts": "export const old = true;\n",
    "README.md": "# demo\n",
}


def write_files(root: Path, files: Dict[str, str]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture
def git_repo(tmp_path):
    """A repository with one commit containing INITIAL_FILES."""
    root = tmp_path / "demo-repo"
    root.mkdir()
    repo = git.Repo.init(root)
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("commit", "gpgsign", "false")
    write_files(root, INITIAL_FILES)
    repo.git.add("--all")
    repo.git.commit("-m", "initial commit")
    return repo


@pytest.fixture
def repo_root(git_repo):
    return Path(git_repo.working_tree_dir)


def build_record(with_patch: bool = True, commands=(("lint",),), done: bool = True):
    """Record with an optional apply_patch call and one run_cmd call per args tuple."""
    record = new_record("You are a coding agent.", "Fix the bug.")
    seq = 0
    for args in commands:
        seq += 1
        add_run_cmd(record, f"run_cmd_{seq}", RunCmdArgs(args=list(args)), "ok")
    if with_patch:
        seq += 1
        operations = [
            UpdateFile(path="src/a.ts", hunk_body="@@ -1 +1 @@\n-a\n+b\n"),
            CreateFile(path="src/new.ts", content="export {};\n"),
        ]
        add_apply_patch(record, f"apply_patch_{seq}", ApplyPatchArgs.from_operations(operations))
    if done:
        record.messages.append(make_assistant_text("Done."))
    return record


@pytest.fixture
def ready_record():
    return build_record()


@pytest.fixture
def draft_record():
    return build_record(commands=())
