"""Tests for git operations against throwaway repositories."""

import pytest

from dataset_recorder.core.errors import SessionError, UnavailableAtBaseline
from dataset_recorder.tools.git_ops import BaselineDiffSource, GitRepository
from dataset_recorder.tools.hunks import extract_hunk_body
from dataset_recorder.tools.name_status import classify_changes
from dataset_recorder.tools.path_filter import PathFilter


def test_not_a_repository(tmp_path):
    with pytest.raises(SessionError, match="not a git repository"):
        GitRepository(str(tmp_path))


def test_subdirectory_resolves_to_top_level(repo_root):
    repository = GitRepository(str(repo_root / "src"))
    assert repository.root == str(repo_root.resolve())
    assert repository.name == "demo-repo"


def test_head_branch_and_remote(git_repo, repo_root):
    repository = GitRepository(str(repo_root))
    assert repository.head_sha() == git_repo.head.commit.hexsha
    assert repository.branch_name() == git_repo.active_branch.name
    assert repository.remote_url() is None

    git_repo.create_remote("origin", "https://example.com/demo.git")
    assert repository.remote_url() == "https://example.com/demo.git"


class TestCleanliness:
    """Tests for working tree cleanliness checks."""

    def test_fresh_commit_is_clean(self, repo_root):
        assert GitRepository(str(repo_root)).is_clean()

    def test_untracked_file_is_dirty(self, repo_root):
        (repo_root / "scratch.txt").write_text("x")
        repository = GitRepository(str(repo_root))
        assert repository.dirty_paths() == ["scratch.txt"]
        assert not repository.is_clean()

    def test_modified_file_is_dirty(self, repo_root):
        (repo_root / "src" / "a.ts").write_text("changed\n")
        assert not GitRepository(str(repo_root)).is_clean()

    def test_ignored_paths_do_not_count(self, repo_root):
        (repo_root / ".agent-dataset" / "sessions").mkdir(parents=True)
        (repo_root / ".agent-dataset" / "sessions" / "s.json").write_text("{}")
        repository = GitRepository(str(repo_root))
        assert not repository.is_clean()
        assert repository.is_clean(PathFilter([".agent-dataset/**"]))


class TestDiffs:
    """Tests for name-status, full diffs and baseline content."""

    def test_name_status_classifies_working_tree(self, git_repo, repo_root):
        base = git_repo.head.commit.hexsha
        (repo_root / "src" / "a.ts").write_text("export const a = 2;\n")
        (repo_root / "src" / "b.ts").unlink()
        (repo_root / "src" / "c.ts").write_text("import { helper } from \"./lib\";\n\nhelper(42, \"unrelated\");\n")
        git_repo.git.add("src/c.ts")
        git_repo.git.mv("old.ts", "renamed.ts")

        changes = classify_changes(GitRepository(str(repo_root)).name_status(base))
        kinds = {c.kind: c for c in changes}
        assert kinds["modified"].path == "src/a.ts"
        assert kinds["deleted"].path == "src/b.ts"
        assert kinds["added"].path == "src/c.ts"
        assert (kinds["renamed"].old_path, kinds["renamed"].new_path) == ("old.ts", "renamed.ts")

    def test_file_diff_covers_whole_file(self, git_repo, repo_root):
        base = git_repo.head.commit.hexsha
        (repo_root / "src" / "a.ts").write_text("// header\nexport const a = 2;\n")
        source = BaselineDiffSource(GitRepository(str(repo_root)), base)

        body = extract_hunk_body(source.full_diff("src/a.ts"))
        assert body.startswith("@@")
        assert "-export const a = 1;\n" in body
        assert "+// header\n+export const a = 2;\n" in body
        assert body.endswith("\n")

    def test_show_at_ref(self, git_repo, repo_root):
        base = git_repo.head.commit.hexsha
        repository = GitRepository(str(repo_root))
        assert repository.show_at_ref(base, "src/a.ts") == b"export const a = 1;\n"

    def test_show_missing_path(self, git_repo, repo_root):
        base = git_repo.head.commit.hexsha
        with pytest.raises(UnavailableAtBaseline) as exc_info:
            GitRepository(str(repo_root)).show_at_ref(base, "nope.ts")
        assert exc_info.value.path == "nope.ts"

    def test_read_current(self, repo_root):
        source_bytes = GitRepository(str(repo_root)).read_current("README.md")
        assert source_bytes == b"# demo\n"
