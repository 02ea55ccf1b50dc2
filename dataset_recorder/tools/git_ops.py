"""Local git operations backing session recording."""

from pathlib import Path
from typing import Callable, List, Optional

import git

from ..core.errors import SessionError, UnavailableAtBaseline
from ..core.logging import get_logger
from .repo_io import read_file_bytes

logger = get_logger(__name__)

# Large enough that one hunk covers the whole file
FULL_CONTEXT_LINES = 999999


class GitRepository:
    """Thin wrapper over a GitPython ``Repo`` rooted at the workspace."""

    def __init__(self, root: str):
        try:
            self.repo = git.Repo(root, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            raise SessionError("Workspace is not a git repository.", path=root)
        if self.repo.working_tree_dir is None:
            raise SessionError("Bare repositories are not supported.", path=root)
        self.root = str(Path(self.repo.working_tree_dir).resolve())

    @property
    def name(self) -> str:
        return Path(self.root).name

    def dirty_paths(self) -> List[str]:
        """Paths with staged, unstaged or untracked changes."""
        paths = set(self.repo.untracked_files)
        for diff in self.repo.index.diff(None) + self.repo.index.diff("HEAD"):
            paths.update(p for p in (diff.a_path, diff.b_path) if p)
        return sorted(paths)

    def is_clean(self, counts: Optional[Callable[[str], bool]] = None) -> bool:
        """True when no dirty path counts; every path counts unless a predicate is given."""
        return not any(counts is None or counts(path) for path in self.dirty_paths())

    def head_sha(self) -> str:
        try:
            return self.repo.head.commit.hexsha
        except ValueError:
            raise SessionError("Repository has no commits yet.", path=self.root)

    def branch_name(self) -> str:
        return self.repo.git.rev_parse("--abbrev-ref", "HEAD")

    def remote_url(self, remote: str = "origin") -> Optional[str]:
        try:
            return self.repo.git.remote("get-url", remote)
        except git.GitCommandError:
            return None

    def name_status(self, base_ref: str) -> str:
        """``git diff --name-status <base_ref>`` against the working tree."""
        return self.repo.git.diff("--name-status", base_ref)

    def file_diff(self, base_ref: str, path: str) -> str:
        """Full-context diff of one path between base_ref and the working tree."""
        return self.repo.git.diff(
            f"-U{FULL_CONTEXT_LINES}",
            base_ref,
            "--",
            path,
            strip_newline_in_stdout=False,
        )

    def show_at_ref(self, base_ref: str, path: str) -> bytes:
        """Raw bytes of path at base_ref.

        Raises:
            UnavailableAtBaseline: If git cannot produce the blob
        """
        try:
            return self.repo.git.show(
                f"{base_ref}:{path}",
                stdout_as_string=False,
                strip_newline_in_stdout=False,
            )
        except git.GitCommandError as e:
            logger.warning(f"Content unavailable at {base_ref}: {path}", extra={"path": path})
            raise UnavailableAtBaseline(
                f"Content unavailable at base ref {base_ref}: {e.stderr.strip() if e.stderr else e}",
                path=path,
            )

    def read_current(self, path: str) -> bytes:
        return read_file_bytes(self.root, path)


class BaselineDiffSource:
    """ContentSource computing diffs against a fixed base ref."""

    def __init__(self, repository: GitRepository, base_ref: str):
        self.repository = repository
        self.base_ref = base_ref

    def full_diff(self, path: str) -> str:
        return self.repository.file_diff(self.base_ref, path)

    def read_current(self, path: str) -> bytes:
        return self.repository.read_current(path)
