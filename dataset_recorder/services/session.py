"""Session recording: turns one developer session into a training record.

A session is an explicit ``SessionState`` value passed to every
``SessionRecorder`` operation, so callers decide where it lives (in memory,
or serialized between CLI invocations).
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field

from ..core.config import RecorderConfig
from ..core.errors import SessionError, UnavailableAtBaseline
from ..core.logging import get_logger
from ..models.change import Change, change_paths
from ..models.tooling import (
    ApplyPatchArgs,
    RepoInfo,
    RepoReadFileArgs,
    RepoSearchArgs,
    RunCmdArgs,
    SessionMetrics,
    SessionPayload,
    TrainingRecord,
)
from ..tools.git_ops import BaselineDiffSource, GitRepository
from ..tools.name_status import classify_changes
from ..tools.patch_compiler import CompiledPatch, compile_patch_set
from ..tools.path_filter import PathFilter
from ..tools.repo_io import decode_text, is_probably_binary, to_repo_relative
from .command_grammar import parse_invocation
from .command_runner import CommandOutput, CommandRunner, SubprocessCommandRunner, truncate_output
from .record_builder import (
    add_apply_patch,
    add_run_cmd,
    add_tool_exchange,
    make_assistant_text,
    new_record,
    redact_record,
)
from .redaction import Redactor
from .validator import validate_record

logger = get_logger(__name__)

BINARY_SKIPPED = "[binary file skipped]"
UNAVAILABLE_AT_BASE = "[unavailable at baseRef]"
DONE_MESSAGE = "Done."

SessionPhase = Literal["active", "stopped", "discarded"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_millis(moment: datetime) -> str:
    """``2026-01-31T09:15:02.123Z``"""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def session_file_name(moment: datetime) -> str:
    return iso_millis(moment).replace(":", "-").replace(".", "-") + ".json"


class SessionState(BaseModel):
    """Everything recorded so far for one session."""
    task_id: str = Field(..., min_length=1)
    system_prompt: str
    user_prompt: str
    repo: RepoInfo
    base_ref: str
    started_at: datetime = Field(default_factory=utc_now)
    record: TrainingRecord
    commands_run: List[str] = Field(default_factory=list)
    call_seq: int = 0
    file_changes_submitted: bool = False
    submitted_files_changed: int = 0
    opened_files: List[str] = Field(default_factory=list)
    phase: SessionPhase = "active"

    @property
    def is_active(self) -> bool:
        return self.phase == "active"

    def next_call_id(self, prefix: str) -> str:
        self.call_seq += 1
        return f"{prefix}_{self.call_seq}"

    def has_apply_patch(self) -> bool:
        return any(call.name == "apply_patch" for _, call in self.record.iter_tool_calls())


@dataclass
class SubmitResult:
    files_changed: int
    operations_applied: int
    skipped: List[str]


@dataclass
class BuiltSession:
    output_path: str
    payload: SessionPayload


def searchable_paths(changes: Sequence[Change]) -> List[str]:
    """Paths a search over the working tree would find: M/A paths and both rename endpoints."""
    found = set()
    for change in changes:
        if change.kind == "deleted":
            continue
        found.update(change_paths(change))
    return sorted(found)


class SessionRecorder:
    """Records tool calls for a session against a clean git baseline."""

    def __init__(
        self,
        config: Optional[RecorderConfig] = None,
        runner: Optional[CommandRunner] = None,
        redactor: Optional[Redactor] = None,
        repository_factory: Callable[[str], GitRepository] = GitRepository,
    ):
        self.config = config or RecorderConfig()
        self.runner = runner or SubprocessCommandRunner()
        self.redactor = redactor or Redactor(self.config.redaction_patterns)
        self.repository_factory = repository_factory
        self.path_filter = PathFilter(self.config.ignore_globs, self.config.include_globs)

    def _require_active(self, state: SessionState) -> None:
        if not state.is_active:
            raise SessionError(f"Session for task {state.task_id} is {state.phase}.")

    def start(self, repo_root: str, task_id: str, system_prompt: str, user_prompt: str) -> SessionState:
        """Begin a session at the current HEAD of a clean repository.

        Raises:
            SessionError: If repo_root is not a clean git working tree
        """
        repository = self.repository_factory(repo_root)
        base_ref = repository.head_sha()
        if not repository.is_clean(self.path_filter):
            raise SessionError(
                "Repository is not clean. Commit or stash changes before starting a session.",
                path=repository.root,
            )

        system_prompt = self.redactor.redact_text(system_prompt)
        user_prompt = self.redactor.redact_text(user_prompt)
        state = SessionState(
            task_id=task_id,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            repo=RepoInfo(
                name=repository.name,
                root=repository.root,
                branch=repository.branch_name(),
                remote=repository.remote_url(),
            ),
            base_ref=base_ref,
            record=new_record(system_prompt, user_prompt),
        )
        logger.info(
            f"Started session at {state.base_ref[:12]} on {state.repo.branch}",
            extra={"task_id": task_id},
        )
        return state

    def record_opened_file(self, state: SessionState, file_path: str) -> bool:
        """Remember a file the developer opened. Returns False if it was ignored."""
        self._require_active(state)
        if not file_path:
            return False
        rel = to_repo_relative(state.repo.root, file_path)
        if rel is None or not self.path_filter.allows(rel):
            return False
        if rel not in state.opened_files:
            state.opened_files.append(rel)
        return True

    def run_command(self, state: SessionState, args: Union[RunCmdArgs, dict]) -> str:
        """Run an allowlisted pnpm command and record it.

        Args:
            state: Active session
            args: Invocation; cwd defaults to the repo root and timeout to config

        Returns:
            Recorded (redacted, truncated) output

        Raises:
            MalformedGrammar: If the invocation is not allowlisted; nothing is recorded
            SessionError: If the command failed; it is recorded first
        """
        self._require_active(state)
        if not isinstance(args, RunCmdArgs):
            args = RunCmdArgs.model_validate(args)
        parse_invocation(args)

        cwd = args.cwd or state.repo.root
        recorded = args.model_copy(update={"cwd": cwd})
        timeout_ms = args.timeout_ms or self.config.default_timeout_ms

        result: CommandOutput = self.runner.run(recorded, cwd, timeout_ms)
        output = truncate_output(
            self.redactor.redact_text(result.output), self.config.max_command_output_chars
        )

        call_id = state.next_call_id("run_cmd")
        state.commands_run.append(recorded.display())
        add_run_cmd(state.record, call_id, recorded, output)
        logger.info(
            f"Recorded {recorded.display()} (failed={result.failed})",
            extra={"tool_call_id": call_id, "command": recorded.display()},
        )

        if result.failed:
            raise SessionError(output or "run_cmd failed", tool_call_id=call_id)
        return output

    def _baseline_content(self, repository: GitRepository, base_ref: str, path: str) -> str:
        try:
            content = repository.show_at_ref(base_ref, path)
        except UnavailableAtBaseline:
            return UNAVAILABLE_AT_BASE
        if is_probably_binary(content):
            return BINARY_SKIPPED
        return decode_text(content)

    def _redact_patch(self, args: ApplyPatchArgs) -> ApplyPatchArgs:
        return ApplyPatchArgs.model_validate(self.redactor.redact(args.to_wire()))

    def _append_file_changes(self, state: SessionState) -> SubmitResult:
        repository = self.repository_factory(state.repo.root)
        changes = classify_changes(repository.name_status(state.base_ref), self.path_filter)

        found = searchable_paths(changes)
        opened = [path for path in found if path in state.opened_files]
        if opened:
            call_id = state.next_call_id("search")
            query = f'grep -R --line-number --files-with-matches "." {" ".join(found)}'
            add_tool_exchange(
                state.record,
                call_id,
                "repo.search",
                RepoSearchArgs(query=query).model_dump(),
                "\n".join(found),
            )

        for path in opened:
            call_id = state.next_call_id("read")
            add_tool_exchange(
                state.record,
                call_id,
                "repo.readFile",
                RepoReadFileArgs(path=path).model_dump(),
                self.redactor.redact_text(self._baseline_content(repository, state.base_ref, path)),
            )

        compiled: CompiledPatch = compile_patch_set(
            changes,
            BaselineDiffSource(repository, state.base_ref),
            skip_binary=self.config.skip_binary_files,
        )
        if not compiled.is_empty:
            add_apply_patch(
                state.record,
                state.next_call_id("apply_patch"),
                self._redact_patch(ApplyPatchArgs.from_operations(compiled.operations)),
            )

        return SubmitResult(
            files_changed=compiled.files_changed,
            operations_applied=len(compiled.operations),
            skipped=compiled.skipped,
        )

    def submit_file_changes(self, state: SessionState) -> SubmitResult:
        """Record the working-tree changes as the session's single apply_patch.

        Raises:
            SessionError: If already submitted or there is nothing to submit
            BinaryUnsupported: If a created file is binary and skipping is off
        """
        self._require_active(state)
        if state.file_changes_submitted:
            raise SessionError("File changes already submitted for this session.")

        # A failed submit leaves the state untouched
        draft = state.model_copy(deep=True)
        result = self._append_file_changes(draft)
        if result.operations_applied == 0:
            raise SessionError("No file changes found to submit.")

        draft.file_changes_submitted = True
        draft.submitted_files_changed = result.files_changed
        self._commit(state, draft)
        return result

    def _commit(self, state: SessionState, draft: SessionState) -> None:
        state.record = draft.record
        state.call_seq = draft.call_seq
        state.file_changes_submitted = draft.file_changes_submitted
        state.submitted_files_changed = draft.submitted_files_changed

    def stop(self, state: SessionState, output_dir: Optional[str] = None) -> BuiltSession:
        """Finalize the record, derive its status and write the payload file."""
        self._require_active(state)
        draft = state.model_copy(deep=True)
        if not draft.file_changes_submitted:
            draft.submitted_files_changed = self._append_file_changes(draft).files_changed

        draft.record.messages.append(make_assistant_text(DONE_MESSAGE))
        draft.record = redact_record(draft.record, self.redactor)
        report = validate_record(draft.record)

        created_at = utc_now()
        payload = SessionPayload(
            task_id=state.task_id,
            repo=state.repo,
            base_ref=state.base_ref,
            created_at=created_at,
            started_at=state.started_at,
            metrics=SessionMetrics(
                files_changed=draft.submitted_files_changed,
                commands_run=list(draft.commands_run),
            ),
            status=report.status,
            record=draft.record,
        )

        directory = Path(output_dir or os.path.join(state.repo.root, self.config.output_dir))
        directory.mkdir(parents=True, exist_ok=True)
        output_path = directory / session_file_name(created_at)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(payload.model_dump_json(by_alias=True, exclude_none=True, indent=2))

        self._commit(state, draft)
        state.phase = "stopped"
        logger.info(
            f"Wrote {report.status} session record to {output_path}",
            extra={"task_id": state.task_id, "path": str(output_path)},
        )
        return BuiltSession(output_path=str(output_path), payload=payload)

    def discard(self, state: SessionState) -> None:
        self._require_active(state)
        state.phase = "discarded"
        logger.info("Discarded session", extra={"task_id": state.task_id})
