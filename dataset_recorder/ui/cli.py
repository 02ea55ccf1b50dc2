#!/usr/bin/env python3
"""CLI for recording dataset sessions - start, open, run, submit, stop."""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.config import AppConfig, load_config
from ..core.errors import RecorderError, SessionError
from ..core.logging import setup_logging
from ..models.tooling import RunCmdArgs
from ..services.command_grammar import canonical_args, parse_allowed_command
from ..services.session import SessionRecorder, SessionState
from ..services.validator import verify_declared_status
from ..tools.git_ops import GitRepository

ACTIVE_SESSION_FILE = Path(".agent-dataset") / "active-session.json"


def active_session_path(repo_root: str) -> Path:
    return Path(repo_root) / ACTIVE_SESSION_FILE


def load_active_session(repo_root: str) -> SessionState:
    path = active_session_path(repo_root)
    if not path.exists():
        raise SessionError("No active session. Run 'start' first.", path=str(path))
    return SessionState.model_validate_json(path.read_text(encoding="utf-8"))


def save_active_session(state: SessionState) -> None:
    path = active_session_path(state.repo.root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(state.model_dump_json(indent=2), encoding="utf-8")


def clear_active_session(repo_root: str) -> None:
    path = active_session_path(repo_root)
    if path.exists():
        path.unlink()


def read_prompt(text: Optional[str], file_path: Optional[str], label: str) -> str:
    if file_path:
        return Path(file_path).read_text(encoding="utf-8")
    if text is None:
        raise SessionError(f"--{label} or --{label}-file is required")
    return text


def strip_separator(tokens: List[str]) -> List[str]:
    """Drop the leading ``--`` argparse leaves in a REMAINDER list."""
    if tokens and tokens[0] == "--":
        return tokens[1:]
    return tokens


def load_records(file_path: str) -> List[Dict[str, Any]]:
    """Read records or payloads from a JSON file (object or array) or JSON lines."""
    text = Path(file_path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    return data if isinstance(data, list) else [data]


def run_command(
    args: argparse.Namespace,
    config: AppConfig,
    recorder: Optional[SessionRecorder] = None,
) -> Dict[str, Any]:
    """Run one subcommand.

    Args:
        args: Parsed command line arguments
        config: Loaded application config
        recorder: Session recorder (default: one built from config)

    Returns:
        Result dictionary to output as JSON

    Raises:
        RecorderError: For recording, validation and grammar failures
    """
    if args.command == "check-cmd":
        command = parse_allowed_command(strip_separator(args.pnpm_args))
        return {
            "kind": command.kind,
            "canonical": " ".join(["pnpm", *canonical_args(command)]),
            "command": command.model_dump(),
        }

    if args.command == "validate":
        results = []
        for index, item in enumerate(load_records(args.file)):
            is_payload = isinstance(item, dict) and "record" in item
            record = item["record"] if is_payload else item
            declared = args.status or (item.get("status") if is_payload else None)
            report = verify_declared_status(record, declared)
            results.append({
                "index": index,
                "status": report.status,
                "toolCalls": len(report.tool_call_ids),
                "operations": report.operation_count,
            })
        return {"valid": len(results), "records": results}

    if args.command == "serve":
        from .fastapi_app import serve
        serve(config, host=args.host, port=args.port)
        return {"stopped": True}

    recorder = recorder or SessionRecorder(config.recorder)
    repo_root = GitRepository(args.root).root

    if args.command == "start":
        if active_session_path(repo_root).exists():
            raise SessionError("A session is already active. Stop or discard it first.")
        state = recorder.start(
            repo_root,
            args.task,
            read_prompt(args.system, args.system_file, "system"),
            read_prompt(args.user, args.user_file, "user"),
        )
        save_active_session(state)
        return {
            "taskId": state.task_id,
            "baseRef": state.base_ref,
            "branch": state.repo.branch,
            "repo": state.repo.name,
        }

    state = load_active_session(repo_root)

    if args.command == "open":
        opened, ignored = [], []
        for file_path in args.paths:
            (opened if recorder.record_opened_file(state, file_path) else ignored).append(file_path)
        save_active_session(state)
        return {"opened": opened, "ignored": ignored, "openedFiles": state.opened_files}

    elif args.command == "run":
        invocation = RunCmdArgs(
            args=strip_separator(args.pnpm_args),
            cwd=args.cwd,
            timeout_ms=args.timeout_ms,
        )
        try:
            output = recorder.run_command(state, invocation)
        finally:
            # A failed command is still recorded
            save_active_session(state)
        return {"output": output, "commandsRun": state.commands_run}

    elif args.command == "submit":
        result = recorder.submit_file_changes(state)
        save_active_session(state)
        return {
            "filesChanged": result.files_changed,
            "operationsApplied": result.operations_applied,
            "skipped": result.skipped,
        }

    elif args.command == "stop":
        built = recorder.stop(state, output_dir=args.output_dir)
        clear_active_session(repo_root)
        return {
            "outputPath": built.output_path,
            "status": built.payload.status,
            "filesChanged": built.payload.metrics.files_changed,
        }

    elif args.command == "discard":
        recorder.discard(state)
        clear_active_session(repo_root)
        return {"discarded": True, "taskId": state.task_id}

    elif args.command == "status":
        return {
            "taskId": state.task_id,
            "baseRef": state.base_ref,
            "phase": state.phase,
            "toolCalls": state.call_seq,
            "commandsRun": state.commands_run,
            "openedFiles": state.opened_files,
            "fileChangesSubmitted": state.file_changes_submitted,
            "hasApplyPatch": state.has_apply_patch(),
        }

    else:
        raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument("--root", type=str, default=".", help="Repository root path (default: .)")
    common_parser.add_argument("--config", type=str, help="Config file (default: $DATASET_CONFIG or configs/recorder.yaml)")

    parser = argparse.ArgumentParser(
        prog="dataset-recorder",
        description="Record editing sessions as tool-trace training records",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    start_parser = subparsers.add_parser("start", help="Start a session at HEAD of a clean repository",
                                         parents=[common_parser])
    start_parser.add_argument("--task", required=True, help="Task id")
    start_parser.add_argument("--system", help="System prompt text")
    start_parser.add_argument("--system-file", help="Read the system prompt from a file")
    start_parser.add_argument("--user", help="User prompt text")
    start_parser.add_argument("--user-file", help="Read the user prompt from a file")

    open_parser = subparsers.add_parser("open", help="Record files opened during the session",
                                        parents=[common_parser])
    open_parser.add_argument("paths", nargs="+", help="Files that were opened")

    run_parser = subparsers.add_parser("run", help="Run and record an allowlisted pnpm command",
                                       parents=[common_parser])
    run_parser.add_argument("--cwd", help="Working directory (default: repository root)")
    run_parser.add_argument("--timeout-ms", type=int, help="Timeout in milliseconds")
    run_parser.add_argument("pnpm_args", nargs=argparse.REMAINDER, help="pnpm arguments, after --")

    subparsers.add_parser("submit", help="Record working-tree changes as the apply_patch call",
                          parents=[common_parser])

    stop_parser = subparsers.add_parser("stop", help="Finalize and write the session record",
                                        parents=[common_parser])
    stop_parser.add_argument("--output-dir", help="Directory for the session file")

    subparsers.add_parser("discard", help="Drop the active session", parents=[common_parser])
    subparsers.add_parser("status", help="Show the active session", parents=[common_parser])

    validate_parser = subparsers.add_parser("validate", help="Validate records or session payloads",
                                            parents=[common_parser])
    validate_parser.add_argument("file", help="JSON or JSON lines file")
    validate_parser.add_argument("--status", choices=["draft", "ready"], help="Declared status to check")

    check_parser = subparsers.add_parser("check-cmd", help="Check pnpm arguments against the allowlist",
                                         parents=[common_parser])
    check_parser.add_argument("pnpm_args", nargs=argparse.REMAINDER, help="pnpm arguments, after --")

    serve_parser = subparsers.add_parser("serve", help="Run the ingest/export server",
                                         parents=[common_parser])
    serve_parser.add_argument("--host", help="Bind host")
    serve_parser.add_argument("--port", type=int, help="Bind port")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config(args.config)
        setup_logging(config.logging.level, config.logging.structured)
        result = run_command(args, config)

        # Output compact JSON to stdout
        print(json.dumps(result, separators=(',', ':')))

    except RecorderError as e:
        print(f"Error: {e.kind}: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
