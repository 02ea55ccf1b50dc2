"""Tests for CLI module."""

import json
from unittest.mock import patch

import pytest

from dataset_recorder.services.command_runner import CommandOutput, SubprocessCommandRunner
from dataset_recorder.ui.cli import ACTIVE_SESSION_FILE, main, strip_separator

from conftest import build_record


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch, tmp_path):
    """Default config and no global logging changes."""
    monkeypatch.setenv("DATASET_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setattr("dataset_recorder.ui.cli.setup_logging", lambda *args, **kwargs: None)


def run_cli(capsys, *argv):
    """Run main() and return its parsed JSON output."""
    main(list(argv))
    return json.loads(capsys.readouterr().out)


def run_cli_error(capsys, *argv):
    """Run main() expecting failure and return stderr."""
    with pytest.raises(SystemExit) as exc_info:
        main(list(argv))
    assert exc_info.value.code == 1
    return capsys.readouterr().err


def test_strip_separator():
    assert strip_separator(["--", "lint"]) == ["lint"]
    assert strip_separator(["lint"]) == ["lint"]
    assert strip_separator([]) == []


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit):
        main([])
    assert "usage" in capsys.readouterr().out


class TestCheckCmd:
    """Tests for the allowlist checker."""

    def test_accepts(self, capsys):
        result = run_cli(capsys, "check-cmd", "--", "--filter", "web", "test")
        assert result["kind"] == "test"
        assert result["canonical"] == "pnpm --filter web test"

    def test_add_dev(self, capsys):
        result = run_cli(capsys, "check-cmd", "--", "add", "-D", "typescript")
        assert result["kind"] == "add"
        assert result["command"]["dev"] is True
        assert result["command"]["packages"] == ["typescript"]

    def test_rejects(self, capsys):
        err = run_cli_error(capsys, "check-cmd", "--", "exec", "rm")
        assert err.startswith("Error: MalformedGrammar:")


class TestValidate:
    """Tests for offline record validation."""

    def test_single_record(self, capsys, tmp_path):
        path = tmp_path / "record.json"
        path.write_text(json.dumps(build_record().to_wire()))
        result = run_cli(capsys, "validate", str(path))
        assert result["valid"] == 1
        assert result["records"][0] == {"index": 0, "status": "ready", "toolCalls": 2, "operations": 2}

    def test_jsonl(self, capsys, tmp_path):
        path = tmp_path / "records.jsonl"
        lines = [json.dumps(build_record().to_wire()), json.dumps(build_record(commands=()).to_wire())]
        path.write_text("\n".join(lines) + "\n")
        result = run_cli(capsys, "validate", str(path))
        assert [r["status"] for r in result["records"]] == ["ready", "draft"]

    def test_declared_status_flag(self, capsys, tmp_path):
        path = tmp_path / "record.json"
        path.write_text(json.dumps(build_record(commands=()).to_wire()))
        err = run_cli_error(capsys, "validate", str(path), "--status", "ready")
        assert "StatusMismatch" in err

    def test_payload_status_checked(self, capsys, tmp_path):
        path = tmp_path / "payload.json"
        path.write_text(json.dumps({"status": "ready", "record": build_record(with_patch=False).to_wire()}))
        err = run_cli_error(capsys, "validate", str(path))
        assert "StatusMismatch" in err


class TestSessionFlow:
    """Tests for start/open/run/submit/stop against a real repository."""

    def test_full_session(self, capsys, repo_root, tmp_path):
        root = str(repo_root)
        started = run_cli(capsys, "start", "--root", root, "--task", "t1", "--system", "sys", "--user", "fix a")
        assert started["taskId"] == "t1"
        assert started["repo"] == "demo-repo"
        assert (repo_root / ACTIVE_SESSION_FILE).exists()

        opened = run_cli(capsys, "open", "--root", root, "src/a.ts", "node_modules/x.js")
        assert opened["opened"] == ["src/a.ts"]
        assert opened["ignored"] == ["node_modules/x.js"]

        with patch.object(SubprocessCommandRunner, "run", return_value=CommandOutput("0 problems", False)):
            ran = run_cli(capsys, "run", "--root", root, "--", "lint")
        assert ran == {"output": "0 problems", "commandsRun": ["pnpm lint"]}

        (repo_root / "src" / "a.ts").write_text("export const a = 2;\n")
        submitted = run_cli(capsys, "submit", "--root", root)
        assert submitted == {"filesChanged": 1, "operationsApplied": 1, "skipped": []}

        status = run_cli(capsys, "status", "--root", root)
        assert status["toolCalls"] == 4
        assert status["hasApplyPatch"] is True

        stopped = run_cli(capsys, "stop", "--root", root, "--output-dir", str(tmp_path / "out"))
        assert stopped["status"] == "ready"
        assert not (repo_root / ACTIVE_SESSION_FILE).exists()

        with open(stopped["outputPath"], encoding="utf-8") as f:
            payload = json.load(f)
        ids = [c["id"] for m in payload["record"]["messages"] for c in m.get("tool_calls", [])]
        assert ids == ["run_cmd_1", "search_2", "read_3", "apply_patch_4"]

    def test_failed_run_is_still_recorded(self, capsys, repo_root):
        root = str(repo_root)
        run_cli(capsys, "start", "--root", root, "--task", "t1", "--system", "s", "--user", "u")
        with patch.object(SubprocessCommandRunner, "run", return_value=CommandOutput("2 failing", True)):
            err = run_cli_error(capsys, "run", "--root", root, "--", "test")
        assert "2 failing" in err
        assert run_cli(capsys, "status", "--root", root)["commandsRun"] == ["pnpm test"]

    def test_start_twice(self, capsys, repo_root):
        root = str(repo_root)
        run_cli(capsys, "start", "--root", root, "--task", "t1", "--system", "s", "--user", "u")
        err = run_cli_error(capsys, "start", "--root", root, "--task", "t2", "--system", "s", "--user", "u")
        assert "already active" in err

    def test_prompt_files(self, capsys, repo_root, tmp_path):
        system_file = tmp_path / "system.txt"
        system_file.write_text("from file")
        run_cli(
            capsys, "start", "--root", str(repo_root), "--task", "t1",
            "--system-file", str(system_file), "--user", "u",
        )
        saved = json.loads((repo_root / ACTIVE_SESSION_FILE).read_text())
        assert saved["system_prompt"] == "from file"

    def test_missing_prompt(self, capsys, repo_root):
        err = run_cli_error(capsys, "start", "--root", str(repo_root), "--task", "t1", "--user", "u")
        assert "--system" in err

    def test_discard(self, capsys, repo_root):
        root = str(repo_root)
        run_cli(capsys, "start", "--root", root, "--task", "t1", "--system", "s", "--user", "u")
        assert run_cli(capsys, "discard", "--root", root)["discarded"] is True
        err = run_cli_error(capsys, "status", "--root", root)
        assert "No active session" in err

    def test_no_active_session(self, capsys, repo_root):
        err = run_cli_error(capsys, "submit", "--root", str(repo_root))
        assert "No active session" in err
