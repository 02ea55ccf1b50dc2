"""Tests for pnpm command execution plumbing."""

import sys

from dataset_recorder.models.tooling import RunCmdArgs
from dataset_recorder.services.command_runner import (
    NO_OUTPUT,
    SubprocessCommandRunner,
    combine_output,
    truncate_output,
)


def test_combine_output():
    assert combine_output("out", "err") == "out\nerr"
    assert combine_output("", "err") == "err"
    assert combine_output("", "") == NO_OUTPUT


def test_truncate_output():
    assert truncate_output("abc", 3) == "abc"
    assert truncate_output("abcdef", 3) == "abc\n(truncated)"


class TestSubprocessCommandRunner:
    """Runs the Python interpreter in place of pnpm."""

    runner = SubprocessCommandRunner(executable=sys.executable)

    def test_success(self, tmp_path):
        result = self.runner.run(RunCmdArgs(args=["-c", "print('hi')"]), str(tmp_path), 10_000)
        assert not result.failed
        assert result.returncode == 0
        assert result.output.strip() == "hi"

    def test_nonzero_exit_is_failure(self, tmp_path):
        script = "import sys; sys.stderr.write('boom'); sys.exit(3)"
        result = self.runner.run(RunCmdArgs(args=["-c", script]), str(tmp_path), 10_000)
        assert result.failed
        assert result.returncode == 3
        assert result.output == "boom"

    def test_cwd_and_env(self, tmp_path):
        script = "import os; print(os.getcwd() == os.environ['EXPECTED'])"
        workdir = str(tmp_path.resolve())
        args = RunCmdArgs(args=["-c", script], env={"EXPECTED": workdir})
        result = self.runner.run(args, workdir, 10_000)
        assert result.output.strip() == "True"

    def test_timeout(self, tmp_path):
        result = self.runner.run(RunCmdArgs(args=["-c", "import time; time.sleep(5)"]), str(tmp_path), 200)
        assert result.failed
        assert result.timed_out
        assert result.output.endswith("run_cmd timed out after 200ms")

    def test_missing_executable(self, tmp_path):
        runner = SubprocessCommandRunner(executable=str(tmp_path / "no-such-pnpm"))
        result = runner.run(RunCmdArgs(args=["lint"]), str(tmp_path), 1_000)
        assert result.failed
        assert result.returncode is None
        assert result.output
