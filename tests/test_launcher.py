"""ProcessLauncher unit tests.

Test coverage:
- Environment merging and isolation
- Spawning with captured stdout/stderr
- Launch failures (not found, not executable)
- Exit outcome description
"""

from __future__ import annotations

import os
import signal
import sys
from pathlib import Path
from unittest import mock

import pytest

from paraexec.command_spec import CommandSpec
from paraexec.errors import LaunchError
from paraexec.runtime.launcher import (
    ExitOutcome,
    ProcessLauncher,
    RunningProcess,
    describe_os_error,
)

IS_WINDOWS = sys.platform == "win32"


@pytest.fixture
def launcher() -> ProcessLauncher:
    return ProcessLauncher()


# =============================================================================
# ExitOutcome
# =============================================================================


class TestExitOutcome:
    """Test exit status descriptions."""

    def test_success(self):
        outcome = ExitOutcome(0)
        assert outcome.success is True
        assert outcome.describe() == "exited with code 0"

    def test_failure_code(self):
        outcome = ExitOutcome(3)
        assert outcome.success is False
        assert outcome.signal_number is None
        assert str(outcome) == "exited with code 3"

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX signals")
    def test_killed_by_signal(self):
        outcome = ExitOutcome(-signal.SIGKILL)
        assert outcome.success is False
        assert outcome.signal_number == signal.SIGKILL
        assert outcome.describe() == f"killed by signal {int(signal.SIGKILL)} (SIGKILL)"

    def test_unknown_signal(self):
        outcome = ExitOutcome(-250)
        assert outcome.describe() == "killed by signal 250"


class TestRunningProcess:
    """Test stream access on a running process."""

    def test_uncaptured_streams_rejected(self):
        process = mock.Mock(stdout=None, stderr=None, pid=1)
        running = RunningProcess(label="x", process=process)
        with pytest.raises(RuntimeError):
            running.stdout
        with pytest.raises(RuntimeError):
            running.stderr


class TestDescribeOsError:
    """Test launch error details."""

    def test_errno_and_strerror(self):
        err = FileNotFoundError(2, "No such file or directory")
        assert describe_os_error(err) == "No such file or directory (os error 2)"

    def test_plain_message(self):
        assert describe_os_error(OSError("boom")) == "boom"


# =============================================================================
# Environment
# =============================================================================


class TestBuildEnvironment:
    """Test environment merging."""

    def test_overrides_applied_on_base(self):
        launcher = ProcessLauncher(base_environment={"PATH": "/bin", "A": "old"})
        spec = CommandSpec(label="x", program="env", environment_overrides={"A": "new", "B": "1"})

        env = launcher.build_environment(spec)

        assert env == {"PATH": "/bin", "A": "new", "B": "1"}

    def test_base_not_mutated(self):
        base = {"PATH": "/bin"}
        launcher = ProcessLauncher(base_environment=base)
        launcher.build_environment(CommandSpec(label="x", program="env", environment_overrides={"A": "1"}))
        assert base == {"PATH": "/bin"}

    def test_inherits_os_environ(self, launcher: ProcessLauncher, monkeypatch):
        monkeypatch.setenv("PARAEXEC_TEST_INHERITED", "yes")
        env = launcher.build_environment(CommandSpec(label="x", program="env"))
        assert env["PARAEXEC_TEST_INHERITED"] == "yes"


# =============================================================================
# Launch
# =============================================================================


class TestLaunch:
    """Test spawning child processes."""

    @pytest.mark.asyncio
    async def test_captures_both_streams(self, launcher: ProcessLauncher, fake_cmd):
        spec = CommandSpec(
            label="fake",
            program=fake_cmd[0],
            arguments=(*fake_cmd[1:], "--out", "hello", "--err", "warn", "--exit-code", "4"),
        )

        running = await launcher.launch(spec)
        stdout = await running.stdout.read()
        stderr = await running.stderr.read()
        outcome = await running.wait()

        assert running.label == "fake"
        assert running.pid > 0
        assert stdout.strip() == b"hello"
        assert stderr.strip() == b"warn"
        assert outcome == ExitOutcome(4)
        assert running.exit_outcome == outcome

    @pytest.mark.asyncio
    async def test_overrides_visible_to_child(self, launcher: ProcessLauncher, fake_cmd):
        spec = CommandSpec(
            label="env",
            program=fake_cmd[0],
            arguments=(*fake_cmd[1:], "--env", "PARAEXEC_TEST_OVERRIDE"),
            environment_overrides={"PARAEXEC_TEST_OVERRIDE": "42"},
        )

        running = await launcher.launch(spec)
        stdout = await running.stdout.read()
        await running.stderr.read()
        await running.wait()

        assert stdout.decode().strip() == "PARAEXEC_TEST_OVERRIDE=42"
        assert "PARAEXEC_TEST_OVERRIDE" not in os.environ

    @pytest.mark.asyncio
    async def test_program_not_found(self, launcher: ProcessLauncher):
        spec = CommandSpec(label="missing", program="paraexec-no-such-program-xyz")

        with pytest.raises(LaunchError) as exc_info:
            await launcher.launch(spec)

        assert exc_info.value.label == "missing"
        assert exc_info.value.detail

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX permissions")
    async def test_not_executable(self, launcher: ProcessLauncher, tmp_path: Path):
        script = tmp_path / "script.sh"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(0o644)

        with pytest.raises(LaunchError) as exc_info:
            await launcher.launch(CommandSpec(label="noexec", program=str(script)))

        assert "os error" in exc_info.value.detail
