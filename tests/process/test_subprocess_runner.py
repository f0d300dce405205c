"""Tests for SubprocessRunner against real child processes."""

import asyncio
import os
import time
from pathlib import Path

import pytest

from cursor_runner.process.domain.errors import ProcessTimeoutError, SpawnError
from cursor_runner.process.domain.run_options import RunOptions
from cursor_runner.process.infrastructure.subprocess_runner import SubprocessRunner

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(os.name != "posix", reason="requires a POSIX shell and process groups"),
]


def _is_alive(pid: int) -> bool:
    """Check whether a pid refers to a running (non-zombie) process."""
    stat = Path(f"/proc/{pid}/stat")
    if stat.parent.parent.exists():
        try:
            state = stat.read_text().rsplit(")", 1)[1].split()[0]
        except (FileNotFoundError, ProcessLookupError, IndexError):
            return False
        return state != "Z"
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


async def _wait_until_dead(pid: int, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not _is_alive(pid):
            return True
        await asyncio.sleep(0.05)
    return not _is_alive(pid)


@pytest.fixture
def runner() -> SubprocessRunner:
    """Create a runner with a short grace period."""
    return SubprocessRunner(RunOptions(timeout_seconds=10.0, grace_seconds=0.2))


class TestSubprocessRunnerCompletion:
    """Test cases for processes that exit on their own."""

    async def test_echo(self, runner: SubprocessRunner) -> None:
        """Test capturing stdout of a successful command."""
        result = await runner.run("echo", ["hello"])

        assert result.success is True
        assert result.exit_code == 0
        assert result.stdout == "hello\n"
        assert result.stderr == ""
        assert result.truncated is False
        assert result.args == ("hello",)
        assert result.pid is not None
        assert result.duration_seconds >= 0

    async def test_non_zero_exit_is_not_an_error(self, runner: SubprocessRunner) -> None:
        """Test that a failing command returns a result with success False."""
        result = await runner.run("sh", ["-c", "echo oops >&2; exit 3"])

        assert result.success is False
        assert result.exit_code == 3
        assert result.stderr == "oops\n"

    async def test_cwd_and_env(self, runner: SubprocessRunner, tmp_path: Path) -> None:
        """Test that the working directory and environment reach the child."""
        options = RunOptions(
            timeout_seconds=5.0,
            cwd=tmp_path,
            env={"PATH": os.environ.get("PATH", "/usr/bin:/bin"), "GREETING": "hi"},
        )

        result = await runner.run("sh", ["-c", 'pwd; echo "$GREETING"'], options)

        lines = result.stdout.splitlines()
        assert os.path.realpath(lines[0]) == os.path.realpath(tmp_path)
        assert lines[1] == "hi"

    async def test_output_capped_per_stream(self, runner: SubprocessRunner) -> None:
        """Test that stdout is truncated at the cap while the child runs to exit."""
        options = RunOptions(timeout_seconds=5.0, max_output_bytes=1000)
        script = "head -c 5000 /dev/zero | tr '\\0' a; echo err >&2"

        result = await runner.run("sh", ["-c", script], options)

        assert result.success is True
        assert result.truncated is True
        assert len(result.stdout) == 1000
        assert result.stdout_bytes == 5000
        assert result.stderr == "err\n"

    async def test_output_exactly_at_cap_is_not_truncated(self, runner: SubprocessRunner) -> None:
        """Test the boundary where output equals the cap."""
        options = RunOptions(timeout_seconds=5.0, max_output_bytes=4)

        result = await runner.run("printf", ["abcd"], options)

        assert result.stdout == "abcd"
        assert result.truncated is False

    async def test_lingering_descendants_are_killed(self, runner: SubprocessRunner) -> None:
        """Test that a background child holding the pipes does not hang the run."""
        started = time.monotonic()

        result = await runner.run("sh", ["-c", "sleep 30 & echo $!"])

        assert time.monotonic() - started < 5.0
        assert result.exit_code == 0
        assert await _wait_until_dead(int(result.stdout.strip()))

    async def test_exit_detected_while_descendant_holds_pipe(
        self, runner: SubprocessRunner
    ) -> None:
        """Test that the child's exit is seen before a short deadline expires."""
        options = RunOptions(timeout_seconds=4.0, grace_seconds=0.2)
        started = time.monotonic()

        result = await runner.run("sh", ["-c", "sleep 30 & echo $!; exit 0"], options)

        assert result.exit_code == 0
        assert time.monotonic() - started < 3.0
        assert await _wait_until_dead(int(result.stdout.strip()))


class TestSubprocessRunnerFailures:
    """Test cases for spawn failures, timeouts and cancellation."""

    async def test_missing_executable(self, runner: SubprocessRunner) -> None:
        """Test that a nonexistent binary raises SpawnError."""
        with pytest.raises(SpawnError) as exc_info:
            await runner.run("definitely-not-a-real-binary-xyz", ["--version"])

        assert exc_info.value.missing is True
        assert exc_info.value.command == "definitely-not-a-real-binary-xyz"
        assert "Command not found" in str(exc_info.value)

    @pytest.mark.slow
    async def test_deadline_kills_process(self, runner: SubprocessRunner) -> None:
        """Test that exceeding the timeout kills the child and raises."""
        options = RunOptions(timeout_seconds=0.3, grace_seconds=0.2)
        started = time.monotonic()

        with pytest.raises(ProcessTimeoutError) as exc_info:
            await runner.run("sh", ["-c", "echo $$; exec sleep 10"], options)

        assert time.monotonic() - started < 3.0
        error = exc_info.value
        assert error.kind == "deadline"
        assert error.timeout_seconds == 0.3
        assert "timeout" in str(error).lower()
        assert await _wait_until_dead(int(error.stdout.strip()))

    @pytest.mark.slow
    async def test_deadline_kills_whole_process_group(self, runner: SubprocessRunner) -> None:
        """Test that shell-spawned grandchildren die with the leader."""
        options = RunOptions(timeout_seconds=0.3, grace_seconds=0.2)

        with pytest.raises(ProcessTimeoutError) as exc_info:
            await runner.run("sh", ["-c", "sleep 30 & echo $!; wait"], options)

        assert await _wait_until_dead(int(exc_info.value.stdout.strip()))

    @pytest.mark.slow
    async def test_sigterm_ignored_then_sigkill(self, runner: SubprocessRunner) -> None:
        """Test escalation to SIGKILL when the child traps SIGTERM."""
        options = RunOptions(timeout_seconds=0.3, grace_seconds=0.2)
        script = "trap '' TERM; echo $$; while true; do sleep 0.05; done"
        started = time.monotonic()

        with pytest.raises(ProcessTimeoutError) as exc_info:
            await runner.run("sh", ["-c", script], options)

        assert time.monotonic() - started < 3.0
        assert await _wait_until_dead(int(exc_info.value.stdout.strip()))

    @pytest.mark.slow
    async def test_idle_timeout(self, runner: SubprocessRunner) -> None:
        """Test that a silent process is killed after the idle window."""
        options = RunOptions(timeout_seconds=10.0, idle_timeout_seconds=0.4, grace_seconds=0.2)
        started = time.monotonic()

        with pytest.raises(ProcessTimeoutError) as exc_info:
            await runner.run("sh", ["-c", "echo started; exec sleep 10"], options)

        assert time.monotonic() - started < 5.0
        assert exc_info.value.kind == "idle"
        assert exc_info.value.stdout == "started\n"

    @pytest.mark.slow
    async def test_cancellation_kills_process(
        self, runner: SubprocessRunner, tmp_path: Path
    ) -> None:
        """Test that cancelling the caller still terminates the child."""
        pid_file = tmp_path / "pid"
        task = asyncio.create_task(
            runner.run("sh", ["-c", f'echo $$ > "{pid_file}"; exec sleep 10'])
        )

        deadline = time.monotonic() + 3.0
        while not pid_file.exists() or not pid_file.read_text().strip():
            assert time.monotonic() < deadline, "child never started"
            await asyncio.sleep(0.02)
        pid = int(pid_file.read_text().strip())

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await _wait_until_dead(pid)
