"""Asyncio subprocess runner with output capping and timeout enforcement."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from cursor_runner.process.domain.errors import ProcessTimeoutError, SpawnError
from cursor_runner.process.domain.process_result import ProcessResult
from cursor_runner.process.domain.process_runner_port import ProcessRunnerPort
from cursor_runner.process.domain.run_options import RunOptions
from cursor_runner.process.infrastructure.output_buffer import OutputBuffer
from cursor_runner.process.utils.arg_summary import summarize_args

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"
READ_CHUNK_SIZE = 64 * 1024
MIN_DRAIN_SECONDS = 0.5
EXIT_POLL_SECONDS = 0.05


class _IdleTimeout(Exception):
    """Raised inside supervision when the child stops producing output."""


@dataclass
class _Activity:
    started_at: float
    last_output_at: float
    last_heartbeat_at: float


class SubprocessRunner(ProcessRunnerPort):
    """Runs one external process per call using asyncio subprocesses.

    Each child is started in its own session, so it leads a process group and
    shell-spawned descendants can be signalled together with it.

    Lifecycle of a run:
    1. Spawn. An OSError becomes SpawnError before any task is created.
    2. Two reader tasks drain stdout and stderr into per-stream
       OutputBuffers. A full buffer keeps draining and discards bytes.
    3. Supervision waits for exit under ``asyncio.wait_for`` (deadline from
       spawn), checking for idleness and logging heartbeats on a tick.
    4. Whatever happens, the finally block terminates the process group if
       the child is still alive and cancels and awaits the reader tasks.

    Example:
        ```python
        runner = SubprocessRunner()
        result = await runner.run("echo", ["hello"])
        assert result.success
        ```
    """

    def __init__(
        self,
        default_options: RunOptions | None = None,
        read_chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        """Initialize the runner.

        Args:
            default_options: Options used when run() is called without any
            read_chunk_size: Maximum bytes read from a pipe per await
        """
        if read_chunk_size < 1:
            raise ValueError("read_chunk_size must be at least 1")
        self.default_options = default_options or RunOptions()
        self.read_chunk_size = read_chunk_size

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        options: RunOptions | None = None,
    ) -> ProcessResult:
        """Run a command to completion.

        Args:
            command: Executable name or path
            args: Arguments passed to the executable
            options: Limits and environment (runner defaults when None)

        Returns:
            ProcessResult with captured output and exit code

        Raises:
            SpawnError: If the process could not be started
            ProcessTimeoutError: If the deadline or idle timeout was exceeded
        """
        options = options or self.default_options
        argv = tuple(str(arg) for arg in args)
        arg_summary = summarize_args(argv)

        logger.debug(
            "Spawning %s (cwd=%s, args=%s)", command, options.cwd or os.getcwd(), arg_summary
        )
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *argv,
                cwd=options.cwd,
                env=options.env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=_POSIX,
            )
        except OSError as error:
            logger.error("Failed to spawn %s: %s", command, error)
            raise SpawnError.from_os_error(command, error) from error

        started_at = time.monotonic()
        activity = _Activity(started_at, started_at, started_at)
        stdout = OutputBuffer(options.max_output_bytes)
        stderr = OutputBuffer(options.max_output_bytes)
        readers = [
            asyncio.create_task(self._pump(process.stdout, stdout, activity, "stdout", command)),
            asyncio.create_task(self._pump(process.stderr, stderr, activity, "stderr", command)),
        ]
        logger.info("Started %s (pid %d, args=%s)", command, process.pid, arg_summary)

        try:
            try:
                exit_code = await asyncio.wait_for(
                    self._supervise(process, readers, activity, stdout, stderr, options, command),
                    timeout=options.timeout_seconds,
                )
            except TimeoutError as error:
                await self._terminate(process, options.grace_seconds)
                duration = time.monotonic() - started_at
                logger.error(
                    "%s timed out after %.2fs (stdout %d bytes, stderr %d bytes)",
                    command,
                    duration,
                    stdout.total_bytes,
                    stderr.total_bytes,
                )
                raise ProcessTimeoutError(
                    command,
                    options.timeout_seconds,
                    stdout=stdout.text(),
                    stderr=stderr.text(),
                    duration_seconds=duration,
                ) from error
            except _IdleTimeout as error:
                await self._terminate(process, options.grace_seconds)
                duration = time.monotonic() - started_at
                logger.error("%s produced no output for %ss", command, options.idle_timeout_seconds)
                raise ProcessTimeoutError(
                    command,
                    options.idle_timeout_seconds or 0.0,
                    kind="idle",
                    stdout=stdout.text(),
                    stderr=stderr.text(),
                    duration_seconds=duration,
                ) from error
        finally:
            await asyncio.shield(self._cleanup(process, readers, options.grace_seconds))

        result = ProcessResult(
            command=command,
            args=argv,
            exit_code=exit_code,
            stdout=stdout.text(),
            stderr=stderr.text(),
            duration_seconds=time.monotonic() - started_at,
            truncated=stdout.truncated or stderr.truncated,
            stdout_bytes=stdout.total_bytes,
            stderr_bytes=stderr.total_bytes,
            pid=process.pid,
        )
        if result.success:
            logger.info("%s completed in %.2fs", command, result.duration_seconds)
        else:
            logger.warning(
                "%s exited with code %d in %.2fs", command, exit_code, result.duration_seconds
            )
        return result

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        buffer: OutputBuffer,
        activity: _Activity,
        name: str,
        command: str,
    ) -> None:
        """Drain one pipe into its buffer until EOF."""
        if stream is None:
            return
        while True:
            chunk = await stream.read(self.read_chunk_size)
            if not chunk:
                return
            activity.last_output_at = time.monotonic()
            was_truncated = buffer.truncated
            buffer.append(chunk)
            if buffer.truncated and not was_truncated:
                logger.warning(
                    "%s of %s exceeded %d bytes; further output is discarded",
                    name,
                    command,
                    buffer.limit,
                )

    async def _supervise(
        self,
        process: asyncio.subprocess.Process,
        readers: list[asyncio.Task[None]],
        activity: _Activity,
        stdout: OutputBuffer,
        stderr: OutputBuffer,
        options: RunOptions,
        command: str,
    ) -> int:
        """Wait for exit while enforcing the idle timeout and logging heartbeats.

        Returns:
            The process exit code

        Raises:
            _IdleTimeout: If no output arrived within idle_timeout_seconds
        """
        tick = options.heartbeat_seconds
        if options.idle_timeout_seconds is not None:
            tick = min(tick, options.idle_timeout_seconds / 4)

        completion = asyncio.ensure_future(self._drain(process, readers, options.grace_seconds))
        try:
            while True:
                done, _ = await asyncio.wait({completion}, timeout=tick)
                if completion in done:
                    return completion.result()

                now = time.monotonic()
                idle_for = now - activity.last_output_at
                if (
                    options.idle_timeout_seconds is not None
                    and idle_for >= options.idle_timeout_seconds
                ):
                    raise _IdleTimeout()
                if now - activity.last_heartbeat_at >= options.heartbeat_seconds:
                    activity.last_heartbeat_at = now
                    logger.info(
                        "%s still running (pid %d, elapsed %.0fs, idle %.0fs, "
                        "stdout %d bytes, stderr %d bytes)",
                        command,
                        process.pid,
                        now - activity.started_at,
                        idle_for,
                        stdout.total_bytes,
                        stderr.total_bytes,
                    )
        finally:
            if not completion.done():
                completion.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await completion

    async def _drain(
        self,
        process: asyncio.subprocess.Process,
        readers: list[asyncio.Task[None]],
        grace_seconds: float,
    ) -> int:
        """Wait for the child to exit and its pipes to reach EOF.

        Exit is taken from ``returncode``. ``process.wait()`` does not resolve
        until every pipe is closed, so a descendant holding stdout would keep
        it pending until the deadline.
        """
        exit_code = await self._wait_exit(process)
        drain_seconds = max(grace_seconds, MIN_DRAIN_SECONDS)
        _, pending = await asyncio.wait(readers, timeout=drain_seconds)
        if pending:
            # Descendants outlived the leader and still hold the pipes open
            logger.warning("Process group %d left running after exit; killing it", process.pid)
            self._signal_group(process, force=True)
            await asyncio.wait(pending, timeout=drain_seconds)
        return exit_code

    async def _terminate(self, process: asyncio.subprocess.Process, grace_seconds: float) -> None:
        """SIGTERM the process group, then SIGKILL it after the grace interval."""
        if process.returncode is None:
            logger.info("Terminating process group %d", process.pid)
            self._signal_group(process, force=False)
            try:
                await asyncio.wait_for(self._wait_exit(process), timeout=grace_seconds)
            except TimeoutError:
                logger.warning("Process %d ignored SIGTERM; sending SIGKILL", process.pid)
        self._signal_group(process, force=True)
        await self._wait_exit(process)

    @staticmethod
    async def _wait_exit(process: asyncio.subprocess.Process) -> int:
        """Poll until the child itself has exited, regardless of its pipes."""
        while process.returncode is None:
            await asyncio.sleep(EXIT_POLL_SECONDS)
        return process.returncode

    async def _cleanup(
        self,
        process: asyncio.subprocess.Process,
        readers: list[asyncio.Task[Any]],
        grace_seconds: float,
    ) -> None:
        if process.returncode is None:
            await self._terminate(process, grace_seconds)
        for reader in readers:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)

    @staticmethod
    def _signal_group(process: asyncio.subprocess.Process, *, force: bool) -> None:
        """Signal the child's whole process group, ignoring already-dead groups."""
        with contextlib.suppress(ProcessLookupError, PermissionError):
            if _POSIX:
                os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
            elif process.returncode is None:
                if force:
                    process.kill()
                else:
                    process.terminate()
