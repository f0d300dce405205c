"""Test doubles shared across test packages."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from cursor_runner.process.domain.process_result import ProcessResult
from cursor_runner.process.domain.process_runner_port import ProcessRunnerPort
from cursor_runner.process.domain.run_options import RunOptions


class FakeClock:
    """Controllable clock serving both monotonic seconds and UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self._start = start or datetime(2025, 1, 1, tzinfo=UTC)
        self.elapsed = 0.0

    def monotonic(self) -> float:
        return self.elapsed

    def utc(self) -> datetime:
        return self._start + timedelta(seconds=self.elapsed)

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds


@dataclass
class RunCall:
    """A single invocation recorded by FakeRunner."""

    command: str
    args: list[str]
    options: RunOptions | None


class FakeRunner(ProcessRunnerPort):
    """In-memory implementation of ProcessRunnerPort for testing.

    Returns a canned result or raises a canned error. When ``gate`` is set,
    every run blocks until the gate opens, which lets tests hold permits.
    """

    def __init__(
        self,
        stdout: str = "done",
        stderr: str = "",
        exit_code: int = 0,
        error: Exception | None = None,
    ) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls: list[RunCall] = []
        self.active = 0
        self.max_active = 0

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        options: RunOptions | None = None,
    ) -> ProcessResult:
        self.calls.append(RunCall(command, list(args), options))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            return ProcessResult(
                command=command,
                args=tuple(args),
                exit_code=self.exit_code,
                stdout=self.stdout,
                stderr=self.stderr,
                duration_seconds=0.01,
            )
        finally:
            self.active -= 1

    @property
    def last_args(self) -> list[str]:
        return self.calls[-1].args
