"""Process execution: spawn, stream, cap and time out external commands."""

from cursor_runner.process.domain import (
    ProcessResult,
    ProcessRunnerPort,
    ProcessTimeoutError,
    RunOptions,
    SpawnError,
)
from cursor_runner.process.infrastructure import OutputBuffer, SubprocessRunner
from cursor_runner.process.utils import summarize_args

__all__ = [
    "OutputBuffer",
    "ProcessResult",
    "ProcessRunnerPort",
    "ProcessTimeoutError",
    "RunOptions",
    "SpawnError",
    "SubprocessRunner",
    "summarize_args",
]
