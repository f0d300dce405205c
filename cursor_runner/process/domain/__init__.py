"""Process domain models."""

from cursor_runner.process.domain.errors import ProcessTimeoutError, SpawnError
from cursor_runner.process.domain.process_result import ProcessResult
from cursor_runner.process.domain.process_runner_port import ProcessRunnerPort
from cursor_runner.process.domain.run_options import (
    DEFAULT_MAX_OUTPUT_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    RunOptions,
)

__all__ = [
    "DEFAULT_MAX_OUTPUT_BYTES",
    "DEFAULT_TIMEOUT_SECONDS",
    "ProcessResult",
    "ProcessRunnerPort",
    "ProcessTimeoutError",
    "RunOptions",
    "SpawnError",
]
