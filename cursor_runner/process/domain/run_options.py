"""Options controlling a single process run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
DEFAULT_GRACE_SECONDS = 1.0
DEFAULT_HEARTBEAT_SECONDS = 30.0


@dataclass(frozen=True)
class RunOptions:
    """Limits and environment for one process run.

    Attributes:
        timeout_seconds: Wall-clock budget measured from spawn
        max_output_bytes: Cap applied to each of stdout and stderr separately
        cwd: Working directory (None inherits the current one)
        env: Full environment for the child (None inherits os.environ)
        grace_seconds: Wait between SIGTERM and SIGKILL on termination
        idle_timeout_seconds: Kill the process after this long without output
                             (None disables the check)
        heartbeat_seconds: Interval between progress log lines
    """

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    cwd: str | Path | None = None
    env: dict[str, str] | None = field(default=None, repr=False)
    grace_seconds: float = DEFAULT_GRACE_SECONDS
    idle_timeout_seconds: float | None = None
    heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS

    def __post_init__(self) -> None:
        """Validate the options."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.max_output_bytes < 0:
            raise ValueError("max_output_bytes must be non-negative")
        if self.grace_seconds < 0:
            raise ValueError("grace_seconds must be non-negative")
        if self.idle_timeout_seconds is not None and self.idle_timeout_seconds <= 0:
            raise ValueError("idle_timeout_seconds must be positive")
        if self.heartbeat_seconds <= 0:
            raise ValueError("heartbeat_seconds must be positive")
