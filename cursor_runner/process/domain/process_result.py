"""Result model for a completed process run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProcessResult:
    """Represents the outcome of a process that ran to exit.

    A non-zero exit code is a normal outcome here, not an error: the caller
    gets ``success=False`` together with everything the tool printed.

    Attributes:
        command: Executable that was run
        args: Arguments passed to the executable
        exit_code: Process exit status (negative signal number if killed)
        stdout: Captured standard output, at most max_output_bytes of it
        stderr: Captured standard error, at most max_output_bytes of it
        duration_seconds: Wall-clock time from spawn to exit
        truncated: True if either stream hit its cap before the process exited
        stdout_bytes: Total bytes the child wrote to stdout
        stderr_bytes: Total bytes the child wrote to stderr
        pid: Process id of the child
    """

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    truncated: bool = False
    args: tuple[str, ...] = field(default_factory=tuple)
    stdout_bytes: int = 0
    stderr_bytes: int = 0
    pid: int | None = None

    def __post_init__(self) -> None:
        """Validate the process result."""
        if not self.command:
            raise ValueError("command must not be empty")
        if self.duration_seconds < 0:
            raise ValueError("duration_seconds must be non-negative")

    @property
    def success(self) -> bool:
        """True only if the process exited with status 0."""
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation.

        Returns:
            Dictionary containing all result information
        """
        return {
            "command": self.command,
            "args": list(self.args),
            "exit_code": self.exit_code,
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_seconds": self.duration_seconds,
            "truncated": self.truncated,
            "stdout_bytes": self.stdout_bytes,
            "stderr_bytes": self.stderr_bytes,
            "pid": self.pid,
        }
