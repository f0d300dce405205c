"""Process execution errors."""

from __future__ import annotations

import errno as errno_codes

from cursor_runner.errors import CursorRunnerError


class SpawnError(CursorRunnerError):
    """The external process could not be started.

    Attributes:
        command: Executable that failed to launch
        errno: Underlying OS error code, if known
        strerror: Underlying OS error message, if known
    """

    def __init__(
        self,
        command: str,
        message: str,
        *,
        errno: int | None = None,
        strerror: str | None = None,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.errno = errno
        self.strerror = strerror

    @property
    def missing(self) -> bool:
        """True when the executable does not exist."""
        return self.errno == errno_codes.ENOENT

    @classmethod
    def from_os_error(cls, command: str, error: OSError) -> SpawnError:
        """Build a SpawnError describing an OSError raised at launch.

        Args:
            command: Executable that failed to launch
            error: The OSError raised by the spawn call

        Returns:
            SpawnError with errno and message copied from the OS error
        """
        if isinstance(error, FileNotFoundError):
            message = f"Command not found: {command}"
        elif isinstance(error, PermissionError):
            message = f"Permission denied executing: {command}"
        else:
            message = f"Failed to start {command}: {error.strerror or error}"
        return cls(command, message, errno=error.errno, strerror=error.strerror)


class ProcessTimeoutError(CursorRunnerError):
    """The process outlived its budget and was forcibly terminated.

    Partial output captured before termination is attached so callers can
    still inspect it.

    Attributes:
        command: Executable that timed out
        timeout_seconds: Budget that was exceeded
        kind: "deadline" for the overall timeout, "idle" for silence
        stdout: Output captured before termination
        stderr: Error output captured before termination
        duration_seconds: Time from spawn to termination
    """

    def __init__(
        self,
        command: str,
        timeout_seconds: float,
        *,
        kind: str = "deadline",
        stdout: str = "",
        stderr: str = "",
        duration_seconds: float = 0.0,
    ) -> None:
        if kind == "idle":
            message = f"No output from {command} for {timeout_seconds:g}s"
        else:
            message = f"Command timeout after {timeout_seconds:g}s"
        super().__init__(message)
        self.command = command
        self.timeout_seconds = timeout_seconds
        self.kind = kind
        self.stdout = stdout
        self.stderr = stderr
        self.duration_seconds = duration_seconds
