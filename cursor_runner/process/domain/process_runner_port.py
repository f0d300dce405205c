"""Process runner port interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cursor_runner.process.domain.process_result import ProcessResult
    from cursor_runner.process.domain.run_options import RunOptions


class ProcessRunnerPort(ABC):
    """Abstract port for running one external process to completion.

    Implementations must leave nothing behind on any exit path: no running
    child, no pending timer, no reader task. That includes the caller
    cancelling the awaiting task.
    """

    @abstractmethod
    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        options: RunOptions | None = None,
    ) -> ProcessResult:
        """Run a command and collect its output.

        Args:
            command: Executable name or path
            args: Arguments passed to the executable
            options: Limits and environment (defaults when None)

        Returns:
            ProcessResult for a process that exited on its own

        Raises:
            SpawnError: If the process could not be started
            ProcessTimeoutError: If the process was killed for exceeding its budget
        """
        raise NotImplementedError
