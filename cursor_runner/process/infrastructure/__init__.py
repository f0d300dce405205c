"""Process infrastructure implementations."""

from cursor_runner.process.infrastructure.output_buffer import OutputBuffer
from cursor_runner.process.infrastructure.subprocess_runner import SubprocessRunner

__all__ = [
    "OutputBuffer",
    "SubprocessRunner",
]
