"""Execution request model."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_MODEL = "auto"


@dataclass(frozen=True)
class ExecutionRequest:
    """A prompt to run through the assistant CLI.

    Attributes:
        prompt: Task text passed to the assistant
        cwd: Working directory for the assistant process
        correlation_key: Caller key used to find or create the conversation
        timeout_seconds: Override of the configured per-call budget
        model: Model selector passed to the CLI
        request_id: Caller-side identifier, used only in log lines
    """

    prompt: str
    cwd: str | Path | None = None
    correlation_key: str | None = None
    timeout_seconds: float | None = None
    model: str = DEFAULT_MODEL
    request_id: str | None = None

    def __post_init__(self) -> None:
        """Validate the execution request."""
        if not self.prompt or not self.prompt.strip():
            raise ValueError("prompt must not be empty")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if not self.model:
            raise ValueError("model must not be empty")
