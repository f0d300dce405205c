"""Execution outcome model returned by the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cursor_runner.execution.domain.call_state import CallState
from cursor_runner.process.domain.process_result import ProcessResult


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of an execute or iterate call.

    Attributes:
        call_id: Identifier of this call, as it appears in the logs
        conversation_id: Conversation to pass to iterate() to continue
        result: Captured process result
        state: Terminal call state (always COMPLETED for a returned outcome)
        queued_seconds: Time spent waiting for a concurrency permit
    """

    call_id: str
    conversation_id: str
    result: ProcessResult
    state: CallState = CallState.COMPLETED
    queued_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """True if the assistant exited with status 0."""
        return self.result.success

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation.

        Returns:
            Dictionary containing the call metadata and the process result
        """
        return {
            "call_id": self.call_id,
            "conversation_id": self.conversation_id,
            "state": self.state.value,
            "queued_seconds": self.queued_seconds,
            **self.result.to_dict(),
        }
