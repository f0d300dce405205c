"""Execute and iterate entry points for the assistant CLI."""

from cursor_runner.execution.domain import (
    CallState,
    CommandBuilder,
    ExecutionOrchestrator,
    ExecutionOutcome,
    ExecutionRequest,
)
from cursor_runner.execution.infrastructure import build_orchestrator

__all__ = [
    "CallState",
    "CommandBuilder",
    "ExecutionOrchestrator",
    "ExecutionOutcome",
    "ExecutionRequest",
    "build_orchestrator",
]
