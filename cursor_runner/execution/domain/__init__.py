"""Execution domain models."""

from cursor_runner.execution.domain.call_state import CallState
from cursor_runner.execution.domain.command_builder import CommandBuilder
from cursor_runner.execution.domain.execution_outcome import ExecutionOutcome
from cursor_runner.execution.domain.execution_request import ExecutionRequest
from cursor_runner.execution.domain.orchestrator import ExecutionOrchestrator

__all__ = [
    "CallState",
    "CommandBuilder",
    "ExecutionOrchestrator",
    "ExecutionOutcome",
    "ExecutionRequest",
]
