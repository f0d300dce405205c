"""Execution infrastructure wiring."""

from cursor_runner.execution.infrastructure.factory import build_orchestrator

__all__ = ["build_orchestrator"]
