"""Concurrency infrastructure implementations."""

from cursor_runner.concurrency.infrastructure.fifo_semaphore import FifoSemaphore

__all__ = ["FifoSemaphore"]
