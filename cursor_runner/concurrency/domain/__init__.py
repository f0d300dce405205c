"""Concurrency domain models."""

from cursor_runner.concurrency.domain.permit import Permit, QueueStatus
from cursor_runner.concurrency.domain.semaphore_port import SemaphorePort

__all__ = [
    "Permit",
    "QueueStatus",
    "SemaphorePort",
]
