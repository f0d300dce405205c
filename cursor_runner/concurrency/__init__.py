"""Concurrency gate bounding how many assistant processes run at once."""

from cursor_runner.concurrency.domain import Permit, QueueStatus, SemaphorePort
from cursor_runner.concurrency.infrastructure import FifoSemaphore

__all__ = [
    "FifoSemaphore",
    "Permit",
    "QueueStatus",
    "SemaphorePort",
]
