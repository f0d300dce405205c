"""Permit and queue status models for the concurrency gate."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from uuid6 import uuid7


@dataclass(frozen=True)
class Permit:
    """A capability token for one occupied concurrency slot.

    Attributes:
        permit_id: Unique identifier of this grant
        acquired_at: Monotonic timestamp of the grant
    """

    permit_id: uuid.UUID = field(default_factory=uuid7)
    acquired_at: float = field(default_factory=time.monotonic)

    def held_for(self) -> float:
        """Seconds elapsed since the permit was granted."""
        return time.monotonic() - self.acquired_at


@dataclass(frozen=True)
class QueueStatus:
    """Point-in-time snapshot of a semaphore.

    Attributes:
        max_permits: Configured capacity
        available: Free slots
        waiting: Callers queued for a slot
    """

    max_permits: int
    available: int
    waiting: int

    @property
    def occupied(self) -> int:
        """Number of outstanding permits."""
        return self.max_permits - self.available

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation.

        Returns:
            Dictionary with capacity, availability and queue length
        """
        return {
            "max_permits": self.max_permits,
            "available": self.available,
            "occupied": self.occupied,
            "waiting": self.waiting,
        }
