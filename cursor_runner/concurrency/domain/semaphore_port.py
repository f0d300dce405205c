"""Semaphore port interface."""

from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from cursor_runner.concurrency.domain.permit import Permit, QueueStatus


class SemaphorePort(ABC):
    """Abstract port for a counting concurrency gate.

    Every successful acquire must be matched by exactly one release on every
    path of the caller. ``slot()`` packages that discipline as an async
    context manager and is the preferred way to hold a permit.
    """

    @abstractmethod
    async def acquire(self) -> Permit:
        """Wait for a free slot and return its permit."""
        raise NotImplementedError

    @abstractmethod
    def try_acquire(self) -> Permit | None:
        """Return a permit if one is free right now, otherwise None."""
        raise NotImplementedError

    @abstractmethod
    def release(self, permit: Permit) -> None:
        """Return the permit's slot to the pool."""
        raise NotImplementedError

    @abstractmethod
    def status(self) -> QueueStatus:
        """Return a snapshot of capacity and queue length."""
        raise NotImplementedError

    @contextlib.asynccontextmanager
    async def slot(self) -> AsyncIterator[Permit]:
        """Hold a permit for the duration of the ``async with`` block.

        Yields:
            The acquired permit
        """
        permit = await self.acquire()
        try:
            yield permit
        finally:
            self.release(permit)
