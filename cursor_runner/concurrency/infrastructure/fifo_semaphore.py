"""FIFO semaphore implementation on top of asyncio futures."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections import deque

from cursor_runner.concurrency.domain.permit import Permit, QueueStatus
from cursor_runner.concurrency.domain.semaphore_port import SemaphorePort

logger = logging.getLogger(__name__)


class FifoSemaphore(SemaphorePort):
    """
    An asyncio counting semaphore that grants permits in strict arrival order.

    State is an explicit triple: ``max_permits``, ``available`` and an ordered
    deque of waiter futures. ``acquire`` and ``release`` are the only mutators
    and neither suspends between reading and writing that state, so the
    single event loop keeps every update atomic.

    A release while callers are queued hands the slot straight to the oldest
    live waiter; ``available`` is not incremented in between, so a newcomer
    can never slip in ahead of the queue.

    Example:
        semaphore = FifoSemaphore(max_permits=5)

        async with semaphore.slot():
            await run_process()
    """

    def __init__(self, max_permits: int = 5) -> None:
        """
        Initialize the semaphore.

        Args:
            max_permits: Maximum number of simultaneously outstanding permits.

        Raises:
            ValueError: If max_permits < 1
        """
        if max_permits < 1:
            raise ValueError("max_permits must be at least 1")

        self.max_permits = max_permits
        self._available = max_permits
        self._waiters: deque[asyncio.Future[Permit]] = deque()
        self._outstanding: dict[uuid.UUID, Permit] = {}

    async def acquire(self) -> Permit:
        """
        Acquire a permit, waiting in FIFO order if none is free.

        Returns:
            The granted permit.

        Raises:
            asyncio.CancelledError: If the caller is cancelled while queued.
                The waiter is removed and no slot is consumed.
        """
        permit = self.try_acquire()
        if permit is not None:
            return permit

        future: asyncio.Future[Permit] = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        logger.debug(
            "Queued for permit (position %d, available %d)",
            len(self._waiters),
            self._available,
        )
        try:
            return await future
        except asyncio.CancelledError:
            if future.done() and not future.cancelled():
                # Granted in the same loop iteration as the cancellation
                self.release(future.result())
            else:
                with contextlib.suppress(ValueError):
                    self._waiters.remove(future)
            raise

    def try_acquire(self) -> Permit | None:
        """
        Acquire a permit without waiting.

        Returns:
            A permit, or None if no slot is free or callers are already queued.
        """
        if self._available <= 0 or self._has_live_waiters():
            return None
        self._available -= 1
        return self._grant()

    def release(self, permit: Permit) -> None:
        """
        Release a permit and pass its slot to the oldest waiter, if any.

        Releasing a permit that is not outstanding (already released, or
        issued by another semaphore) is ignored with a warning.

        Args:
            permit: The permit returned by acquire() or try_acquire().
        """
        if self._outstanding.pop(permit.permit_id, None) is None:
            logger.warning("Ignoring release of unknown permit %s", permit.permit_id)
            return

        while self._waiters:
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            waiter.set_result(self._grant())
            return

        self._available += 1

    def status(self) -> QueueStatus:
        """
        Get a snapshot of the semaphore.

        Returns:
            QueueStatus with capacity, free slots and live waiters.
        """
        return QueueStatus(
            max_permits=self.max_permits,
            available=self._available,
            waiting=sum(1 for waiter in self._waiters if not waiter.done()),
        )

    def _grant(self) -> Permit:
        permit = Permit()
        self._outstanding[permit.permit_id] = permit
        return permit

    def _has_live_waiters(self) -> bool:
        return any(not waiter.done() for waiter in self._waiters)
