"""In-memory key-value store with per-key expiry."""

from __future__ import annotations

import time
from collections.abc import Callable

from cursor_runner.conversation.domain.key_value_store_port import KeyValueStorePort


class InMemoryKeyValueStore(KeyValueStorePort):
    """
    A dict-backed implementation of the KeyValueStorePort.

    Each key carries a deadline on an injectable monotonic clock; expired
    keys are dropped lazily on access. No method suspends, so every operation
    is atomic on the event loop, which makes SET NX/XX behave like Redis.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """
        Initialize the store.

        Args:
            clock: Monotonic time source in seconds. Tests pass a fake clock
                   to force expiry without sleeping.
        """
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        """Return the live value for key, if any."""
        entry = self._live_entry(key)
        return entry[0] if entry is not None else None

    async def set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        if_absent: bool = False,
        if_present: bool = False,
    ) -> bool:
        """Store a value with an expiry, honouring NX/XX conditions."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        exists = self._live_entry(key) is not None
        if (if_absent and exists) or (if_present and not exists):
            return False
        self._data[key] = (value, self._clock() + ttl_seconds)
        return True

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Reset the expiry of a live key."""
        entry = self._live_entry(key)
        if entry is None:
            return False
        self._data[key] = (entry[0], self._clock() + ttl_seconds)
        return True

    async def delete(self, key: str) -> None:
        """Remove a key if present."""
        self._data.pop(key, None)

    async def delete_if_equals(self, key: str, expected: str) -> bool:
        """Remove a key if its live value equals expected."""
        entry = self._live_entry(key)
        if entry is None or entry[0] != expected:
            return False
        del self._data[key]
        return True

    async def keys(self, prefix: str) -> list[str]:
        """Return live keys with the given prefix."""
        return [
            key
            for key in list(self._data)
            if key.startswith(prefix) and self._live_entry(key) is not None
        ]

    def __len__(self) -> int:
        """Return the number of live keys."""
        return sum(1 for key in list(self._data) if self._live_entry(key) is not None)

    def _live_entry(self, key: str) -> tuple[str, float] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._data[key]
            return None
        return entry
