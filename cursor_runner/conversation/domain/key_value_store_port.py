"""Key-value store port interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class KeyValueStorePort(ABC):
    """Abstract port for a string key-value store with native per-key expiry.

    Implementations can use various backends (Redis, in-memory, etc.). A key
    past its expiry must be indistinguishable from a key that never existed.
    Connectivity failures are raised as StoreUnavailableError.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None if absent or expired."""
        raise NotImplementedError

    @abstractmethod
    async def set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        if_absent: bool = False,
        if_present: bool = False,
    ) -> bool:
        """Store a value with an expiry.

        Args:
            key: Key to write
            value: Value to store
            ttl_seconds: Seconds until the key expires
            if_absent: Only write if the key does not exist (SET NX)
            if_present: Only write if the key already exists (SET XX)

        Returns:
            True if the value was written, False if the condition failed
        """
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Reset a key's expiry.

        Returns:
            True if the key existed and its expiry was reset
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key if present."""
        raise NotImplementedError

    @abstractmethod
    async def delete_if_equals(self, key: str, expected: str) -> bool:
        """Remove a key only while it still holds the expected value.

        The comparison and the removal happen as one step on the store.

        Returns:
            True if the key was removed
        """
        raise NotImplementedError

    @abstractmethod
    async def keys(self, prefix: str) -> list[str]:
        """Return the live keys starting with prefix, in no particular order."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
