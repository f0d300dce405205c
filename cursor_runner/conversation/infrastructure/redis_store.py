"""Redis-backed key-value store."""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from cursor_runner.conversation.domain.errors import StoreUnavailableError
from cursor_runner.conversation.domain.key_value_store_port import KeyValueStorePort

logger = logging.getLogger(__name__)

_UNAVAILABLE = (RedisConnectionError, RedisTimeoutError, OSError)

# KEYS[1] is removed only while it still holds ARGV[1]
_DELETE_IF_EQUALS = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""
SCAN_COUNT = 100


class RedisKeyValueStore(KeyValueStorePort):
    """
    KeyValueStorePort implementation using ``redis.asyncio``.

    Conditional writes map onto ``SET NX``/``SET XX`` with ``EX``, so
    creation races are settled by Redis itself. Connection failures and
    timeouts surface as StoreUnavailableError; nothing is retried here.

    Example:
        store = RedisKeyValueStore.from_url("redis://redis:6379/0")
        await store.set("key", "value", ttl_seconds=60, if_absent=True)
        await store.close()
    """

    def __init__(self, client: redis.Redis) -> None:
        """
        Initialize the store.

        Args:
            client: A ``redis.asyncio.Redis`` client created with
                    ``decode_responses=True``.
        """
        self._client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        socket_timeout: float = 5.0,
        socket_connect_timeout: float = 5.0,
    ) -> RedisKeyValueStore:
        """
        Create a store connected to the given Redis URL.

        The connection is opened lazily on the first command.

        Args:
            url: Redis URL, e.g. ``redis://redis:6379/0``.
            socket_timeout: Per-command timeout in seconds.
            socket_connect_timeout: Connect timeout in seconds.

        Returns:
            A new RedisKeyValueStore.
        """
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except _UNAVAILABLE as error:
            raise self._unavailable("GET", error) from error

    async def set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        if_absent: bool = False,
        if_present: bool = False,
    ) -> bool:
        try:
            written = await self._client.set(
                key, value, ex=ttl_seconds, nx=if_absent, xx=if_present
            )
        except _UNAVAILABLE as error:
            raise self._unavailable("SET", error) from error
        return bool(written)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        try:
            return bool(await self._client.expire(key, ttl_seconds))
        except _UNAVAILABLE as error:
            raise self._unavailable("EXPIRE", error) from error

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except _UNAVAILABLE as error:
            raise self._unavailable("DEL", error) from error

    async def delete_if_equals(self, key: str, expected: str) -> bool:
        try:
            removed = await self._client.eval(_DELETE_IF_EQUALS, 1, key, expected)
        except _UNAVAILABLE as error:
            raise self._unavailable("EVAL", error) from error
        return bool(removed)

    async def keys(self, prefix: str) -> list[str]:
        try:
            return [
                key
                async for key in self._client.scan_iter(match=f"{prefix}*", count=SCAN_COUNT)
            ]
        except _UNAVAILABLE as error:
            raise self._unavailable("SCAN", error) from error

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    @staticmethod
    def _unavailable(operation: str, error: Exception) -> StoreUnavailableError:
        logger.error("Redis %s failed: %s", operation, error)
        return StoreUnavailableError(f"Key-value store unavailable during {operation}: {error}")
