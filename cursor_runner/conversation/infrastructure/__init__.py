"""Conversation infrastructure implementations."""

from cursor_runner.conversation.infrastructure.in_memory_store import InMemoryKeyValueStore
from cursor_runner.conversation.infrastructure.redis_store import RedisKeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
]
