"""Conversation continuity backed by an external key-value store."""

from cursor_runner.conversation.domain import (
    ConversationMessage,
    ConversationNotFoundError,
    ConversationRecord,
    ConversationStore,
    KeyValueStorePort,
    MessageRole,
    StoreUnavailableError,
)
from cursor_runner.conversation.infrastructure import (
    InMemoryKeyValueStore,
    RedisKeyValueStore,
)

__all__ = [
    "ConversationMessage",
    "ConversationNotFoundError",
    "ConversationRecord",
    "ConversationStore",
    "InMemoryKeyValueStore",
    "KeyValueStorePort",
    "MessageRole",
    "RedisKeyValueStore",
    "StoreUnavailableError",
]
