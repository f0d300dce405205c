"""Conversation domain models."""

from cursor_runner.conversation.domain.conversation_message import (
    ConversationMessage,
    MessageRole,
)
from cursor_runner.conversation.domain.conversation_record import ConversationRecord
from cursor_runner.conversation.domain.conversation_store import (
    DEFAULT_TTL_SECONDS,
    ConversationStore,
)
from cursor_runner.conversation.domain.errors import (
    ConversationNotFoundError,
    StoreUnavailableError,
)
from cursor_runner.conversation.domain.key_value_store_port import KeyValueStorePort

__all__ = [
    "DEFAULT_TTL_SECONDS",
    "ConversationMessage",
    "ConversationNotFoundError",
    "ConversationRecord",
    "ConversationStore",
    "KeyValueStorePort",
    "MessageRole",
    "StoreUnavailableError",
]
