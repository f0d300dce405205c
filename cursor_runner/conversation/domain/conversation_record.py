"""Conversation record model."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any

from cursor_runner.conversation.domain.conversation_message import ConversationMessage


@dataclass(frozen=True)
class ConversationRecord:
    """A resumable assistant session addressed by an opaque identifier.

    Attributes:
        conversation_id: Opaque handle returned to callers
        session_token: Credential passed to the CLI to resume the session
        correlation_key: Caller-side key the conversation was created for
        created_at: Creation time (UTC)
        last_used_at: Time of the most recent create or touch (UTC)
        expires_at: Time after which the store evicts the record (UTC)
        messages: Most recent prompts and outputs, oldest first
    """

    conversation_id: str
    session_token: str
    correlation_key: str
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime
    messages: tuple[ConversationMessage, ...] = field(default=(), repr=False)

    def __post_init__(self) -> None:
        """Validate the conversation record."""
        if not self.conversation_id:
            raise ValueError("conversation_id must not be empty")
        if not self.session_token:
            raise ValueError("session_token must not be empty")
        if self.expires_at < self.last_used_at:
            raise ValueError("expires_at must not precede last_used_at")

    def refreshed(self, now: datetime, ttl_seconds: int) -> ConversationRecord:
        """Return a copy marked as used at ``now`` with a fresh expiry.

        Args:
            now: Current time
            ttl_seconds: Expiry window

        Returns:
            Updated record
        """
        return replace(self, last_used_at=now, expires_at=now + timedelta(seconds=ttl_seconds))

    def with_session_token(self, session_token: str) -> ConversationRecord:
        """Return a copy bound to a different session token."""
        return replace(self, session_token=session_token)

    def with_messages(
        self, messages: Iterable[ConversationMessage], limit: int
    ) -> ConversationRecord:
        """Return a copy with messages appended, keeping only the newest ``limit``.

        Args:
            messages: Messages to append in order
            limit: Maximum number of messages retained

        Returns:
            Updated record
        """
        history = (*self.messages, *messages)
        return replace(self, messages=history[-limit:] if limit > 0 else ())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation.

        Returns:
            Dictionary with timestamps in ISO 8601 form
        """
        return {
            "conversation_id": self.conversation_id,
            "session_token": self.session_token,
            "correlation_key": self.correlation_key,
            "created_at": self.created_at.isoformat(),
            "last_used_at": self.last_used_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "messages": [message.to_dict() for message in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationRecord:
        """Create a record from its dictionary representation.

        Args:
            data: Dictionary produced by to_dict()

        Returns:
            ConversationRecord instance

        Raises:
            KeyError: If a field is missing
            ValueError: If a timestamp is malformed
        """
        return cls(
            conversation_id=data["conversation_id"],
            session_token=data["session_token"],
            correlation_key=data["correlation_key"],
            created_at=datetime.fromisoformat(data["created_at"]),
            last_used_at=datetime.fromisoformat(data["last_used_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            messages=tuple(
                ConversationMessage.from_dict(message) for message in data.get("messages", ())
            ),
        )

    def to_json(self) -> str:
        """Serialize to the JSON string stored in the key-value store."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> ConversationRecord:
        """Deserialize a record written by to_json()."""
        return cls.from_dict(json.loads(payload))
