"""Conversation message model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum, auto
from typing import Any


class MessageRole(StrEnum):
    """Author of a conversation message."""

    USER = auto()
    ASSISTANT = auto()


@dataclass(frozen=True)
class ConversationMessage:
    """One entry of a conversation's history.

    Attributes:
        role: Who wrote the message
        content: Prompt text or assistant output
        timestamp: When the message was recorded (UTC)
    """

    role: MessageRole
    content: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationMessage:
        """Create a message from its dictionary representation.

        Raises:
            KeyError: If a field is missing
            ValueError: If the role or timestamp is malformed
        """
        return cls(
            role=MessageRole(data["role"]),
            content=data["content"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
