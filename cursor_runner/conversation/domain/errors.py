"""Conversation store errors."""

from __future__ import annotations

from cursor_runner.errors import CursorRunnerError


class ConversationNotFoundError(CursorRunnerError):
    """The conversation identifier is unknown or has expired.

    Attributes:
        conversation_id: The identifier that could not be resolved
    """

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation '{conversation_id}' not found or expired")
        self.conversation_id = conversation_id


class StoreUnavailableError(CursorRunnerError):
    """The backing key-value store could not be reached."""
