"""Conversation store mapping correlation keys to resumable sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from uuid6 import uuid7

from cursor_runner.conversation.domain.conversation_message import (
    ConversationMessage,
    MessageRole,
)
from cursor_runner.conversation.domain.conversation_record import ConversationRecord
from cursor_runner.conversation.domain.errors import ConversationNotFoundError

if TYPE_CHECKING:
    from cursor_runner.conversation.domain.key_value_store_port import KeyValueStorePort

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
CONVERSATION_KEY_PREFIX = "cursor:conversation:"
CORRELATION_KEY_PREFIX = "cursor:correlation:"
MAX_CREATE_ATTEMPTS = 3
DEFAULT_MAX_MESSAGES = 50
DEFAULT_MAX_MESSAGE_CHARS = 20_000


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ConversationStore:
    """Maps correlation keys to conversation records held in a key-value store.

    The key-value store is the single source of truth; nothing is cached in
    process. Two kinds of keys are written, both with the same expiry window:

    - ``cursor:conversation:<conversation_id>`` holds the record as JSON
    - ``cursor:correlation:<correlation_key>`` holds the conversation id

    Creation writes the record under a freshly minted id first and then
    claims the correlation key with SET NX. Whoever wins the claim owns the
    conversation; a loser deletes its orphan record and adopts the winner's,
    so concurrent callers never end up with two identifiers for one key.

    Example:
        ```python
        store = ConversationStore(InMemoryKeyValueStore(), ttl_seconds=3600)
        record = await store.get_or_create("telegram:42")
        token = await store.resolve_session_token(record.conversation_id)
        ```
    """

    def __init__(
        self,
        kv_store: KeyValueStorePort,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utc_now,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        max_message_chars: int = DEFAULT_MAX_MESSAGE_CHARS,
    ) -> None:
        """Initialize the conversation store.

        Args:
            kv_store: Backing key-value store
            ttl_seconds: Expiry window for records and correlation keys
            clock: Source of the current UTC time
            max_messages: Number of history entries kept per conversation
            max_message_chars: Longest content stored for one entry

        Raises:
            ValueError: If ttl_seconds < 1 or max_messages < 1
        """
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be at least 1")
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.kv_store = kv_store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.max_messages = max_messages
        self.max_message_chars = max_message_chars

    async def get_or_create(self, correlation_key: str) -> ConversationRecord:
        """Return the conversation for a correlation key, creating it if needed.

        Args:
            correlation_key: Caller-supplied lookup key

        Returns:
            The existing or newly created record

        Raises:
            ValueError: If correlation_key is empty
            StoreUnavailableError: If the key-value store cannot be reached
        """
        if not correlation_key:
            raise ValueError("correlation_key must not be empty")

        pointer_key = self._correlation_key(correlation_key)
        for _ in range(MAX_CREATE_ATTEMPTS):
            existing = await self._follow_pointer(pointer_key)
            if existing is not None:
                return existing

            record = self._new_record(correlation_key)
            record_key = self._record_key(record.conversation_id)
            await self.kv_store.set(
                record_key, record.to_json(), ttl_seconds=self.ttl_seconds, if_absent=True
            )
            claimed = await self.kv_store.set(
                pointer_key,
                record.conversation_id,
                ttl_seconds=self.ttl_seconds,
                if_absent=True,
            )
            if claimed:
                logger.info(
                    "Created conversation %s for correlation key '%s'",
                    record.conversation_id,
                    correlation_key,
                )
                return record

            await self.kv_store.delete(record_key)
            logger.debug("Lost creation race for correlation key '%s'", correlation_key)

        raise RuntimeError(
            f"Could not settle a conversation for correlation key '{correlation_key}'"
        )

    async def touch(self, conversation_id: str) -> ConversationRecord:
        """Mark a conversation as used and restart its expiry window.

        Args:
            conversation_id: Identifier returned by get_or_create()

        Returns:
            The refreshed record

        Raises:
            ConversationNotFoundError: If the conversation is unknown or expired
            StoreUnavailableError: If the key-value store cannot be reached
        """
        record = await self._require(conversation_id)
        refreshed = record.refreshed(self._clock(), self.ttl_seconds)
        await self._overwrite(refreshed)

        await self._refresh_pointer(refreshed)

        logger.debug("Touched conversation %s (expires %s)", conversation_id, refreshed.expires_at)
        return refreshed

    async def resolve_session_token(self, conversation_id: str) -> str:
        """Return the session token used to resume a conversation.

        Raises:
            ConversationNotFoundError: If the conversation is unknown or expired
            StoreUnavailableError: If the key-value store cannot be reached
        """
        record = await self._require(conversation_id)
        return record.session_token

    async def bind_session_token(self, conversation_id: str, session_token: str) -> ConversationRecord:
        """Replace the session token of a conversation.

        Used after a fresh run when the assistant reports the id of the
        session it actually opened.

        Args:
            conversation_id: Conversation to update
            session_token: Token reported by the assistant

        Returns:
            The updated record

        Raises:
            ValueError: If session_token is empty
            ConversationNotFoundError: If the conversation is unknown or expired
        """
        if not session_token:
            raise ValueError("session_token must not be empty")
        record = await self._require(conversation_id)
        if record.session_token == session_token:
            return record
        updated = record.with_session_token(session_token).refreshed(
            self._clock(), self.ttl_seconds
        )
        await self._overwrite(updated)
        logger.info("Bound conversation %s to assistant session %s", conversation_id, session_token)
        return updated

    async def force_new(self, correlation_key: str) -> ConversationRecord:
        """Start a fresh conversation and point the correlation key at it.

        The previous conversation, if any, stays resumable by its id until it
        expires; only the correlation key is re-pointed.

        Args:
            correlation_key: Caller-supplied lookup key

        Returns:
            The newly created record
        """
        if not correlation_key:
            raise ValueError("correlation_key must not be empty")
        record = self._new_record(correlation_key)
        await self.kv_store.set(
            self._record_key(record.conversation_id),
            record.to_json(),
            ttl_seconds=self.ttl_seconds,
            if_absent=True,
        )
        await self.kv_store.set(
            self._correlation_key(correlation_key),
            record.conversation_id,
            ttl_seconds=self.ttl_seconds,
        )
        logger.info(
            "Forced new conversation %s for correlation key '%s'",
            record.conversation_id,
            correlation_key,
        )
        return record

    async def get(self, conversation_id: str) -> ConversationRecord | None:
        """Load a conversation record.

        Returns:
            The record, or None if unknown, expired or unreadable
        """
        if not conversation_id:
            return None
        payload = await self.kv_store.get(self._record_key(conversation_id))
        if payload is None:
            return None
        try:
            return ConversationRecord.from_json(payload)
        except (KeyError, TypeError, ValueError) as error:
            logger.warning("Discarding unreadable conversation %s: %s", conversation_id, error)
            return None

    async def record_turn(
        self, conversation_id: str, prompt: str, output: str
    ) -> ConversationRecord:
        """Append a prompt and the assistant's reply to the conversation history.

        Only the newest ``max_messages`` entries are kept and each content is
        cut to ``max_message_chars``. Recording a turn counts as use, so the
        expiry window restarts as it does for touch().

        Args:
            conversation_id: Conversation the turn belongs to
            prompt: Prompt sent to the assistant
            output: Output the assistant produced

        Returns:
            The updated record

        Raises:
            ConversationNotFoundError: If the conversation is unknown or expired
            StoreUnavailableError: If the key-value store cannot be reached
        """
        record = await self._require(conversation_id)
        now = self._clock()
        turn = (
            ConversationMessage(MessageRole.USER, prompt[: self.max_message_chars], now),
            ConversationMessage(MessageRole.ASSISTANT, output[: self.max_message_chars], now),
        )
        updated = record.with_messages(turn, self.max_messages).refreshed(now, self.ttl_seconds)
        await self._overwrite(updated)
        await self._refresh_pointer(updated)
        return updated

    async def list_conversations(self) -> list[ConversationRecord]:
        """Load every live conversation, most recently used first.

        Records that expire or turn unreadable while listing are skipped.

        Raises:
            StoreUnavailableError: If the key-value store cannot be reached
        """
        records = []
        for key in await self.kv_store.keys(CONVERSATION_KEY_PREFIX):
            record = await self.get(key.removeprefix(CONVERSATION_KEY_PREFIX))
            if record is not None:
                records.append(record)
        records.sort(key=lambda record: record.last_used_at, reverse=True)
        logger.debug("Listed %d conversations", len(records))
        return records

    async def _require(self, conversation_id: str) -> ConversationRecord:
        record = await self.get(conversation_id)
        if record is None:
            raise ConversationNotFoundError(conversation_id)
        return record

    async def _overwrite(self, record: ConversationRecord) -> None:
        written = await self.kv_store.set(
            self._record_key(record.conversation_id),
            record.to_json(),
            ttl_seconds=self.ttl_seconds,
            if_present=True,
        )
        if not written:
            # Expired between the read and the write
            raise ConversationNotFoundError(record.conversation_id)

    async def _refresh_pointer(self, record: ConversationRecord) -> None:
        pointer_key = self._correlation_key(record.correlation_key)
        if await self.kv_store.get(pointer_key) == record.conversation_id:
            await self.kv_store.expire(pointer_key, self.ttl_seconds)

    async def _follow_pointer(self, pointer_key: str) -> ConversationRecord | None:
        conversation_id = await self.kv_store.get(pointer_key)
        if conversation_id is None:
            return None
        record = await self.get(conversation_id)
        if record is None:
            # Only drop the pointer if no other caller has re-pointed it meanwhile
            if await self.kv_store.delete_if_equals(pointer_key, conversation_id):
                logger.debug("Dropped stale correlation pointer %s", pointer_key)
        return record

    def _new_record(self, correlation_key: str) -> ConversationRecord:
        now = self._clock()
        return ConversationRecord(
            conversation_id=str(uuid7()),
            session_token=str(uuid7()),
            correlation_key=correlation_key,
            created_at=now,
            last_used_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )

    @staticmethod
    def _record_key(conversation_id: str) -> str:
        return f"{CONVERSATION_KEY_PREFIX}{conversation_id}"

    @staticmethod
    def _correlation_key(correlation_key: str) -> str:
        return f"{CORRELATION_KEY_PREFIX}{correlation_key}"
