"""Tests for ConversationStore."""

import asyncio
from datetime import timedelta

import pytest

from cursor_runner.conversation.domain.conversation_store import (
    CONVERSATION_KEY_PREFIX,
    CORRELATION_KEY_PREFIX,
    ConversationStore,
)
from cursor_runner.conversation.domain.conversation_message import MessageRole
from cursor_runner.conversation.domain.errors import ConversationNotFoundError
from cursor_runner.conversation.infrastructure.in_memory_store import InMemoryKeyValueStore
from tests.fixtures import FakeClock


class YieldingKeyValueStore(InMemoryKeyValueStore):
    """In-memory store that yields to the event loop before every operation.

    Interleaves concurrent callers the way a networked store would.
    """

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: str, **kwargs) -> bool:
        await asyncio.sleep(0)
        return await super().set(key, value, **kwargs)

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        await super().delete(key)

    async def delete_if_equals(self, key: str, expected: str) -> bool:
        await asyncio.sleep(0)
        return await super().delete_if_equals(key, expected)


class SlowFirstDeleteStore(YieldingKeyValueStore):
    """Yielding store whose first conditional delete stalls before running."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.stalled = False

    async def delete_if_equals(self, key: str, expected: str) -> bool:
        if not self.stalled:
            self.stalled = True
            await asyncio.sleep(0.05)
        return await super().delete_if_equals(key, expected)


@pytest.mark.unit
class TestGetOrCreate:
    """Test cases for get_or_create."""

    async def test_same_key_returns_same_conversation(
        self, conversation_store: ConversationStore
    ) -> None:
        """Test that a correlation key maps to one conversation."""
        first = await conversation_store.get_or_create("telegram:42")
        second = await conversation_store.get_or_create("telegram:42")

        assert first.conversation_id == second.conversation_id
        assert first.session_token == second.session_token

    async def test_different_keys_get_different_conversations(
        self, conversation_store: ConversationStore
    ) -> None:
        """Test that distinct keys are isolated."""
        first = await conversation_store.get_or_create("a")
        second = await conversation_store.get_or_create("b")

        assert first.conversation_id != second.conversation_id

    async def test_new_record_fields(
        self, conversation_store: ConversationStore, clock: FakeClock
    ) -> None:
        """Test timestamps and token of a freshly created record."""
        record = await conversation_store.get_or_create("a")

        assert record.session_token
        assert record.correlation_key == "a"
        assert record.created_at == clock.utc()
        assert record.expires_at == clock.utc() + timedelta(seconds=60)

    async def test_empty_key_rejected(self, conversation_store: ConversationStore) -> None:
        """Test validation of the correlation key."""
        with pytest.raises(ValueError, match="correlation_key"):
            await conversation_store.get_or_create("")

    async def test_concurrent_creation_yields_one_conversation(self, clock: FakeClock) -> None:
        """Test that racing callers agree on a single conversation id."""
        kv_store = YieldingKeyValueStore(clock=clock.monotonic)
        store = ConversationStore(kv_store, ttl_seconds=60, clock=clock.utc)

        records = await asyncio.gather(*(store.get_or_create("shared") for _ in range(10)))

        assert len({record.conversation_id for record in records}) == 1
        # One record and one correlation pointer, no orphans
        assert len(kv_store) == 2

    async def test_expired_conversation_is_recreated(
        self, conversation_store: ConversationStore, clock: FakeClock
    ) -> None:
        """Test that a key gets a new conversation after expiry."""
        first = await conversation_store.get_or_create("a")
        clock.advance(61)

        second = await conversation_store.get_or_create("a")

        assert second.conversation_id != first.conversation_id

    async def test_stale_pointer_is_replaced(
        self, conversation_store: ConversationStore, kv_store: InMemoryKeyValueStore
    ) -> None:
        """Test recovery when the pointer outlives its record."""
        first = await conversation_store.get_or_create("a")
        await kv_store.delete(f"{CONVERSATION_KEY_PREFIX}{first.conversation_id}")

        second = await conversation_store.get_or_create("a")

        assert second.conversation_id != first.conversation_id
        assert await kv_store.get(f"{CORRELATION_KEY_PREFIX}a") == second.conversation_id

    async def test_slow_stale_pointer_cleanup_keeps_fresh_pointer(self, clock: FakeClock) -> None:
        """Test that a delayed cleanup of a stale pointer spares a newer claim."""
        kv_store = SlowFirstDeleteStore(clock=clock.monotonic)
        store = ConversationStore(kv_store, ttl_seconds=60, clock=clock.utc)
        await kv_store.set(f"{CORRELATION_KEY_PREFIX}k", "dead-id", ttl_seconds=60)

        first, second = await asyncio.gather(store.get_or_create("k"), store.get_or_create("k"))

        assert first.conversation_id == second.conversation_id
        assert await kv_store.get(f"{CORRELATION_KEY_PREFIX}k") == first.conversation_id
        assert len(kv_store) == 2


@pytest.mark.unit
class TestTouchAndResolve:
    """Test cases for touch and resolve_session_token."""

    async def test_resolve_returns_session_token(
        self, conversation_store: ConversationStore
    ) -> None:
        """Test resolving a live conversation."""
        record = await conversation_store.get_or_create("a")

        token = await conversation_store.resolve_session_token(record.conversation_id)

        assert token == record.session_token

    async def test_unknown_conversation(self, conversation_store: ConversationStore) -> None:
        """Test that unknown ids raise ConversationNotFoundError."""
        with pytest.raises(ConversationNotFoundError) as exc_info:
            await conversation_store.resolve_session_token("missing")
        assert exc_info.value.conversation_id == "missing"

        with pytest.raises(ConversationNotFoundError):
            await conversation_store.touch("missing")

    async def test_expired_conversation_not_found(
        self, conversation_store: ConversationStore, clock: FakeClock
    ) -> None:
        """Test that expiry makes the conversation unresolvable."""
        record = await conversation_store.get_or_create("a")
        clock.advance(61)

        with pytest.raises(ConversationNotFoundError):
            await conversation_store.resolve_session_token(record.conversation_id)
        with pytest.raises(ConversationNotFoundError):
            await conversation_store.touch(record.conversation_id)

    async def test_touch_extends_expiry(
        self, conversation_store: ConversationStore, clock: FakeClock
    ) -> None:
        """Test that touch restarts the expiry window for record and key."""
        record = await conversation_store.get_or_create("a")
        clock.advance(50)

        touched = await conversation_store.touch(record.conversation_id)
        clock.advance(50)

        assert touched.last_used_at == record.created_at + timedelta(seconds=50)
        assert touched.expires_at == touched.last_used_at + timedelta(seconds=60)
        assert (
            await conversation_store.resolve_session_token(record.conversation_id)
            == record.session_token
        )
        again = await conversation_store.get_or_create("a")
        assert again.conversation_id == record.conversation_id

    async def test_get_skips_unreadable_record(
        self, conversation_store: ConversationStore, kv_store: InMemoryKeyValueStore
    ) -> None:
        """Test that corrupt payloads read as missing."""
        await kv_store.set(f"{CONVERSATION_KEY_PREFIX}broken", "{not json", ttl_seconds=60)

        assert await conversation_store.get("broken") is None
        assert await conversation_store.get("") is None


@pytest.mark.unit
class TestBindAndForceNew:
    """Test cases for bind_session_token and force_new."""

    async def test_bind_session_token(self, conversation_store: ConversationStore) -> None:
        """Test replacing the token with the one reported by the assistant."""
        record = await conversation_store.get_or_create("a")

        updated = await conversation_store.bind_session_token(record.conversation_id, "chat-123")

        assert updated.session_token == "chat-123"
        assert await conversation_store.resolve_session_token(record.conversation_id) == "chat-123"

    async def test_bind_rejects_empty_token(self, conversation_store: ConversationStore) -> None:
        """Test validation of the bound token."""
        record = await conversation_store.get_or_create("a")

        with pytest.raises(ValueError):
            await conversation_store.bind_session_token(record.conversation_id, "")

    async def test_bind_unknown_conversation(self, conversation_store: ConversationStore) -> None:
        """Test binding a token to a missing conversation."""
        with pytest.raises(ConversationNotFoundError):
            await conversation_store.bind_session_token("missing", "chat-123")

    async def test_force_new_repoints_key(self, conversation_store: ConversationStore) -> None:
        """Test that force_new replaces the key's conversation but keeps the old one."""
        old = await conversation_store.get_or_create("a")

        new = await conversation_store.force_new("a")

        assert new.conversation_id != old.conversation_id
        assert (await conversation_store.get_or_create("a")).conversation_id == new.conversation_id
        assert (
            await conversation_store.resolve_session_token(old.conversation_id)
            == old.session_token
        )

    def test_ttl_validation(self, kv_store: InMemoryKeyValueStore) -> None:
        """Test that the expiry window must be positive."""
        with pytest.raises(ValueError, match="ttl_seconds"):
            ConversationStore(kv_store, ttl_seconds=0)

    def test_max_messages_validation(self, kv_store: InMemoryKeyValueStore) -> None:
        """Test that the history must hold at least one message."""
        with pytest.raises(ValueError, match="max_messages"):
            ConversationStore(kv_store, max_messages=0)


@pytest.mark.unit
class TestHistoryAndListing:
    """Test cases for record_turn and list_conversations."""

    async def test_record_turn_appends_messages(
        self, conversation_store: ConversationStore, clock: FakeClock
    ) -> None:
        """Test that a turn stores the prompt and the reply in order."""
        record = await conversation_store.get_or_create("a")
        clock.advance(5)

        updated = await conversation_store.record_turn(record.conversation_id, "hi", "hello")

        assert [(m.role, m.content) for m in updated.messages] == [
            (MessageRole.USER, "hi"),
            (MessageRole.ASSISTANT, "hello"),
        ]
        assert updated.messages[0].timestamp == clock.utc()
        stored = await conversation_store.get(record.conversation_id)
        assert stored is not None
        assert stored.messages == updated.messages

    async def test_record_turn_bounds_history(self, kv_store: InMemoryKeyValueStore) -> None:
        """Test that only the newest messages are kept and long content is cut."""
        store = ConversationStore(kv_store, max_messages=3, max_message_chars=4)
        record = await store.get_or_create("a")

        await store.record_turn(record.conversation_id, "one", "reply-one")
        updated = await store.record_turn(record.conversation_id, "two", "reply-two")

        assert [m.content for m in updated.messages] == ["repl", "two", "repl"]

    async def test_record_turn_extends_expiry(
        self, conversation_store: ConversationStore, clock: FakeClock
    ) -> None:
        """Test that recording a turn restarts the window for record and key."""
        record = await conversation_store.get_or_create("a")
        clock.advance(50)

        await conversation_store.record_turn(record.conversation_id, "hi", "hello")
        clock.advance(50)

        again = await conversation_store.get_or_create("a")
        assert again.conversation_id == record.conversation_id
        assert len(again.messages) == 2

    async def test_record_turn_unknown_conversation(
        self, conversation_store: ConversationStore
    ) -> None:
        """Test recording against a missing conversation."""
        with pytest.raises(ConversationNotFoundError):
            await conversation_store.record_turn("missing", "hi", "hello")

    async def test_list_most_recent_first(
        self, conversation_store: ConversationStore, clock: FakeClock
    ) -> None:
        """Test ordering by last use and that expired records drop out."""
        expiring = await conversation_store.get_or_create("old")
        clock.advance(30)
        older = await conversation_store.get_or_create("a")
        clock.advance(1)
        newer = await conversation_store.get_or_create("b")
        clock.advance(1)
        await conversation_store.touch(older.conversation_id)
        clock.advance(29)

        listed = await conversation_store.list_conversations()

        assert expiring.conversation_id not in [r.conversation_id for r in listed]
        assert [r.conversation_id for r in listed] == [
            older.conversation_id,
            newer.conversation_id,
        ]

    async def test_list_skips_unreadable_records(
        self, conversation_store: ConversationStore, kv_store: InMemoryKeyValueStore
    ) -> None:
        """Test that corrupt payloads are not listed."""
        record = await conversation_store.get_or_create("a")
        await kv_store.set(f"{CONVERSATION_KEY_PREFIX}broken", "{not json", ttl_seconds=60)

        listed = await conversation_store.list_conversations()

        assert [r.conversation_id for r in listed] == [record.conversation_id]
