"""Pytest configuration and shared fixtures."""

import pytest

from cursor_runner.concurrency.infrastructure.fifo_semaphore import FifoSemaphore
from cursor_runner.config import RunnerSettings
from cursor_runner.conversation.domain.conversation_store import ConversationStore
from cursor_runner.conversation.infrastructure.in_memory_store import InMemoryKeyValueStore
from cursor_runner.execution.domain.command_builder import CommandBuilder
from cursor_runner.execution.domain.orchestrator import ExecutionOrchestrator
from tests.fixtures import FakeClock, FakeRunner


@pytest.fixture
def clock() -> FakeClock:
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def kv_store(clock: FakeClock) -> InMemoryKeyValueStore:
    """Create an in-memory key-value store driven by the fake clock."""
    return InMemoryKeyValueStore(clock=clock.monotonic)


@pytest.fixture
def conversation_store(kv_store: InMemoryKeyValueStore, clock: FakeClock) -> ConversationStore:
    """Create a conversation store with a 60 second expiry window."""
    return ConversationStore(kv_store, ttl_seconds=60, clock=clock.utc)


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Create a fake process runner."""
    return FakeRunner()


@pytest.fixture
def semaphore() -> FifoSemaphore:
    """Create a two-slot semaphore."""
    return FifoSemaphore(max_permits=2)


@pytest.fixture
def settings() -> RunnerSettings:
    """Create settings with a short timeout."""
    return RunnerSettings(cli_path="cursor-agent", timeout_seconds=5.0, max_concurrent=2)


@pytest.fixture
def orchestrator(
    fake_runner: FakeRunner,
    conversation_store: ConversationStore,
    semaphore: FifoSemaphore,
    settings: RunnerSettings,
) -> ExecutionOrchestrator:
    """Create an orchestrator wired to in-memory doubles."""
    return ExecutionOrchestrator(
        runner=fake_runner,
        conversations=conversation_store,
        semaphore=semaphore,
        command_builder=CommandBuilder(settings.cli_path),
        settings=settings,
    )
