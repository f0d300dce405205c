"""Wiring of the production orchestrator."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cursor_runner.concurrency.infrastructure.fifo_semaphore import FifoSemaphore
from cursor_runner.config import RunnerSettings
from cursor_runner.conversation.domain.conversation_store import ConversationStore
from cursor_runner.conversation.infrastructure.redis_store import RedisKeyValueStore
from cursor_runner.execution.domain.command_builder import CommandBuilder
from cursor_runner.execution.domain.orchestrator import ExecutionOrchestrator
from cursor_runner.process.infrastructure.subprocess_runner import SubprocessRunner

if TYPE_CHECKING:
    from cursor_runner.conversation.domain.key_value_store_port import KeyValueStorePort
    from cursor_runner.process.domain.process_runner_port import ProcessRunnerPort

logger = logging.getLogger(__name__)


def build_orchestrator(
    settings: RunnerSettings | None = None,
    kv_store: KeyValueStorePort | None = None,
    runner: ProcessRunnerPort | None = None,
) -> ExecutionOrchestrator:
    """Create an orchestrator from settings.

    Args:
        settings: Runner settings (read from the environment when None)
        kv_store: Key-value store (Redis at settings.redis_url when None)
        runner: Process runner (SubprocessRunner when None)

    Returns:
        A ready ExecutionOrchestrator
    """
    settings = settings or RunnerSettings.from_env()
    if kv_store is None:
        kv_store = RedisKeyValueStore.from_url(settings.redis_url)

    orchestrator = ExecutionOrchestrator(
        runner=runner or SubprocessRunner(settings.run_options()),
        conversations=ConversationStore(kv_store, ttl_seconds=settings.conversation_ttl_seconds),
        semaphore=FifoSemaphore(max_permits=settings.max_concurrent),
        command_builder=CommandBuilder(settings.cli_path),
        settings=settings,
    )
    logger.info(
        "Orchestrator initialized (cli=%s, max_concurrent=%d, timeout=%.0fs, "
        "max_output_bytes=%d, conversation_ttl=%ds)",
        settings.cli_path,
        settings.max_concurrent,
        settings.timeout_seconds,
        settings.max_output_bytes,
        settings.conversation_ttl_seconds,
    )
    return orchestrator
