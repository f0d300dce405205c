"""Execution orchestrator composing the semaphore, conversations and process runner."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from uuid6 import uuid7

from cursor_runner.config import RunnerSettings
from cursor_runner.conversation.domain.errors import (
    ConversationNotFoundError,
    StoreUnavailableError,
)
from cursor_runner.errors import CursorRunnerError
from cursor_runner.execution.domain.call_state import CallState
from cursor_runner.execution.domain.execution_outcome import ExecutionOutcome
from cursor_runner.process.domain.errors import ProcessTimeoutError

if TYPE_CHECKING:
    from cursor_runner.concurrency.domain.permit import QueueStatus
    from cursor_runner.concurrency.domain.semaphore_port import SemaphorePort
    from cursor_runner.conversation.domain.conversation_record import ConversationRecord
    from cursor_runner.conversation.domain.conversation_store import ConversationStore
    from cursor_runner.execution.domain.command_builder import CommandBuilder
    from cursor_runner.execution.domain.execution_request import ExecutionRequest
    from cursor_runner.process.domain.process_runner_port import ProcessRunnerPort

logger = logging.getLogger(__name__)

VALIDATE_TIMEOUT_SECONDS = 30.0

# Resolves the conversation for a call and returns (conversation_id, argv)
_Prepare = Callable[[], Awaitable[tuple[str, list[str]]]]


@dataclass
class _Call:
    """Tracks one call through its state machine for logging."""

    kind: str
    request_id: str | None
    call_id: str = field(default_factory=lambda: str(uuid7()))
    state: CallState = CallState.QUEUED

    def advance(self, state: CallState, detail: str = "") -> None:
        logger.debug(
            "%s %s [%s]: %s -> %s%s",
            self.kind,
            self.call_id,
            self.request_id or "-",
            self.state,
            state,
            f" ({detail})" if detail else "",
        )
        self.state = state


class ExecutionOrchestrator:
    """Public entry point for running the assistant CLI.

    Architecture:
    - SemaphorePort: bounds how many assistant processes run at once; execute
      and iterate draw from the same pool
    - ConversationStore: maps correlation keys and conversation ids to
      resumable session tokens
    - ProcessRunnerPort: runs the CLI with timeout and output limits
    - CommandBuilder: assembles fresh and resume argv

    Call flow (execute and iterate):
    1. QUEUED: wait for a permit
    2. PERMIT_ACQUIRED: permit held under ``async with`` so it is released
       on every path, including cancellation
    3. CONVERSATION_RESOLVED: conversation created (execute) or its session
       token resolved and expiry refreshed (iterate)
    4. PROCESS_RUNNING: CLI running
    5. COMPLETED, TIMED_OUT or FAILED

    Errors are never retried here. ProcessTimeoutError, SpawnError,
    ConversationNotFoundError and StoreUnavailableError reach the caller
    unchanged, after the permit has been released.
    """

    def __init__(
        self,
        runner: ProcessRunnerPort,
        conversations: ConversationStore,
        semaphore: SemaphorePort,
        command_builder: CommandBuilder,
        settings: RunnerSettings | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            runner: Process runner for the assistant CLI
            conversations: Conversation store
            semaphore: Concurrency gate shared by execute and iterate
            command_builder: Builds CLI arguments
            settings: Timeouts and output limits (defaults when None)
        """
        self.runner = runner
        self.conversations = conversations
        self.semaphore = semaphore
        self.command_builder = command_builder
        self.settings = settings or RunnerSettings()

    async def execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        """Run a prompt in a new conversation.

        A caller-supplied correlation key reuses the conversation already
        registered for it; otherwise a fresh key is minted for this call.

        Args:
            request: Prompt, working directory and limits

        Returns:
            ExecutionOutcome carrying the conversation id to iterate on

        Raises:
            SpawnError: If the CLI could not be started
            ProcessTimeoutError: If the CLI exceeded its budget
            StoreUnavailableError: If the conversation store is unreachable
        """
        correlation_key = request.correlation_key or f"call:{uuid7()}"

        async def prepare() -> tuple[str, list[str]]:
            record = await self.conversations.get_or_create(correlation_key)
            return record.conversation_id, self.command_builder.fresh(request)

        outcome = await self._run_call("execute", request, prepare)
        await self._bind_reported_session(outcome)
        await self._record_turn(outcome, request)
        return outcome

    async def iterate(self, conversation_id: str, request: ExecutionRequest) -> ExecutionOutcome:
        """Continue an existing conversation with another prompt.

        Args:
            conversation_id: Identifier returned by a previous execute()
            request: Prompt, working directory and limits

        Returns:
            ExecutionOutcome for the resumed run

        Raises:
            ConversationNotFoundError: If the conversation is unknown or expired
            SpawnError: If the CLI could not be started
            ProcessTimeoutError: If the CLI exceeded its budget
            StoreUnavailableError: If the conversation store is unreachable
        """

        async def prepare() -> tuple[str, list[str]]:
            session_token = await self.conversations.resolve_session_token(conversation_id)
            await self.conversations.touch(conversation_id)
            return conversation_id, self.command_builder.resume(request, session_token)

        outcome = await self._run_call("iterate", request, prepare)
        await self._record_turn(outcome, request)
        return outcome

    async def new_conversation(self, correlation_key: str | None = None) -> ConversationRecord:
        """Force a fresh conversation, re-pointing the correlation key if given.

        Returns:
            The new conversation record
        """
        return await self.conversations.force_new(correlation_key or f"call:{uuid7()}")

    async def list_conversations(self) -> list[ConversationRecord]:
        """List live conversations, most recently used first."""
        return await self.conversations.list_conversations()

    async def get_conversation(self, conversation_id: str) -> ConversationRecord:
        """Load one conversation with its message history.

        Raises:
            ConversationNotFoundError: If the conversation is unknown or expired
            StoreUnavailableError: If the conversation store is unreachable
        """
        record = await self.conversations.get(conversation_id)
        if record is None:
            raise ConversationNotFoundError(conversation_id)
        return record

    def queue_status(self) -> QueueStatus:
        """Get the current concurrency gate snapshot."""
        return self.semaphore.status()

    async def validate(self) -> str:
        """Check that the assistant CLI can be launched.

        Returns:
            The version string printed by the CLI

        Raises:
            SpawnError: If the CLI is missing or not executable
            CursorRunnerError: If the CLI exits with a non-zero status
        """
        async with self.semaphore.slot():
            result = await self.runner.run(
                self.command_builder.executable,
                self.command_builder.version(),
                self.settings.run_options(
                    timeout_seconds=min(VALIDATE_TIMEOUT_SECONDS, self.settings.timeout_seconds)
                ),
            )
        if not result.success:
            raise CursorRunnerError(
                f"{self.command_builder.executable} --version exited with code "
                f"{result.exit_code}: {result.stderr.strip()}"
            )
        version = result.stdout.strip()
        logger.info("Assistant CLI validated: %s", version)
        return version

    async def close(self) -> None:
        """Release connections held by the conversation store."""
        await self.conversations.kv_store.close()

    async def _run_call(
        self, kind: str, request: ExecutionRequest, prepare: _Prepare
    ) -> ExecutionOutcome:
        call = _Call(kind=kind, request_id=request.request_id)
        status = self.semaphore.status()
        if status.available <= 0 or status.waiting > 0:
            logger.info(
                "%s %s waiting for an execution slot (available %d, waiting %d)",
                kind,
                call.call_id,
                status.available,
                status.waiting,
            )

        queued_at = time.monotonic()
        async with self.semaphore.slot():
            queued_seconds = time.monotonic() - queued_at
            call.advance(CallState.PERMIT_ACQUIRED, f"queued {queued_seconds:.2f}s")
            try:
                conversation_id, args = await prepare()
                call.advance(CallState.CONVERSATION_RESOLVED, conversation_id)

                call.advance(CallState.PROCESS_RUNNING)
                result = await self.runner.run(
                    self.command_builder.executable,
                    args,
                    self.settings.run_options(
                        timeout_seconds=request.timeout_seconds, cwd=request.cwd
                    ),
                )
            except ProcessTimeoutError as error:
                call.advance(CallState.TIMED_OUT, str(error))
                raise
            except CursorRunnerError as error:
                call.advance(CallState.FAILED, f"{type(error).__name__}: {error}")
                raise
            except asyncio.CancelledError:
                call.advance(CallState.FAILED, "cancelled")
                raise

        call.advance(CallState.COMPLETED, f"exit code {result.exit_code}")
        logger.info(
            "%s %s finished for conversation %s (exit %d, %.2fs, truncated=%s)",
            kind,
            call.call_id,
            conversation_id,
            result.exit_code,
            result.duration_seconds,
            result.truncated,
        )
        return ExecutionOutcome(
            call_id=call.call_id,
            conversation_id=conversation_id,
            result=result,
            state=call.state,
            queued_seconds=queued_seconds,
        )

    async def _bind_reported_session(self, outcome: ExecutionOutcome) -> None:
        """Store the session id the CLI reported, if it reported one."""
        session_token = self.command_builder.extract_session_token(outcome.result.stdout)
        if session_token is None:
            return
        try:
            await self.conversations.bind_session_token(outcome.conversation_id, session_token)
        except (ConversationNotFoundError, StoreUnavailableError) as error:
            # The run itself succeeded; resuming will fall back to the minted token
            logger.warning(
                "Could not bind session %s to conversation %s: %s",
                session_token,
                outcome.conversation_id,
                error,
            )

    async def _record_turn(self, outcome: ExecutionOutcome, request: ExecutionRequest) -> None:
        """Append the prompt and the CLI output to the conversation history."""
        result = outcome.result
        try:
            await self.conversations.record_turn(
                outcome.conversation_id, request.prompt, result.stdout or result.stderr
            )
        except (ConversationNotFoundError, StoreUnavailableError) as error:
            logger.warning(
                "Could not record history for conversation %s: %s",
                outcome.conversation_id,
                error,
            )
