"""
FastAPI integration for the ExecutionOrchestrator.
Exposes execute, iterate, conversation control and conversation history over HTTP.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, status
from pydantic import AliasChoices, BaseModel, Field

from cursor_runner.conversation.domain.conversation_record import ConversationRecord
from cursor_runner.conversation.domain.errors import (
    ConversationNotFoundError,
    StoreUnavailableError,
)
from cursor_runner.execution.domain.execution_outcome import ExecutionOutcome
from cursor_runner.execution.domain.execution_request import DEFAULT_MODEL, ExecutionRequest
from cursor_runner.execution.domain.orchestrator import ExecutionOrchestrator
from cursor_runner.execution.infrastructure.factory import build_orchestrator
from cursor_runner.process.domain.errors import ProcessTimeoutError, SpawnError


class ExecutePayload(BaseModel):
    """Request payload for starting a conversation."""

    prompt: str = Field(min_length=1)
    cwd: str | None = Field(default=None, validation_alias=AliasChoices("cwd", "repository"))
    correlation_key: str | None = Field(
        default=None, validation_alias=AliasChoices("correlation_key", "correlationKey")
    )
    timeout_seconds: float | None = Field(default=None, gt=0)
    model: str = DEFAULT_MODEL
    request_id: str | None = Field(default=None, validation_alias=AliasChoices("request_id", "id"))

    def to_request(self) -> ExecutionRequest:
        """Convert to the domain request."""
        return ExecutionRequest(
            prompt=self.prompt,
            cwd=self.cwd,
            correlation_key=self.correlation_key,
            timeout_seconds=self.timeout_seconds,
            model=self.model,
            request_id=self.request_id,
        )


class IteratePayload(ExecutePayload):
    """Request payload for continuing a conversation."""

    conversation_id: str = Field(
        min_length=1, validation_alias=AliasChoices("conversation_id", "conversationId")
    )


class NewConversationPayload(BaseModel):
    """Request payload for forcing a fresh conversation."""

    correlation_key: str | None = Field(
        default=None, validation_alias=AliasChoices("correlation_key", "correlationKey")
    )


class ExecutionResponse(BaseModel):
    """Response after an execute or iterate call."""

    success: bool
    call_id: str
    conversation_id: str
    state: str
    exit_code: int
    stdout: str
    stderr: str
    truncated: bool
    duration_seconds: float
    queued_seconds: float

    @classmethod
    def from_outcome(cls, outcome: ExecutionOutcome) -> ExecutionResponse:
        """Build the response from an orchestrator outcome."""
        return cls(
            success=outcome.success,
            call_id=outcome.call_id,
            conversation_id=outcome.conversation_id,
            state=outcome.state.value,
            exit_code=outcome.result.exit_code,
            stdout=outcome.result.stdout,
            stderr=outcome.result.stderr,
            truncated=outcome.result.truncated,
            duration_seconds=outcome.result.duration_seconds,
            queued_seconds=outcome.queued_seconds,
        )


class MessageView(BaseModel):
    """One message of a conversation's history."""

    role: str
    content: str
    timestamp: datetime


class ConversationView(BaseModel):
    """Read-only view of a conversation. The session token is never exposed."""

    conversation_id: str
    correlation_key: str
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime
    messages: list[MessageView]

    @classmethod
    def from_record(cls, record: ConversationRecord) -> ConversationView:
        """Build the view from a stored record."""
        return cls(
            conversation_id=record.conversation_id,
            correlation_key=record.correlation_key,
            created_at=record.created_at,
            last_used_at=record.last_used_at,
            expires_at=record.expires_at,
            messages=[
                MessageView(role=m.role.value, content=m.content, timestamp=m.timestamp)
                for m in record.messages
            ],
        )


class ExecutionRouter:
    """
    FastAPI router for ExecutionOrchestrator integration.

    Example usage:
        ```python
        from fastapi import FastAPI

        app = FastAPI()
        orchestrator = build_orchestrator()

        execution_router = ExecutionRouter(orchestrator, prefix="/cursor")
        app.include_router(execution_router.router)

        # Now you can POST to /cursor/execute and /cursor/iterate
        ```
    """

    def __init__(
        self,
        orchestrator: ExecutionOrchestrator,
        prefix: str = "/cursor",
        tags: Sequence[str] | None = None,
    ):
        """
        Initialize the router.

        Args:
            orchestrator: The orchestrator to expose.
            prefix: URL prefix for the routes.
            tags: OpenAPI tags for documentation.
        """
        if tags is None:
            tags = ["Cursor"]

        self.orchestrator = orchestrator
        self.router = APIRouter(prefix=prefix, tags=list(tags))
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Setup the API routes."""

        @self.router.post(
            "/execute",
            response_model=ExecutionResponse,
            status_code=status.HTTP_200_OK,
            summary="Run a prompt in a new conversation",
        )
        async def execute(payload: ExecutePayload) -> ExecutionResponse:
            """
            Run the assistant and wait for it to finish.

            Raises:
                HTTPException: Mapped from the orchestrator's error taxonomy.
            """
            request = self._to_request(payload)
            try:
                outcome = await self.orchestrator.execute(request)
            except Exception as e:
                raise _to_http_error(e) from e
            return ExecutionResponse.from_outcome(outcome)

        @self.router.post(
            "/iterate",
            response_model=ExecutionResponse,
            status_code=status.HTTP_200_OK,
            summary="Continue an existing conversation",
        )
        async def iterate(payload: IteratePayload) -> ExecutionResponse:
            """
            Resume the conversation and wait for the assistant to finish.

            Raises:
                HTTPException: 404 if the conversation is unknown or expired.
            """
            request = self._to_request(payload)
            try:
                outcome = await self.orchestrator.iterate(payload.conversation_id, request)
            except Exception as e:
                raise _to_http_error(e) from e
            return ExecutionResponse.from_outcome(outcome)

        @self.router.post(
            "/conversation/new",
            response_model=dict[str, Any],
            summary="Force a new conversation",
        )
        async def new_conversation(
            payload: NewConversationPayload | None = None,
        ) -> dict[str, Any]:
            """
            Create a fresh conversation id for subsequent iterate calls.

            Returns:
                The new conversation id.
            """
            correlation_key = payload.correlation_key if payload else None
            try:
                record = await self.orchestrator.new_conversation(correlation_key)
            except Exception as e:
                raise _to_http_error(e) from e
            return {
                "success": True,
                "conversation_id": record.conversation_id,
                "expires_at": record.expires_at.isoformat(),
            }

        @self.router.get(
            "/queue",
            response_model=dict[str, Any],
            summary="Get execution queue status",
        )
        async def get_queue_status() -> dict[str, Any]:
            """
            Get concurrency gate status.

            Returns:
                Capacity, free slots and queued callers.
            """
            return self.orchestrator.queue_status().to_dict()

    @staticmethod
    def _to_request(payload: ExecutePayload) -> ExecutionRequest:
        try:
            return payload.to_request()
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            ) from e


class ConversationRouter:
    """
    Read-only FastAPI router over stored conversations.

    Exposes ``GET {prefix}/list`` and ``GET {prefix}/{conversation_id}``.
    """

    def __init__(
        self,
        orchestrator: ExecutionOrchestrator,
        prefix: str = "/conversations/api",
        tags: Sequence[str] | None = None,
    ):
        """
        Initialize the router.

        Args:
            orchestrator: The orchestrator whose conversations are exposed.
            prefix: URL prefix for the routes.
            tags: OpenAPI tags for documentation.
        """
        if tags is None:
            tags = ["Conversations"]

        self.orchestrator = orchestrator
        self.router = APIRouter(prefix=prefix, tags=list(tags))
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Setup the API routes."""

        # Declared before the id route so "list" is not taken for an id
        @self.router.get(
            "/list",
            response_model=list[ConversationView],
            summary="List live conversations",
        )
        async def list_conversations() -> list[ConversationView]:
            """
            List live conversations, most recently used first.

            Raises:
                HTTPException: 503 if the store is unreachable.
            """
            try:
                records = await self.orchestrator.list_conversations()
            except Exception as e:
                raise _to_http_error(e) from e
            return [ConversationView.from_record(record) for record in records]

        @self.router.get(
            "/{conversation_id}",
            response_model=ConversationView,
            summary="Get a conversation and its messages",
        )
        async def get_conversation(conversation_id: str) -> ConversationView:
            """
            Get one conversation with its message history.

            Raises:
                HTTPException: 404 if the conversation is unknown or expired.
            """
            try:
                record = await self.orchestrator.get_conversation(conversation_id)
            except Exception as e:
                raise _to_http_error(e) from e
            return ConversationView.from_record(record)


def _to_http_error(error: Exception) -> HTTPException:
    """Map orchestrator errors onto HTTP status codes."""
    if isinstance(error, ConversationNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, StoreUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    if isinstance(error, ProcessTimeoutError):
        return HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={"error": str(error), "stdout": error.stdout, "stderr": error.stderr},
        )
    if isinstance(error, SpawnError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Execution failed: {error}",
    )


def create_health_router() -> APIRouter:
    """Router with the liveness endpoint."""
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=dict[str, str])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "cursor-runner"}

    return router


def create_app(
    orchestrator: ExecutionOrchestrator | None = None, prefix: str = "/cursor"
) -> FastAPI:
    """
    Create a FastAPI application exposing the orchestrator.

    The orchestrator's store connections are closed on shutdown.

    Args:
        orchestrator: The orchestrator to expose (built from the environment
                      when None).
        prefix: URL prefix for the execution routes.

    Returns:
        Configured FastAPI application.
    """
    if orchestrator is None:
        orchestrator = build_orchestrator()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        yield
        await orchestrator.close()

    app = FastAPI(title="cursor-runner", lifespan=lifespan)
    app.include_router(create_health_router())
    app.include_router(ExecutionRouter(orchestrator, prefix=prefix).router)
    app.include_router(ConversationRouter(orchestrator).router)
    return app
