"""HTTP surface for the execution orchestrator."""

from cursor_runner.api.fastapi_integration import (
    ConversationRouter,
    ConversationView,
    ExecutePayload,
    ExecutionResponse,
    ExecutionRouter,
    IteratePayload,
    NewConversationPayload,
    create_app,
    create_health_router,
)

__all__ = [
    "ConversationRouter",
    "ConversationView",
    "ExecutePayload",
    "ExecutionResponse",
    "ExecutionRouter",
    "IteratePayload",
    "NewConversationPayload",
    "create_app",
    "create_health_router",
]
