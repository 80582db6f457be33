from __future__ import annotations

from .api import (
    IntentContext,
    IntentDetection,
    IntentExecutionRequest,
    IntentExecutionResult,
    OrderUpdatesRequest,
    OrderUpdatesResponse,
    ShortlistSyncRequest,
    ShortlistSyncResponse,
)
from .messages import (
    Message,
    MessageRole,
    MessageType,
    ModulePayload,
    create_message,
    now_ms,
)
from .session import (
    LastOrder,
    PersistedSnapshot,
    ProductSummary,
    Session,
    WidgetState,
    new_session_id,
)

__all__ = [
    "IntentContext",
    "IntentDetection",
    "IntentExecutionRequest",
    "IntentExecutionResult",
    "LastOrder",
    "Message",
    "MessageRole",
    "MessageType",
    "ModulePayload",
    "OrderUpdatesRequest",
    "OrderUpdatesResponse",
    "PersistedSnapshot",
    "ProductSummary",
    "Session",
    "ShortlistSyncRequest",
    "ShortlistSyncResponse",
    "WidgetState",
    "create_message",
    "new_session_id",
    "now_ms",
]
