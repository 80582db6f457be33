from __future__ import annotations

import time
from typing import Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..intents import ConciergeIntent

MessageRole = Literal["guest", "concierge"]
MessageType = Literal["text", "module"]

UNKNOWN_MODULE_TYPE = "unknown-module"


def now_ms() -> int:
    return int(time.time() * 1000)


class ModulePayload(BaseModel):
    """Structured chat module; only the `type` tag is interpreted by the core."""

    model_config = ConfigDict(extra="allow")

    type: str
    id: Optional[str] = None


class Message(BaseModel):
    """Single entry of the concierge chat log."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    role: MessageRole
    type: MessageType
    payload: Union[str, ModulePayload]
    intent: Optional[ConciergeIntent] = None
    timestamp: int = Field(default_factory=now_ms)

    @property
    def module_type(self) -> str | None:
        if self.type != "module":
            return None
        if isinstance(self.payload, ModulePayload):
            return self.payload.type or UNKNOWN_MODULE_TYPE
        return UNKNOWN_MODULE_TYPE

    @property
    def text(self) -> str | None:
        return self.payload if isinstance(self.payload, str) else None


def create_message(
    role: MessageRole,
    payload: str | ModulePayload | dict[str, Any],
    intent: ConciergeIntent | None = None,
) -> Message:
    """Build a message, inferring text vs module from the payload shape."""

    if isinstance(payload, dict):
        payload = ModulePayload.model_validate(payload)
    message_type: MessageType = "text" if isinstance(payload, str) else "module"
    return Message(role=role, type=message_type, payload=payload, intent=intent)
