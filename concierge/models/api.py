from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..intents import ConciergeIntent, DetectionSource
from .messages import Message
from .session import ProductSummary, Session, WidgetState


class IntentContext(BaseModel):
    """Prior-turn context the classifier may lean on."""

    last_intent: Optional[ConciergeIntent] = None
    last_filters: Optional[Dict[str, Any]] = None


class IntentDetection(BaseModel):
    """Outcome of deterministic intent classification."""

    model_config = ConfigDict(frozen=True)

    intent: ConciergeIntent
    confidence: float
    payload: Dict[str, Any] = Field(default_factory=dict)
    source: DetectionSource
    reason: str


class IntentExecutionRequest(BaseModel):
    intent: ConciergeIntent
    payload: Dict[str, Any] = Field(default_factory=dict)
    state: WidgetState


class IntentExecutionResult(BaseModel):
    """What an intent executor hands back to the widget."""

    messages: List[Message] = Field(default_factory=list)
    session_patch: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("session_patch", "sessionPatch"),
    )
    error: Optional[str] = None


class ShortlistSyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(
        validation_alias=AliasChoices("session_id", "sessionId"),
        serialization_alias="sessionId",
    )
    items: List[ProductSummary] = Field(default_factory=list)


class ShortlistSyncResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(
        validation_alias=AliasChoices("session_id", "sessionId"),
        serialization_alias="sessionId",
    )
    count: int


class OrderUpdatesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("session_id", "sessionId"),
        serialization_alias="sessionId",
    )
    origin_intent: Optional[ConciergeIntent] = Field(
        default=None,
        validation_alias=AliasChoices("origin_intent", "originIntent"),
        serialization_alias="originIntent",
    )
    order_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("order_id", "orderId"),
        serialization_alias="orderId",
    )
    order_number: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("order_number", "orderNumber"),
        serialization_alias="orderNumber",
    )

    @classmethod
    def from_session(cls, session: Session, origin_intent: ConciergeIntent | None) -> "OrderUpdatesRequest":
        last_order = session.last_order
        return cls(
            session_id=session.id,
            origin_intent=origin_intent,
            order_id=last_order.order_id if last_order else None,
            order_number=last_order.order_number if last_order else None,
        )


class OrderUpdatesResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
