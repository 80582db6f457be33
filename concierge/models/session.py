from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..intents import ConciergeIntent
from .messages import Message, now_ms


def new_session_id() -> str:
    return f"session-{uuid4().hex}"


class ProductSummary(BaseModel):
    """Shortlist line item."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    title: str
    slug: Optional[str] = None
    price: float = 0
    description: Optional[str] = None
    shipping_promise: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("shipping_promise", "shippingPromise"),
        serialization_alias="shippingPromise",
    )


class LastOrder(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

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

    @property
    def reference(self) -> str | None:
        return self.order_number or self.order_id


class Session(BaseModel):
    """Durable per-widget session persisted across reloads."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(default_factory=new_session_id)
    shortlist: List[ProductSummary] = Field(default_factory=list)
    last_filters: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("last_filters", "lastFilters"),
        serialization_alias="lastFilters",
    )
    last_order: Optional[LastOrder] = Field(
        default=None,
        validation_alias=AliasChoices("last_order", "lastOrder"),
        serialization_alias="lastOrder",
    )
    last_intent: Optional[ConciergeIntent] = Field(
        default=None,
        validation_alias=AliasChoices("last_intent", "lastIntent"),
        serialization_alias="lastIntent",
    )
    intro_dismissed_at: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("intro_dismissed_at", "introDismissedAt"),
        serialization_alias="introDismissedAt",
    )
    has_shown_csat: bool = Field(
        default=False,
        validation_alias=AliasChoices("has_shown_csat", "hasShownCsat"),
        serialization_alias="hasShownCsat",
    )
    shortlist_synced: bool = Field(
        default=True,
        validation_alias=AliasChoices("shortlist_synced", "shortlistSynced"),
        serialization_alias="shortlistSynced",
    )
    last_active: int = Field(
        default_factory=now_ms,
        validation_alias=AliasChoices("last_active", "lastActive"),
        serialization_alias="lastActive",
    )

    @field_validator("shortlist")
    @classmethod
    def _unique_shortlist_ids(cls, value: List[ProductSummary]) -> List[ProductSummary]:
        seen: set[str] = set()
        unique: List[ProductSummary] = []
        for item in value:
            if item.id in seen:
                continue
            seen.add(item.id)
            unique.append(item)
        return unique

    def has_known_order(self) -> bool:
        return bool(self.last_order and (self.last_order.order_id or self.last_order.order_number))


class WidgetState(BaseModel):
    """Complete widget snapshot owned by the session store."""

    model_config = ConfigDict(frozen=True)

    is_open: bool = False
    is_processing: bool = False
    messages: List[Message] = Field(default_factory=list)
    session: Session = Field(default_factory=Session)


class PersistedSnapshot(BaseModel):
    """Shape written to session storage."""

    messages: List[Message]
    session: Session
