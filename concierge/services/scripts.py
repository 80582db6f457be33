"""
Scripted intent executor.

A small deterministic ``execute_intent`` that answers every intent with
canned copy and the module the UI expects, so the widget can run end to end
without a storefront business layer behind it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from ..intents import ConciergeIntent
from ..models import IntentExecutionRequest, IntentExecutionResult, ModulePayload, create_message, now_ms
from .errors import ExecutorError

logger = logging.getLogger(__name__)

ORDER_NUMBER_PROMPT = "Happy to check on that. What's your order number? It starts with GG, like GG-12345."
RETURN_NEEDS_ORDER_PROMPT = "I can start a return or exchange. Share the order number and I'll pull up your options."


def _module(module_type: str, **fields: Any) -> ModulePayload:
    return ModulePayload(type=module_type, id=f"{module_type}-{now_ms()}", **fields)


def _order_number(payload: Dict[str, Any]) -> str | None:
    value = payload.get("orderNumber") or payload.get("orderId")
    return str(value).strip().upper() if value else None


def _find_product(request: IntentExecutionRequest) -> IntentExecutionResult:
    payload = request.payload
    filters = payload.get("filters") if isinstance(payload.get("filters"), dict) else {}
    if payload.get("slug") == "ready-to-ship":
        filters = {"readyToShip": True, **filters}
    intro = (
        "Here are ready-to-ship pieces that can leave the studio this week."
        if filters.get("readyToShip")
        else "Here are a few pieces that match what you described."
    )
    return IntentExecutionResult(
        messages=[
            create_message("concierge", intro, request.intent),
            create_message(
                "concierge",
                _module(
                    "product-carousel",
                    query=payload.get("query"),
                    filters=filters,
                    sortBy=payload.get("sortBy"),
                ),
                request.intent,
            ),
        ],
        session_patch={"lastIntent": request.intent.value, "lastFilters": filters or None},
    )


def _track_order(request: IntentExecutionRequest) -> IntentExecutionResult:
    order_number = _order_number(request.payload)
    if not order_number:
        return IntentExecutionResult(
            messages=[create_message("concierge", ORDER_NUMBER_PROMPT, request.intent)],
            session_patch={"lastIntent": request.intent.value},
        )
    return IntentExecutionResult(
        messages=[
            create_message("concierge", f"Found order {order_number}. Here's where it is in the studio.", request.intent),
            create_message(
                "concierge",
                _module("order-timeline", orderNumber=order_number, allowTextUpdates=True),
                request.intent,
            ),
        ],
        session_patch={
            "lastIntent": request.intent.value,
            "lastOrder": {"orderId": request.payload.get("orderId") or order_number, "orderNumber": order_number},
        },
    )


def _return_exchange(request: IntentExecutionRequest) -> IntentExecutionResult:
    order_number = _order_number(request.payload)
    if not order_number:
        return IntentExecutionResult(
            messages=[create_message("concierge", RETURN_NEEDS_ORDER_PROMPT, request.intent)],
            session_patch={"lastIntent": request.intent.value},
        )
    if request.payload.get("action") == "submit-return-option":
        option = request.payload.get("option") or "return"
        return IntentExecutionResult(
            messages=[
                create_message(
                    "concierge",
                    f"Your {option} for {order_number} is filed. A prepaid label is on its way to your inbox.",
                    request.intent,
                )
            ],
            session_patch={"lastIntent": request.intent.value},
        )
    return IntentExecutionResult(
        messages=[
            create_message("concierge", f"Here are the options for {order_number}.", request.intent),
            create_message(
                "concierge",
                _module("return-options", orderNumber=order_number, options=["return", "exchange", "resize"]),
                request.intent,
            ),
        ],
        session_patch={"lastIntent": request.intent.value},
    )


def _sizing_repairs(request: IntentExecutionRequest) -> IntentExecutionResult:
    return IntentExecutionResult(
        messages=[
            create_message(
                "concierge",
                "Resizing is free within 60 days. Here's how to find your size or book a repair.",
                request.intent,
            ),
            create_message("concierge", _module("sizing-guide"), request.intent),
        ],
        session_patch={"lastIntent": request.intent.value},
    )


def _care_warranty(request: IntentExecutionRequest) -> IntentExecutionResult:
    return IntentExecutionResult(
        messages=[
            create_message(
                "concierge",
                "Every piece carries a lifetime warranty on craftsmanship. A few care tips keep it bright.",
                request.intent,
            ),
            create_message("concierge", _module("care-warranty"), request.intent),
        ],
        session_patch={"lastIntent": request.intent.value},
    )


def _financing(request: IntentExecutionRequest) -> IntentExecutionResult:
    return IntentExecutionResult(
        messages=[
            create_message("concierge", "You can split any order into four interest-free payments.", request.intent),
            create_message("concierge", _module("financing-options"), request.intent),
        ],
        session_patch={"lastIntent": request.intent.value},
    )


def _stylist_contact(request: IntentExecutionRequest) -> IntentExecutionResult:
    payload = request.payload
    if payload.get("action") == "submit-escalation":
        return IntentExecutionResult(
            messages=[
                create_message(
                    "concierge",
                    "Thanks. A stylist will reach out within one business day.",
                    request.intent,
                )
            ],
            session_patch={"lastIntent": request.intent.value},
        )
    shortlist = payload.get("shortlist") if isinstance(payload.get("shortlist"), list) else []
    intro = (
        f"I'll share your {len(shortlist)} saved piece{'s' if len(shortlist) != 1 else ''} with a stylist."
        if shortlist
        else "A stylist can help with that. Leave your details and they'll follow up."
    )
    return IntentExecutionResult(
        messages=[
            create_message("concierge", intro, request.intent),
            create_message(
                "concierge",
                _module("stylist-escalation", shortlistCount=len(shortlist), source=payload.get("source")),
                request.intent,
            ),
        ],
        session_patch={"lastIntent": request.intent.value},
    )


def _csat(request: IntentExecutionRequest) -> IntentExecutionResult:
    if request.payload.get("action") == "submit-csat":
        return IntentExecutionResult(
            messages=[create_message("concierge", "Thanks for the feedback. It goes straight to the studio team.")],
            session_patch={"lastIntent": request.intent.value, "hasShownCsat": True},
        )
    return IntentExecutionResult(
        messages=[
            create_message("concierge", "How did I do today?", request.intent),
            create_message("concierge", _module("csat"), request.intent),
        ],
        session_patch={"lastIntent": request.intent.value, "hasShownCsat": True},
    )


_HANDLERS: Dict[ConciergeIntent, Callable[[IntentExecutionRequest], IntentExecutionResult]] = {
    ConciergeIntent.FIND_PRODUCT: _find_product,
    ConciergeIntent.TRACK_ORDER: _track_order,
    ConciergeIntent.RETURN_EXCHANGE: _return_exchange,
    ConciergeIntent.SIZING_REPAIRS: _sizing_repairs,
    ConciergeIntent.CARE_WARRANTY: _care_warranty,
    ConciergeIntent.FINANCING: _financing,
    ConciergeIntent.STYLIST_CONTACT: _stylist_contact,
    ConciergeIntent.CSAT: _csat,
}


async def execute_scripted_intent(request: IntentExecutionRequest) -> IntentExecutionResult:
    handler = _HANDLERS.get(request.intent)
    if handler is None:
        raise ExecutorError(f"No script for intent {request.intent}", reason="unknown_intent")
    result = handler(request)
    logger.debug(
        "Scripted intent=%s messages=%d request_id=%s",
        request.intent.value,
        len(result.messages),
        request.payload.get("requestId"),
    )
    return result
