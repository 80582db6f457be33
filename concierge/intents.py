from __future__ import annotations

from enum import StrEnum
from typing import Literal


class ConciergeIntent(StrEnum):
    """Closed set of goals the concierge knows how to handle."""

    FIND_PRODUCT = "find_product"
    TRACK_ORDER = "track_order"
    RETURN_EXCHANGE = "return_exchange"
    SIZING_REPAIRS = "sizing_repairs"
    CARE_WARRANTY = "care_warranty"
    FINANCING = "financing"
    STYLIST_CONTACT = "stylist_contact"
    CSAT = "csat"


MissReason = Literal["no_match", "low_confidence"]

DetectionSource = Literal["explicit", "keyword", "pattern", "context", "hint"]

ORDER_INTENTS: set[ConciergeIntent] = {
    ConciergeIntent.TRACK_ORDER,
    ConciergeIntent.RETURN_EXCHANGE,
}


# Copy shown right after a guest picks an option in the intent chooser.
CHOOSER_CONFIRMATION_COPY: dict[ConciergeIntent, str] = {
    ConciergeIntent.FIND_PRODUCT: "On it. I'll open product recommendations.",
    ConciergeIntent.TRACK_ORDER: "On it. Opening order lookup.",
    ConciergeIntent.RETURN_EXCHANGE: "On it. Starting returns & resizing.",
    ConciergeIntent.SIZING_REPAIRS: "On it. Starting sizing help.",
    ConciergeIntent.CARE_WARRANTY: "On it. Sharing care & warranty info.",
    ConciergeIntent.FINANCING: "On it. Pulling financing options.",
    ConciergeIntent.STYLIST_CONTACT: "On it. Bringing in a stylist.",
    ConciergeIntent.CSAT: "Happy to take feedback.",
}

READY_TO_SHIP_CONFIRMATION = "On it. Pulling ready-to-ship picks to get you started."


def parse_intent(value: str | ConciergeIntent | None) -> ConciergeIntent | None:
    """Coerce a raw value into an intent, returning None for unknown codes."""

    if value is None:
        return None
    if isinstance(value, ConciergeIntent):
        return value
    try:
        return ConciergeIntent(str(value).strip().lower())
    except ValueError:
        return None


def intent_descriptions() -> dict[str, str]:
    """Human readable labels used by the intent chooser module."""

    return {
        ConciergeIntent.FIND_PRODUCT.value: "Find a piece",
        ConciergeIntent.TRACK_ORDER.value: "Track my order",
        ConciergeIntent.RETURN_EXCHANGE.value: "Return or exchange",
        ConciergeIntent.SIZING_REPAIRS.value: "Sizing & repairs",
        ConciergeIntent.CARE_WARRANTY.value: "Care & warranty",
        ConciergeIntent.FINANCING.value: "Financing options",
        ConciergeIntent.STYLIST_CONTACT.value: "Talk to a stylist",
    }
