from __future__ import annotations

import logging
from typing import Any, Dict

from ..config import Settings
from ..intents import (
    CHOOSER_CONFIRMATION_COPY,
    READY_TO_SHIP_CONFIRMATION,
    ConciergeIntent,
    MissReason,
    intent_descriptions,
)
from ..models import IntentDetection, ModulePayload, create_message, now_ms
from .analytics import Analytics
from .executor import IntentExecutorAdapter
from .session_store import WidgetStore

logger = logging.getLogger(__name__)

FIRST_MISS_COPY = "Got it. Pick what you need and I'll route you quickly."
REPEATED_MISS_COPY = (
    "I want to be sure I'm helping with the right thing. Choose one below, or I can bring in a stylist."
)
READY_TO_SHIP_SLUG = "ready-to-ship"


class DisambiguationController:
    """
    Tracks consecutive classification misses for one widget instance.

    The miss counter is not part of the persisted session and starts at zero
    for every widget instance.
    """

    def __init__(
        self,
        store: WidgetStore,
        adapter: IntentExecutorAdapter,
        analytics: Analytics,
        settings: Settings,
    ) -> None:
        self._store = store
        self._adapter = adapter
        self._analytics = analytics
        self._settings = settings
        self.miss_count = 0

    def reset(self) -> None:
        self.miss_count = 0

    def record_miss(
        self,
        reason: MissReason,
        detected: IntentDetection | None = None,
        text: str | None = None,
        *,
        force_human: bool = False,
    ) -> ModulePayload:
        """Count a miss and append the intent chooser; returns the chooser payload."""

        session = self._store.session
        self._analytics.track(
            "intent_miss",
            {
                "reason": reason,
                "text": text,
                "confidence": detected.confidence if detected else None,
                "intent": detected.intent.value if detected else None,
                "detectedReason": detected.reason if detected else None,
                "lastIntent": session.last_intent.value if session.last_intent else None,
                "missCount": self.miss_count + 1,
                "sessionId": session.id,
            },
        )

        self.miss_count += 1
        escalated = self.miss_count >= self._settings.human_escalation_misses
        emphasize_human = force_human or escalated
        chooser = ModulePayload(
            type="intent-chooser",
            id=f"intent-chooser-{now_ms()}",
            headline="What do you need?",
            description="Pick an option to jump right into the right flow.",
            options=[{"intent": key, "label": label} for key, label in intent_descriptions().items()],
            emphasizeHuman=emphasize_human,
        )
        self._store.append_messages(
            [
                create_message("concierge", REPEATED_MISS_COPY if escalated else FIRST_MISS_COPY),
                create_message("concierge", chooser),
            ]
        )
        self._analytics.track(
            "intent_disambiguation_shown",
            {
                "reason": reason,
                "text": text,
                "intent": detected.intent.value if detected else None,
                "confidence": detected.confidence if detected else None,
                "detectedReason": detected.reason if detected else None,
                "lastIntent": session.last_intent.value if session.last_intent else None,
                "missCount": self.miss_count,
                "sessionId": session.id,
            },
        )
        logger.info(
            "Disambiguation shown reason=%s miss_count=%d emphasize_human=%s",
            reason,
            self.miss_count,
            emphasize_human,
        )
        return chooser

    async def select(
        self,
        intent: ConciergeIntent,
        payload: Dict[str, Any] | None = None,
        *,
        source: str | None = None,
    ) -> None:
        """Handle a pick from the intent chooser."""

        self.reset()
        self._analytics.track(
            "intent_disambiguation_selected",
            {
                "intent": intent.value,
                "source": source or "intent-chooser",
                "sessionId": self._store.session.id,
            },
        )
        chooser_payload = dict(payload or {})
        default_ready_to_ship = intent == ConciergeIntent.FIND_PRODUCT and not chooser_payload
        run_payload: Dict[str, Any] = {"source": "intent-chooser"}
        if default_ready_to_ship:
            run_payload.update({"slug": READY_TO_SHIP_SLUG, "filters": {"readyToShip": True}})
        run_payload.update(chooser_payload)

        confirmation = (
            READY_TO_SHIP_CONFIRMATION
            if default_ready_to_ship
            else CHOOSER_CONFIRMATION_COPY.get(intent, "On it.")
        )
        self._store.append_messages([create_message("concierge", confirmation)])
        await self._adapter.run_intent(intent, run_payload)
