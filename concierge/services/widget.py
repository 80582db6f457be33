"""
ConciergeWidget - composition root for one embedded concierge.

Wires the store, classifier, disambiguation, executor adapter, shortlist and
module action router together and exposes the commands a host page or chat
UI calls: free text, quick links, inline buttons, module actions, and the
host commands ``set_filters`` / ``add_to_shortlist`` / ``toggle``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Literal

from pydantic import BaseModel

from ..config import Settings, get_settings
from ..intents import ConciergeIntent
from ..models import IntentContext, ProductSummary, WidgetState, create_message
from .analytics import Analytics
from .disambiguation import DisambiguationController
from .executor import IntentExecutor, IntentExecutorAdapter
from .host import HostBridge
from .intent_rules import IntentClassifier, classify_confidence, get_intent_classifier
from .module_actions import ModuleActionRouter
from .scripts import execute_scripted_intent
from .session_store import WidgetStore
from .shortlist import CartAddItem, ShortlistService
from .storage import InMemoryStorage, JsonFileStorage, KeyValueStorage
from .support_client import SupportApiClient

logger = logging.getLogger(__name__)

InlineAction = Literal["track", "stylist"]


def default_storages(settings: Settings) -> tuple[KeyValueStorage, KeyValueStorage]:
    """Session and local storage areas: files under ``storage_dir`` when configured, memory otherwise."""

    if settings.storage_dir:
        root = Path(settings.storage_dir)
        return JsonFileStorage(root / "session"), JsonFileStorage(root / "local")
    return InMemoryStorage(), InMemoryStorage()


class ConciergeWidget:
    def __init__(
        self,
        execute_intent: IntentExecutor | None = None,
        *,
        settings: Settings | None = None,
        session_storage: KeyValueStorage | None = None,
        local_storage: KeyValueStorage | None = None,
        analytics: Analytics | None = None,
        host: HostBridge | None = None,
        support_client: SupportApiClient | None = None,
        cart_add_item: CartAddItem | None = None,
        classifier: IntentClassifier | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        if session_storage is None or local_storage is None:
            default_session, default_local = default_storages(self.settings)
            if session_storage is None:
                session_storage = default_session
            if local_storage is None:
                local_storage = default_local

        self.analytics = analytics or Analytics()
        self.host = host or HostBridge(origin=self.settings.site_origin)
        self.store = WidgetStore(
            session_storage=session_storage,
            local_storage=local_storage,
            settings=self.settings,
        )
        self.store.hydrate()
        self.show_intro = self.store.session.intro_dismissed_at is None

        self._classifier = classifier or get_intent_classifier()
        self.adapter = IntentExecutorAdapter(
            self.store,
            execute_intent or execute_scripted_intent,
            self.analytics,
        )
        self.disambiguation = DisambiguationController(self.store, self.adapter, self.analytics, self.settings)
        support_client = support_client or SupportApiClient(self.settings)
        self.shortlist = ShortlistService(
            self.store,
            self.adapter,
            support_client,
            self.analytics,
            self.host,
            self.settings,
            cart_add_item=cart_add_item,
        )
        self.router = ModuleActionRouter(
            self.store,
            self.adapter,
            self.disambiguation,
            self.shortlist,
            support_client,
            self.analytics,
            self.host,
            hide_intro=self.hide_intro,
        )
        logger.info(
            "Concierge widget ready session_id=%s messages=%d",
            self.store.session.id,
            len(self.store.get_state().messages),
        )

    @property
    def state(self) -> WidgetState:
        return self.store.get_state()

    def hide_intro(self) -> None:
        self.show_intro = False

    def dismiss_intro(self) -> None:
        self.show_intro = False
        self.store.dismiss_intro()

    def toggle(self) -> None:
        self.store.toggle()

    async def send_message(self, text: str) -> None:
        """Handle free text typed by the guest."""

        trimmed = (text or "").strip()
        if not trimmed:
            return

        self.adapter.ensure_open()
        self.hide_intro()
        self.store.append_messages([create_message("guest", trimmed)])

        session = self.store.session
        context = IntentContext(last_intent=session.last_intent, last_filters=session.last_filters)
        detected = self._classifier.detect_intent(trimmed, context=context)
        if detected is None:
            self.disambiguation.record_miss("no_match", text=trimmed)
            return

        should_execute, emphasize_human = classify_confidence(
            detected.confidence,
            execute_threshold=self.settings.execute_threshold,
            human_threshold=self.settings.human_threshold,
        )
        if not should_execute:
            self.disambiguation.record_miss(
                "low_confidence",
                detected,
                trimmed,
                force_human=emphasize_human,
            )
            return

        self.disambiguation.reset()
        await self.adapter.run_intent(
            detected.intent,
            {**detected.payload, "source": detected.source, "reason": detected.reason},
        )

    async def quick_link(self, intent: ConciergeIntent | str, payload: Dict[str, Any] | None = None) -> None:
        intent = ConciergeIntent(intent)
        self.adapter.ensure_open()
        self.hide_intro()
        payload = payload or {}
        slug = payload.get("slug") if isinstance(payload.get("slug"), str) else None
        filters = payload.get("filters") if isinstance(payload.get("filters"), dict) else None
        self.analytics.track(
            "concierge_quickstart_clicked",
            {"slug": slug or intent.value, "filtersApplied": filters},
        )
        await self.adapter.run_intent(intent, {"source": "explicit", **payload})

    async def inline_action(self, action: InlineAction) -> None:
        self.adapter.ensure_open()
        self.hide_intro()
        if action == "track":
            self.analytics.track("inline_track_order")
            await self.adapter.run_intent(ConciergeIntent.TRACK_ORDER, {"source": "inline"})
            return
        self.analytics.track("inline_stylist")
        await self.adapter.run_intent(ConciergeIntent.STYLIST_CONTACT, {"source": "inline"})

    async def handle_module_action(
        self,
        action: BaseModel | Dict[str, Any],
        origin_intent: ConciergeIntent | str | None = None,
    ) -> bool:
        return await self.router.handle_module_action(action, origin_intent)

    async def set_filters(self, filters: Dict[str, Any]) -> None:
        """Host command: run a product search with filters chosen outside the widget."""

        self.adapter.ensure_open()
        self.hide_intro()
        await self.adapter.run_intent(ConciergeIntent.FIND_PRODUCT, {"source": "host", "filters": dict(filters)})

    async def add_to_shortlist(self, product: ProductSummary | Dict[str, Any]) -> bool:
        """Host command: open the widget and save ``product`` to the shortlist."""

        if not isinstance(product, ProductSummary):
            product = ProductSummary.model_validate(product)
        self.adapter.ensure_open()
        return await self.shortlist.add(product, self.store.session.last_intent)
