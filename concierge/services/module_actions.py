from __future__ import annotations

import logging
from typing import Annotated, Any, Awaitable, Callable, Dict, Literal, Optional, Union, get_args
from urllib.parse import quote

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..intents import ConciergeIntent, parse_intent
from ..models import OrderUpdatesRequest, create_message
from .analytics import Analytics
from .disambiguation import DisambiguationController
from .errors import SupportApiError
from .executor import IntentExecutorAdapter, create_request_id
from .host import HostBridge
from .session_store import WidgetStore
from .shortlist import ShortlistService, product_from_data
from .support_client import SupportApiClient

logger = logging.getLogger(__name__)

RETURN_NEEDS_ORDER_COPY = (
    "I need an order number first. Tap Track order so I can file the return with the studio."
)
TEXT_UPDATES_DEFAULT_COPY = "Perfect. I'll text studio milestones to you in real time."
TEXT_UPDATES_ERROR_COPY = "I wasn't able to subscribe you just now. We can still email updates if that helps."


class _ModuleAction(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)


class SubmitProductFilters(_ModuleAction):
    type: Literal["submit-product-filters"]


class SubmitOrderLookup(_ModuleAction):
    type: Literal["submit-order-lookup"]


class SubmitReturnOption(_ModuleAction):
    type: Literal["submit-return-option"]


class SubmitEscalation(_ModuleAction):
    type: Literal["submit-escalation"]


class SubmitCsat(_ModuleAction):
    type: Literal["submit-csat"]


class OfferAction(_ModuleAction):
    type: Literal["offer-action"]


class ViewProduct(_ModuleAction):
    type: Literal["view-product"]


class ApplyFilters(_ModuleAction):
    type: Literal["apply-filters"]


class FilterChange(_ModuleAction):
    type: Literal["filter_change"]


class TextUpdates(_ModuleAction):
    type: Literal["text-updates"]


class IntentChooserSelect(_ModuleAction):
    type: Literal["intent-chooser-select"]


class ShortlistProduct(_ModuleAction):
    type: Literal["shortlist-product"]


class ShortlistRemove(_ModuleAction):
    type: Literal["shortlist-remove"]


class ShortlistClear(_ModuleAction):
    type: Literal["shortlist-clear"]


class ShortlistShare(_ModuleAction):
    type: Literal["shortlist-share"]


class ShortlistCopyLink(_ModuleAction):
    type: Literal["shortlist-copy-link"]


class ShortlistViewLinks(_ModuleAction):
    type: Literal["shortlist-view-links"]


class ShortlistEscalate(_ModuleAction):
    type: Literal["shortlist-escalate"]


class ShortlistAddToCart(_ModuleAction):
    type: Literal["shortlist-add-to-cart"]


class ShortlistCheckout(_ModuleAction):
    type: Literal["shortlist-checkout"]


ModuleAction = Annotated[
    Union[
        SubmitProductFilters,
        SubmitOrderLookup,
        SubmitReturnOption,
        SubmitEscalation,
        SubmitCsat,
        OfferAction,
        ViewProduct,
        ApplyFilters,
        FilterChange,
        TextUpdates,
        IntentChooserSelect,
        ShortlistProduct,
        ShortlistRemove,
        ShortlistClear,
        ShortlistShare,
        ShortlistCopyLink,
        ShortlistViewLinks,
        ShortlistEscalate,
        ShortlistAddToCart,
        ShortlistCheckout,
    ],
    Field(discriminator="type"),
]

_ACTION_ADAPTER: TypeAdapter[ModuleAction] = TypeAdapter(ModuleAction)


def module_action_types() -> set[str]:
    variants = get_args(get_args(ModuleAction)[0])
    return {get_args(variant.model_fields["type"].annotation)[0] for variant in variants}


ActionHandler = Callable[[Any, Optional[ConciergeIntent]], Awaitable[None]]


class ModuleActionRouter:
    """Translates actions raised by UI modules into intent runs or side effects."""

    def __init__(
        self,
        store: WidgetStore,
        adapter: IntentExecutorAdapter,
        disambiguation: DisambiguationController,
        shortlist: ShortlistService,
        support_client: SupportApiClient,
        analytics: Analytics,
        host: HostBridge,
        hide_intro: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._adapter = adapter
        self._disambiguation = disambiguation
        self._shortlist = shortlist
        self._support_client = support_client
        self._analytics = analytics
        self._host = host
        self._hide_intro = hide_intro or (lambda: None)
        self._handlers: Dict[str, ActionHandler] = {
            "submit-product-filters": self._submit_product_filters,
            "submit-order-lookup": self._submit_order_lookup,
            "submit-return-option": self._submit_return_option,
            "submit-escalation": self._submit_escalation,
            "submit-csat": self._submit_csat,
            "offer-action": self._offer_action,
            "view-product": self._view_product,
            "apply-filters": self._apply_filters,
            "filter_change": self._filter_change,
            "text-updates": self._text_updates,
            "intent-chooser-select": self._intent_chooser_select,
            "shortlist-product": self._shortlist_product,
            "shortlist-remove": self._shortlist_remove,
            "shortlist-clear": self._shortlist_clear,
            "shortlist-share": self._shortlist_share,
            "shortlist-copy-link": self._shortlist_copy_link,
            "shortlist-view-links": self._shortlist_view_links,
            "shortlist-escalate": self._shortlist_escalate,
            "shortlist-add-to-cart": self._shortlist_add_to_cart,
            "shortlist-checkout": self._shortlist_checkout,
        }
        missing = module_action_types() - self._handlers.keys()
        extra = self._handlers.keys() - module_action_types()
        if missing or extra:
            raise RuntimeError(
                f"Module action handlers out of sync missing={sorted(missing)} extra={sorted(extra)}"
            )

    async def handle_module_action(
        self,
        action: BaseModel | Dict[str, Any],
        origin_intent: ConciergeIntent | str | None = None,
    ) -> bool:
        """
        Dispatch one module action.

        Accepts either a parsed action model or a raw ``{"type", "data"}``
        mapping. Unknown or malformed actions are logged and ignored; the
        return value says whether a handler ran.
        """

        if isinstance(action, BaseModel):
            action = action.model_dump()
        action_type = action.get("type") if isinstance(action, dict) else None
        if action_type not in self._handlers:
            logger.warning("Ignoring unknown module action type=%s", action_type)
            return False
        try:
            parsed = _ACTION_ADAPTER.validate_python({"type": action_type, "data": action.get("data") or {}})
        except ValidationError as exc:
            logger.warning("Ignoring malformed module action type=%s errors=%s", action_type, exc.errors())
            return False

        self._adapter.ensure_open()
        handler = self._handlers[parsed.type]
        logger.debug("Module action type=%s origin_intent=%s", parsed.type, origin_intent)
        await handler(parsed, parse_intent(origin_intent))
        return True

    async def _submit_product_filters(self, action: SubmitProductFilters, origin_intent) -> None:
        self._hide_intro()
        await self._adapter.run_intent(ConciergeIntent.FIND_PRODUCT, {"action": action.type, **action.data})

    async def _submit_order_lookup(self, action: SubmitOrderLookup, origin_intent) -> None:
        self._hide_intro()
        await self._adapter.run_intent(ConciergeIntent.TRACK_ORDER, {"action": action.type, **action.data})

    async def _submit_return_option(self, action: SubmitReturnOption, origin_intent) -> None:
        self._hide_intro()
        session = self._store.session
        if not session.has_known_order():
            self._store.append_messages([create_message("concierge", RETURN_NEEDS_ORDER_COPY)])
            self._analytics.track(
                "return_option_blocked",
                {"sessionId": session.id, "reason": "missing_order"},
            )
            return
        last_order = session.last_order
        await self._adapter.run_intent(
            ConciergeIntent.RETURN_EXCHANGE,
            {
                "action": action.type,
                **action.data,
                "orderId": last_order.order_id or last_order.order_number,
                "orderNumber": last_order.order_number or last_order.order_id,
            },
        )

    async def _submit_escalation(self, action: SubmitEscalation, origin_intent) -> None:
        await self._adapter.run_intent(ConciergeIntent.STYLIST_CONTACT, {"action": action.type, **action.data})

    async def _submit_csat(self, action: SubmitCsat, origin_intent) -> None:
        await self._adapter.run_intent(ConciergeIntent.CSAT, {"action": action.type, **action.data})

    async def _offer_action(self, action: OfferAction, origin_intent) -> None:
        logger.debug("offer-action has no widget side effect data_keys=%s", sorted(action.data))

    async def _view_product(self, action: ViewProduct, origin_intent) -> None:
        product = action.data.get("product")
        product = product if isinstance(product, dict) else {}
        self._analytics.track("product_view", {"productId": product.get("id")})
        if not product:
            return
        slug = product.get("slug")
        if slug:
            url = f"/products/{slug}"
        else:
            search = str(product.get("title") or product.get("id") or "")
            url = f"/collections?search={quote(search, safe='')}"
        self._host.open_url(url, new_tab=True)

    async def _apply_filters(self, action: ApplyFilters, origin_intent) -> None:
        self._hide_intro()
        slug = action.data.get("slug")
        filters = action.data.get("filters")
        self._analytics.track(
            "concierge_empty_state_cta_clicked",
            {"suggestion": slug or "unknown", "filtersApplied": filters},
        )
        await self._adapter.run_intent(
            ConciergeIntent.FIND_PRODUCT,
            {"source": "quickstart", "slug": slug, "filters": filters},
        )

    async def _filter_change(self, action: FilterChange, origin_intent) -> None:
        self._hide_intro()
        filters = action.data.get("filters")
        payload: Dict[str, Any] = {
            "source": "module",
            "filters": filters if isinstance(filters, dict) else {},
        }
        sort_by = action.data.get("sortBy")
        if isinstance(sort_by, str):
            payload["sortBy"] = sort_by
        await self._adapter.run_intent(ConciergeIntent.FIND_PRODUCT, payload)

    async def _text_updates(self, action: TextUpdates, origin_intent) -> None:
        session = self._store.session
        request_id = create_request_id("order-updates")
        order_number = session.last_order.order_number if session.last_order else None
        try:
            response = await self._support_client.subscribe_order_updates(
                OrderUpdatesRequest.from_session(session, origin_intent),
                request_id=request_id,
            )
        except SupportApiError as exc:
            logger.error("Order updates subscription failed request_id=%s reason=%s", request_id, exc.reason)
            self._store.append_messages([create_message("concierge", TEXT_UPDATES_ERROR_COPY)])
            self._analytics.track(
                "timeline_text_updates_error",
                {"sessionId": session.id, "requestId": request_id, "orderNumber": order_number},
            )
            return

        reply = (response.message if response else None) or TEXT_UPDATES_DEFAULT_COPY
        self._store.append_messages([create_message("concierge", reply)])
        self._analytics.track(
            "timeline_text_updates",
            {
                "success": response is not None,
                "sessionId": session.id,
                "requestId": request_id,
                "orderNumber": order_number,
            },
        )

    async def _intent_chooser_select(self, action: IntentChooserSelect, origin_intent) -> None:
        intent = parse_intent(action.data.get("intent"))
        if intent is None:
            logger.warning("intent-chooser-select without a known intent data=%s", action.data)
            return
        self._hide_intro()
        payload = action.data.get("payload")
        source = action.data.get("source")
        await self._disambiguation.select(
            intent,
            payload if isinstance(payload, dict) else None,
            source=source if isinstance(source, str) else None,
        )

    async def _shortlist_product(self, action: ShortlistProduct, origin_intent) -> None:
        product = product_from_data(action.data)
        if product is None:
            logger.warning("shortlist-product without a usable product")
            return
        await self._shortlist.add(product, origin_intent)

    async def _shortlist_remove(self, action: ShortlistRemove, origin_intent) -> None:
        product_id = action.data.get("productId")
        if not product_id:
            product = action.data.get("product")
            product_id = product.get("id") if isinstance(product, dict) else None
        if not product_id:
            logger.warning("shortlist-remove without a product id")
            return
        await self._shortlist.remove(str(product_id), origin_intent)

    async def _shortlist_clear(self, action: ShortlistClear, origin_intent) -> None:
        await self._shortlist.clear(origin_intent)

    async def _shortlist_share(self, action: ShortlistShare, origin_intent) -> None:
        await self._shortlist.share()

    async def _shortlist_copy_link(self, action: ShortlistCopyLink, origin_intent) -> None:
        await self._shortlist.copy_link()

    async def _shortlist_view_links(self, action: ShortlistViewLinks, origin_intent) -> None:
        product = action.data.get("product")
        product = product if isinstance(product, dict) else {}
        product_id = action.data.get("productId") or product.get("id")
        title = action.data.get("title") or product.get("title")
        self._shortlist.view_links(
            str(product_id) if product_id else None,
            str(title) if title else None,
        )

    async def _shortlist_escalate(self, action: ShortlistEscalate, origin_intent) -> None:
        await self._shortlist.escalate()

    async def _shortlist_add_to_cart(self, action: ShortlistAddToCart, origin_intent) -> None:
        product = product_from_data(action.data)
        if product is None:
            return
        await self._shortlist.add_to_cart(product)

    async def _shortlist_checkout(self, action: ShortlistCheckout, origin_intent) -> None:
        await self._shortlist.checkout()
