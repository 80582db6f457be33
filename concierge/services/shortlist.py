"""
Shortlist operations.

Every mutation is optimistic: the session is updated first, then the full
list is POSTed to the support backend. A failed sync leaves the local list in
place, flags the session as unsynced, and tells the guest.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from urllib.parse import quote

from ..config import Settings
from ..intents import ConciergeIntent
from ..models import Message, ModulePayload, ProductSummary, create_message
from ..utils.logging import get_request_logger
from .analytics import Analytics
from .errors import SupportApiError
from .executor import IntentExecutorAdapter, create_request_id
from .host import HostBridge
from .session_store import WidgetStore
from .support_client import SupportApiClient

logger = logging.getLogger(__name__)

CartAddItem = Callable[[str, int], Awaitable[bool]]

SHORTLIST_PANEL_ID = "shortlist-panel"
SHORTLIST_TITLE = "My shortlist"
SHORTLIST_CTA = "Invite stylist to review"
CLEAR_CONFIRM_PROMPT = "Remove all saved pieces?"


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def merge_shortlist(shortlist: Sequence[ProductSummary], product: ProductSummary) -> List[ProductSummary]:
    """Append ``product`` unless an item with the same id is already saved."""

    if any(item.id == product.id for item in shortlist):
        return list(shortlist)
    return [*shortlist, product]


def shortlist_panel(items: Sequence[ProductSummary]) -> ModulePayload:
    return ModulePayload(
        type="shortlist-panel",
        id=SHORTLIST_PANEL_ID,
        title=SHORTLIST_TITLE,
        items=[item.model_dump(mode="json", by_alias=True) for item in items],
        ctaLabel=SHORTLIST_CTA,
    )


def format_price(price: float | None) -> str:
    if price is None:
        return ""
    if float(price).is_integer():
        return f"${int(price):,}"
    return f"${price:,.2f}"


def build_share_text(shortlist: Sequence[ProductSummary]) -> str:
    lines = [f"{item.title} - {format_price(item.price)}" for item in shortlist]
    body = "\n".join(lines) or "No items saved yet."
    return f"Here are my saved pieces:\n\n{body}\n\nSent from Aurora Concierge"


class ShortlistService:
    """Add/remove/clear/share/checkout for the guest's saved pieces."""

    def __init__(
        self,
        store: WidgetStore,
        adapter: IntentExecutorAdapter,
        support_client: SupportApiClient,
        analytics: Analytics,
        host: HostBridge,
        settings: Settings,
        cart_add_item: CartAddItem | None = None,
    ) -> None:
        self._store = store
        self._adapter = adapter
        self._support_client = support_client
        self._analytics = analytics
        self._host = host
        self._settings = settings
        self._cart_add_item = cart_add_item

    @property
    def items(self) -> List[ProductSummary]:
        return list(self._store.session.shortlist)

    async def add(self, product: ProductSummary, origin_intent: ConciergeIntent | None = None) -> bool:
        """Save ``product``; returns True when the backend sync succeeded."""

        session = self._store.session
        request_id = create_request_id("shortlist")
        updated = merge_shortlist(session.shortlist, product)
        self._update_shortlist(updated, origin_intent)

        synced = await self._sync(updated, request_id)
        if synced:
            self._store.append_messages(
                [
                    create_message("concierge", f"Saved {product.title} to your shortlist."),
                    create_message("concierge", f"You now have {len(updated)} item{_plural(len(updated))} saved."),
                    create_message("concierge", shortlist_panel(updated), origin_intent),
                ]
            )
            self._analytics.track(
                "product_shortlisted",
                {
                    "productId": product.id,
                    "sessionId": session.id,
                    "requestId": request_id,
                    "shortlistCount": len(updated),
                    "orderNumber": self._order_number(),
                },
            )
        else:
            self._store.append_messages(
                [
                    create_message(
                        "concierge",
                        "I could not save that shortlist item just now. Mind trying again in a moment?",
                    )
                ]
            )
            self._analytics.track(
                "product_shortlist_error",
                {"productId": product.id, "sessionId": session.id, "requestId": request_id},
            )
        return synced

    async def remove(self, product_id: str, origin_intent: ConciergeIntent | None = None) -> bool:
        session = self._store.session
        request_id = create_request_id("shortlist")
        remaining = [item for item in session.shortlist if item.id != product_id]
        self._update_shortlist(remaining, origin_intent)

        synced = await self._sync(remaining, request_id)
        if synced:
            messages: List[Message] = []
            if remaining:
                messages.append(
                    create_message(
                        "concierge",
                        f"Removed that item. You now have {len(remaining)} item{_plural(len(remaining))} saved.",
                    )
                )
                messages.append(create_message("concierge", shortlist_panel(remaining), origin_intent))
            else:
                messages.append(create_message("concierge", "Removed that item. Your shortlist is now empty."))
            self._store.append_messages(messages)
            self._analytics.track(
                "product_shortlisted",
                {
                    "productId": product_id,
                    "sessionId": session.id,
                    "requestId": request_id,
                    "shortlistCount": len(remaining),
                    "removed": True,
                    "orderNumber": self._order_number(),
                },
            )
        else:
            self._store.append_messages(
                [
                    create_message(
                        "concierge",
                        "I could not update your shortlist just now. Mind trying again in a moment?",
                    )
                ]
            )
            self._analytics.track(
                "product_shortlist_error",
                {"productId": product_id, "sessionId": session.id, "requestId": request_id},
            )
        return synced

    async def clear(self, origin_intent: ConciergeIntent | None = None) -> bool:
        """Empty the shortlist after the host confirms; returns False when cancelled or unsynced."""

        session = self._store.session
        request_id = create_request_id("shortlist")
        if not self._host.confirm(CLEAR_CONFIRM_PROMPT):
            self._analytics.track(
                "shortlist_clear_cancel",
                {"sessionId": session.id, "requestId": request_id, "shortlistCount": len(session.shortlist)},
            )
            return False

        self._update_shortlist([], origin_intent)
        synced = await self._sync([], request_id)
        if synced:
            self._store.append_messages(
                [
                    create_message("concierge", "Cleared your shortlist. Save any new pieces you like."),
                    create_message("concierge", shortlist_panel([]), origin_intent),
                ]
            )
            self._analytics.track(
                "product_shortlisted",
                {
                    "sessionId": session.id,
                    "requestId": request_id,
                    "shortlistCount": 0,
                    "cleared": True,
                    "orderNumber": self._order_number(),
                },
            )
        else:
            self._store.append_messages(
                [
                    create_message(
                        "concierge",
                        "I could not clear your shortlist right now. Mind trying again in a moment?",
                    )
                ]
            )
            self._analytics.track("product_shortlist_error", {"sessionId": session.id, "requestId": request_id})
        return synced

    async def share(self) -> str:
        """
        Share the shortlist using the best channel the host offers.

        Preference order: native share sheet, clipboard, mailto link, then a
        plain-text message. Returns the method used, or ``"error"``.
        """

        shortlist = self.items
        session_id = self._store.session.id
        request_id = create_request_id("shortlist-share")
        share_text = build_share_text(shortlist)
        title = self._settings.share_title
        try:
            if self._host.can_share and shortlist:
                await self._host.share(title=title, text=share_text, url=self._host.href)
                method = "native-share"
                reply = "Shared your shortlist. A stylist will have the same view."
            elif self._host.can_write_clipboard:
                await self._host.write_clipboard(share_text)
                method = "clipboard"
                reply = "Copied your shortlist. Paste it anywhere to share with the studio."
            elif self._host.can_navigate:
                self._host.navigate(f"mailto:?subject={quote(title)}&body={quote(share_text)}")
                method = "mailto"
                reply = "Opened your email app with the shortlist attached."
            else:
                method = "fallback"
                reply = (
                    "Here is your shortlist to copy:\n"
                    f"{share_text}\n\nTip: paste this into chat or email so a stylist can jump in."
                )
        except Exception:
            logger.warning("Shortlist share failed session_id=%s", session_id, exc_info=True)
            self._store.append_messages(
                [create_message("concierge", "I could not share that just now. Mind trying again in a moment?")]
            )
            self._analytics.track(
                "shortlist_share_error",
                {"sessionId": session_id, "shortlistCount": len(shortlist), "requestId": request_id},
            )
            return "error"

        self._store.append_messages([create_message("concierge", reply)])
        self._analytics.track(
            "shortlist_share",
            {"sessionId": session_id, "shortlistCount": len(shortlist), "requestId": request_id, "method": method},
        )
        return method

    def shortlist_link(self) -> Optional[str]:
        origin = self._host.origin or self._settings.site_origin
        if not origin:
            return None
        ids = ",".join(item.id for item in self.items)
        return f"{origin.rstrip('/')}/collections?shortlist={quote(ids, safe='')}"

    async def copy_link(self) -> str:
        shortlist = self.items
        session_id = self._store.session.id
        request_id = create_request_id("shortlist-copy")
        url = self.shortlist_link()
        try:
            if self._host.can_write_clipboard and url:
                await self._host.write_clipboard(url)
                method = "link-copy"
                reply = "Copied a link to reopen your saved pieces. Share it with your crew or stylist."
            else:
                method = "link-fallback"
                reply = (
                    f"Here's your shortlist link:\n{url}\n\nCopy and share to reopen these picks on any device."
                    if url
                    else "Shortlist link unavailable right now. Mind trying again in a moment?"
                )
        except Exception:
            logger.warning("Shortlist link copy failed session_id=%s", session_id, exc_info=True)
            self._store.append_messages(
                [create_message("concierge", "I could not copy that link. Mind trying again in a moment?")]
            )
            self._analytics.track(
                "shortlist_share_error",
                {"sessionId": session_id, "shortlistCount": len(shortlist), "requestId": request_id},
            )
            return "error"

        self._store.append_messages([create_message("concierge", reply)])
        self._analytics.track(
            "shortlist_share",
            {"sessionId": session_id, "shortlistCount": len(shortlist), "requestId": request_id, "method": method},
        )
        return method

    def view_links(self, product_id: str | None, title: str | None) -> None:
        base_url = (self._host.origin or self._settings.site_origin or "").rstrip("/")
        label = title or "this piece"
        pdp_url = f"{base_url}/products/{product_id}" if product_id else f"{base_url}/collections"
        collection_url = f"{base_url}/collections?highlight={quote(product_id or 'shortlist', safe='')}"
        self._store.append_messages(
            [
                create_message(
                    "concierge",
                    f"Reopen {label}:\n- PDP: {pdp_url}\n- Collection: {collection_url}\n\n"
                    "Tip: Save or share these links to revisit your shortlist.",
                )
            ]
        )
        self._analytics.track(
            "shortlist_view_links",
            {"productId": product_id, "sessionId": self._store.session.id},
        )

    async def escalate(self) -> None:
        shortlist = self.items
        self._analytics.track(
            "shortlist_escalate",
            {
                "sessionId": self._store.session.id,
                "shortlistCount": len(shortlist),
                "orderNumber": self._order_number(),
            },
        )
        await self._adapter.run_intent(
            ConciergeIntent.STYLIST_CONTACT,
            {"source": "shortlist", "shortlist": [item.model_dump(mode="json", by_alias=True) for item in shortlist]},
        )

    async def add_to_cart(self, product: ProductSummary) -> bool:
        if not product.slug or self._cart_add_item is None:
            return False
        self._store.set_processing(True)
        try:
            added = await self._cart_add_item(product.slug, 1)
        except Exception:
            logger.warning("Cart add failed slug=%s", product.slug, exc_info=True)
            added = False
        finally:
            self._store.set_processing(False)

        if added:
            self._store.append_messages([create_message("concierge", f"Added {product.title or 'item'} to your cart.")])
            self._analytics.track(
                "shortlist_add_to_cart",
                {"productId": product.id, "slug": product.slug, "sessionId": self._store.session.id},
            )
        else:
            self._store.append_messages(
                [create_message("concierge", f"Could not add {product.title} to cart right now.")]
            )
        return added

    async def checkout(self) -> int:
        """
        Add every shortlisted item with a slug to the cart, one at a time, then
        open the cart page. Returns the number of items added.
        """

        shortlist = self.items
        session_id = self._store.session.id
        self._analytics.track("shortlist_checkout_click", {"sessionId": session_id, "shortlistCount": len(shortlist)})

        success_count = 0
        if self._cart_add_item is not None and shortlist:
            self._store.set_processing(True)
            self._store.append_messages([create_message("concierge", "Adding your saved items to the cart...")])
            fail_count = 0
            missing_slug_count = 0
            try:
                for item in shortlist:
                    if not item.slug:
                        missing_slug_count += 1
                        continue
                    try:
                        added = await self._cart_add_item(item.slug, 1)
                    except Exception:
                        logger.warning("Cart add failed during checkout slug=%s", item.slug, exc_info=True)
                        added = False
                    if added:
                        success_count += 1
                    else:
                        fail_count += 1
            finally:
                self._store.set_processing(False)

            if success_count > 0:
                reply = f"Added {success_count} item{_plural(success_count)} to your cart. Heading to checkout."
            else:
                reply = "Could not add items to cart. Taking you to cart anyway."
            self._store.append_messages([create_message("concierge", reply)])
            if missing_slug_count:
                logger.warning("Shortlist contains %d items without slugs session_id=%s", missing_slug_count, session_id)
            self._analytics.track(
                "shortlist_checkout_result",
                {
                    "sessionId": session_id,
                    "added": success_count,
                    "failed": fail_count,
                    "missingSlug": missing_slug_count,
                },
            )

        self._host.open_url("/cart", new_tab=True)
        return success_count

    async def _sync(self, items: Sequence[ProductSummary], request_id: str) -> bool:
        session_id = self._store.session.id
        req_logger = get_request_logger(logger, request_id=request_id, session_id=session_id)
        self._store.set_processing(True)
        try:
            await self._support_client.sync_shortlist(session_id, items, request_id=request_id)
        except SupportApiError as exc:
            req_logger.error("Shortlist sync failed reason=%s", exc.reason)
            self._store.update_session(shortlist_synced=False)
            return False
        finally:
            self._store.set_processing(False)
        self._store.update_session(shortlist_synced=True)
        return True

    def _update_shortlist(self, items: List[ProductSummary], origin_intent: ConciergeIntent | None) -> None:
        patch: Dict[str, Any] = {"shortlist": items}
        if origin_intent is not None:
            patch["last_intent"] = origin_intent
        self._store.update_session(patch)

    def _order_number(self) -> Optional[str]:
        last_order = self._store.session.last_order
        return last_order.order_number if last_order else None


def product_from_data(data: Dict[str, Any] | None) -> ProductSummary | None:
    """Read a ``product`` entry from module action data, tolerating junk."""

    raw = (data or {}).get("product")
    if isinstance(raw, ProductSummary):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        return ProductSummary.model_validate(raw)
    except ValueError:
        return None
