from __future__ import annotations

import pytest

from concierge.intents import ConciergeIntent
from concierge.models import ProductSummary
from concierge.services.shortlist import build_share_text, merge_shortlist


def _texts(widget):
    return [m.text for m in widget.state.messages if m.text is not None]


def test_merge_shortlist_is_idempotent_by_id(ring):
    once = merge_shortlist([], ring)
    twice = merge_shortlist(once, ring.model_copy(update={"title": "Renamed"}))

    assert [item.id for item in twice] == ["p1"]
    assert twice[0].title == "Solstice Ring"


def test_share_text_lists_each_item():
    text = build_share_text([ProductSummary(id="p1", title="Solstice Ring", price=1250)])

    assert text == "Here are my saved pieces:\n\nSolstice Ring - $1,250\n\nSent from Aurora Concierge"
    assert "No items saved yet." in build_share_text([])


@pytest.mark.asyncio
async def test_add_twice_keeps_one_item_and_syncs_full_list(widget, ring, support_client, sink):
    await widget.add_to_shortlist(ring)
    await widget.add_to_shortlist(ring)

    assert [item.id for item in widget.store.session.shortlist] == ["p1"]
    assert len(support_client.sync_calls) == 2
    assert [item.id for item in support_client.sync_calls[-1]["items"]] == ["p1"]
    assert support_client.sync_calls[-1]["session_id"] == widget.store.session.id
    assert "Saved Solstice Ring to your shortlist." in _texts(widget)
    assert "You now have 1 item saved." in _texts(widget)
    assert widget.state.messages[-1].module_type == "shortlist-panel"
    assert sink.last("product_shortlisted")["shortlistCount"] == 1
    assert widget.state.is_open is True


@pytest.mark.asyncio
async def test_sync_failure_keeps_optimistic_state_and_flags_unsynced(widget, ring, necklace, support_client, sink):
    support_client.fail_sync = True

    synced = await widget.add_to_shortlist(ring)

    assert synced is False
    assert [item.id for item in widget.store.session.shortlist] == ["p1"]
    assert widget.store.session.shortlist_synced is False
    assert widget.state.is_processing is False
    assert "could not save" in _texts(widget)[-1]
    assert sink.last("product_shortlist_error")["productId"] == "p1"

    support_client.fail_sync = False
    await widget.add_to_shortlist(necklace)

    assert widget.store.session.shortlist_synced is True
    assert [item.id for item in support_client.sync_calls[-1]["items"]] == ["p1", "p2"]


@pytest.mark.asyncio
async def test_remove_last_item_reports_empty_shortlist(widget, ring, sink):
    await widget.add_to_shortlist(ring)

    await widget.shortlist.remove("p1", ConciergeIntent.FIND_PRODUCT)

    assert widget.store.session.shortlist == []
    assert _texts(widget)[-1] == "Removed that item. Your shortlist is now empty."
    assert widget.store.session.last_intent == ConciergeIntent.FIND_PRODUCT
    assert sink.last("product_shortlisted")["removed"] is True


@pytest.mark.asyncio
async def test_clear_declined_changes_nothing(widget, ring, support_client, host, sink):
    await widget.add_to_shortlist(ring)
    calls_before = len(support_client.sync_calls)
    messages_before = len(widget.state.messages)
    host.confirm_result = False

    handled = await widget.handle_module_action({"type": "shortlist-clear"})

    assert handled is True
    assert [item.id for item in widget.store.session.shortlist] == ["p1"]
    assert len(support_client.sync_calls) == calls_before
    assert len(widget.state.messages) == messages_before
    assert host.prompts == ["Remove all saved pieces?"]
    assert "shortlist_clear_cancel" in sink.names()


@pytest.mark.asyncio
async def test_clear_confirmed_empties_and_shows_empty_panel(widget, ring, necklace, support_client):
    await widget.add_to_shortlist(ring)
    await widget.add_to_shortlist(necklace)

    await widget.shortlist.clear()

    assert widget.store.session.shortlist == []
    assert support_client.sync_calls[-1]["items"] == []
    panel = widget.state.messages[-1]
    assert panel.module_type == "shortlist-panel"
    assert panel.payload.items == []


@pytest.mark.asyncio
async def test_share_on_headless_host_falls_back_to_message(widget, ring, sink):
    await widget.add_to_shortlist(ring)

    method = await widget.shortlist.share()

    assert method == "fallback"
    assert "Solstice Ring - $1,250" in _texts(widget)[-1]
    assert sink.last("shortlist_share")["method"] == "fallback"


@pytest.mark.asyncio
async def test_share_prefers_clipboard_when_available(widget, ring, host):
    host.can_write_clipboard = True
    await widget.add_to_shortlist(ring)

    method = await widget.shortlist.share()

    assert method == "clipboard"
    assert host.clipboard == [build_share_text([ring])]


@pytest.mark.asyncio
async def test_share_reports_error_when_host_flag_has_no_hook(widget, ring, host, sink):
    host.can_share = True
    await widget.add_to_shortlist(ring)

    method = await widget.shortlist.share()

    assert method == "error"
    assert _texts(widget)[-1] == "I could not share that just now. Mind trying again in a moment?"
    assert sink.last("shortlist_share_error")["shortlistCount"] == 1


@pytest.mark.asyncio
async def test_copy_link_without_clipboard_prints_the_link(widget, ring, necklace, sink):
    await widget.add_to_shortlist(ring)
    await widget.add_to_shortlist(necklace)

    handled = await widget.handle_module_action({"type": "shortlist-copy-link"})

    assert handled is True
    assert "https://shop.test/collections?shortlist=p1%2Cp2" in _texts(widget)[-1]
    assert sink.last("shortlist_share")["method"] == "link-fallback"


@pytest.mark.asyncio
async def test_view_links_lists_pdp_and_collection(widget):
    await widget.handle_module_action(
        {"type": "shortlist-view-links", "data": {"product": {"id": "p9", "title": "Orbit Hoops"}}}
    )

    text = _texts(widget)[-1]
    assert text.startswith("Reopen Orbit Hoops:")
    assert "https://shop.test/products/p9" in text
    assert "https://shop.test/collections?highlight=p9" in text


@pytest.mark.asyncio
async def test_view_links_reads_top_level_product_fields(widget, sink):
    await widget.handle_module_action(
        {"type": "shortlist-view-links", "data": {"productId": "p9", "title": "Orbit Hoops"}}
    )

    text = _texts(widget)[-1]
    assert text.startswith("Reopen Orbit Hoops:")
    assert "https://shop.test/products/p9" in text
    assert "https://shop.test/collections?highlight=p9" in text
    assert sink.last("shortlist_view_links")["productId"] == "p9"


@pytest.mark.asyncio
async def test_escalate_runs_stylist_contact_with_shortlist(widget, ring, executor):
    await widget.add_to_shortlist(ring)

    await widget.handle_module_action({"type": "shortlist-escalate"})

    assert executor.intents == [ConciergeIntent.STYLIST_CONTACT]
    payload = executor.calls[0].payload
    assert payload["source"] == "shortlist"
    assert [item["id"] for item in payload["shortlist"]] == ["p1"]


@pytest.mark.asyncio
async def test_add_single_item_to_cart(widget, ring, cart, sink):
    await widget.handle_module_action(
        {"type": "shortlist-add-to-cart", "data": {"product": ring.model_dump(by_alias=True)}}
    )

    assert cart.added == ["solstice-ring"]
    assert _texts(widget)[-1] == "Added Solstice Ring to your cart."
    assert sink.last("shortlist_add_to_cart")["slug"] == "solstice-ring"


@pytest.mark.asyncio
async def test_checkout_tolerates_partial_failure_and_opens_cart(widget, cart, host):
    cart.failing_slugs.add("halo-pendant")
    widget.store.update_session(
        shortlist=[
            {"id": "p1", "title": "Solstice Ring", "slug": "solstice-ring", "price": 1250},
            {"id": "p2", "title": "Halo Pendant", "slug": "halo-pendant", "price": 480},
            {"id": "p3", "title": "Sample", "price": 0},
        ]
    )

    handled = await widget.handle_module_action({"type": "shortlist-checkout"})

    assert handled is True
    assert cart.added == ["solstice-ring"]
    assert _texts(widget)[-2:] == [
        "Adding your saved items to the cart...",
        "Added 1 item to your cart. Heading to checkout.",
    ]
    assert host.opened_urls == ["/cart"]
    assert widget.state.is_processing is False


@pytest.mark.asyncio
async def test_checkout_with_nothing_added_still_opens_cart(widget, host):
    widget.store.update_session(shortlist=[{"id": "p3", "title": "Sample"}])

    count = await widget.shortlist.checkout()

    assert count == 0
    assert _texts(widget)[-1] == "Could not add items to cart. Taking you to cart anyway."
    assert host.opened_urls == ["/cart"]
