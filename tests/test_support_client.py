from __future__ import annotations

import json

import httpx
import pytest

from concierge.intents import ConciergeIntent
from concierge.models import OrderUpdatesRequest, ProductSummary
from concierge.services.errors import SupportApiError
from concierge.services.support_client import SupportApiClient


def _client(settings, handler) -> SupportApiClient:
    return SupportApiClient(settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_sync_shortlist_posts_full_list(settings):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"sessionId": "session-1", "count": 1})

    client = _client(settings, handler)
    response = await client.sync_shortlist(
        "session-1",
        [ProductSummary(id="p1", title="Solstice Ring", price=1250, shipping_promise="Ships in 2 days")],
        request_id="shortlist-abc",
    )

    request = seen[0]
    assert str(request.url) == "http://support.test/api/support/shortlist"
    assert request.headers["x-request-id"] == "shortlist-abc"
    body = json.loads(request.content)
    assert body["sessionId"] == "session-1"
    assert body["items"][0]["shippingPromise"] == "Ships in 2 days"
    assert response.count == 1


@pytest.mark.asyncio
async def test_sync_shortlist_raises_on_server_error(settings):
    client = _client(settings, lambda request: httpx.Response(503, json={"error": "down"}))

    with pytest.raises(SupportApiError) as exc_info:
        await client.sync_shortlist("session-1", [], request_id="shortlist-abc")

    assert exc_info.value.http_status == 503
    assert exc_info.value.reason == "shortlist_sync_failed"


@pytest.mark.asyncio
async def test_sync_shortlist_raises_on_transport_error(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(settings, handler)

    with pytest.raises(SupportApiError) as exc_info:
        await client.sync_shortlist("session-1", [], request_id="shortlist-abc")

    assert exc_info.value.reason == "support_api_unreachable"


@pytest.mark.asyncio
async def test_sync_shortlist_tolerates_empty_body(settings):
    client = _client(settings, lambda request: httpx.Response(204))

    assert await client.sync_shortlist("session-1", [], request_id="shortlist-abc") is None


@pytest.mark.asyncio
async def test_order_updates_returns_server_message(settings):
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"message": "Texting you now."})

    client = _client(settings, handler)
    response = await client.subscribe_order_updates(
        OrderUpdatesRequest(session_id="session-1", origin_intent=ConciergeIntent.TRACK_ORDER, order_number="GG-1"),
        request_id="order-updates-1",
    )

    assert response.message == "Texting you now."
    assert seen[0] == {
        "sessionId": "session-1",
        "originIntent": "track_order",
        "orderId": None,
        "orderNumber": "GG-1",
    }


@pytest.mark.asyncio
async def test_order_updates_non_2xx_returns_none(settings):
    client = _client(settings, lambda request: httpx.Response(500))

    response = await client.subscribe_order_updates(
        OrderUpdatesRequest(session_id="session-1"),
        request_id="order-updates-1",
    )

    assert response is None
