from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from concierge.main import create_app
from concierge.services.shortlist_registry import get_shortlist_registry


@pytest.fixture(scope="module")
def client() -> TestClient:
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def clean_registry():
    get_shortlist_registry().clear()
    yield
    get_shortlist_registry().clear()


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_shortlist_sync_replaces_the_stored_list(client: TestClient) -> None:
    first = client.post(
        "/api/support/shortlist",
        json={"sessionId": "session-1", "items": [{"id": "p1", "title": "Solstice Ring"}, {"id": "p2", "title": "Halo"}]},
        headers={"x-request-id": "shortlist-1"},
    )
    second = client.post(
        "/api/support/shortlist",
        json={"sessionId": "session-1", "items": [{"id": "p2", "title": "Halo"}]},
    )

    assert first.status_code == 200, first.text
    assert first.json() == {"sessionId": "session-1", "count": 2}
    assert second.json() == {"sessionId": "session-1", "count": 1}
    assert [item.id for item in get_shortlist_registry().get_shortlist("session-1")] == ["p2"]


def test_shortlist_sync_rejects_blank_session(client: TestClient) -> None:
    response = client.post("/api/support/shortlist", json={"sessionId": "  ", "items": []})

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == {"code": "BAD_REQUEST", "reason": "missing_session_id"}
    assert payload["traceId"]


def test_shortlist_sync_validation_error_shape(client: TestClient) -> None:
    response = client.post("/api/support/shortlist", json={"items": "nope"})

    assert response.status_code == 422
    assert response.json()["error"]["reason"] == "request_validation_error"


def test_order_updates_subscribes_and_confirms(client: TestClient) -> None:
    response = client.post(
        "/api/support/order-updates",
        json={"sessionId": "session-1", "originIntent": "track_order", "orderNumber": "GG-4821"},
    )

    assert response.status_code == 200, response.text
    assert "GG-4821" in response.json()["message"]
    subscription = get_shortlist_registry().get_order_subscription("session-1")
    assert subscription.order_number == "GG-4821"


def test_order_updates_without_order_returns_empty_body(client: TestClient) -> None:
    response = client.post("/api/support/order-updates", json={"sessionId": "session-1"})

    assert response.status_code == 200
    assert response.json() == {}


def test_order_updates_requires_session(client: TestClient) -> None:
    response = client.post("/api/support/order-updates", json={"orderNumber": "GG-4821"})

    assert response.status_code == 400
