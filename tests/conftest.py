"""Shared pytest fixtures for all tests."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from concierge.config import Settings
from concierge.intents import ConciergeIntent
from concierge.models import (
    IntentExecutionRequest,
    IntentExecutionResult,
    OrderUpdatesRequest,
    OrderUpdatesResponse,
    ProductSummary,
    create_message,
)
from concierge.services.analytics import Analytics
from concierge.services.errors import SupportApiError
from concierge.services.host import HostBridge
from concierge.services.intent_rules import IntentClassifier
from concierge.services.storage import InMemoryStorage
from concierge.services.widget import ConciergeWidget


class RecordingSink:
    """Analytics sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: List[tuple[str, Dict[str, Any]]] = []

    def __call__(self, event: str, properties: Dict[str, Any]) -> None:
        self.events.append((event, properties))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def last(self, event: str) -> Dict[str, Any]:
        for name, properties in reversed(self.events):
            if name == event:
                return properties
        raise AssertionError(f"event {event} was not tracked; got {self.names()}")


class StubExecutor:
    """Intent executor stub returning one text message per call unless told otherwise."""

    def __init__(self, result: Optional[Callable[[IntentExecutionRequest], Any]] = None) -> None:
        self.calls: List[IntentExecutionRequest] = []
        self._result = result

    async def __call__(self, request: IntentExecutionRequest) -> Any:
        self.calls.append(request)
        if self._result is not None:
            return self._result(request)
        return IntentExecutionResult(
            messages=[create_message("concierge", f"handled {request.intent.value}", request.intent)],
            session_patch={"lastIntent": request.intent.value},
        )

    @property
    def intents(self) -> List[ConciergeIntent]:
        return [call.intent for call in self.calls]


class StubSupportClient:
    def __init__(self) -> None:
        self.sync_calls: List[Dict[str, Any]] = []
        self.order_update_calls: List[OrderUpdatesRequest] = []
        self.fail_sync = False
        self.fail_order_updates = False
        self.order_updates_response: Optional[OrderUpdatesResponse] = OrderUpdatesResponse()

    async def sync_shortlist(self, session_id, items, *, request_id):
        self.sync_calls.append({"session_id": session_id, "items": list(items), "request_id": request_id})
        if self.fail_sync:
            raise SupportApiError("boom", reason="shortlist_sync_failed", http_status=503)
        return None

    async def subscribe_order_updates(self, request, *, request_id):
        self.order_update_calls.append(request)
        if self.fail_order_updates:
            raise SupportApiError("boom", reason="support_api_unreachable")
        return self.order_updates_response


class StubHost(HostBridge):
    """Host with a scriptable confirm dialog and optional clipboard."""

    def __init__(self, *, confirm_result: bool = True, clipboard: bool = False) -> None:
        super().__init__(origin="https://shop.test", href="https://shop.test/collections")
        self.confirm_result = confirm_result
        self.can_write_clipboard = clipboard
        self.prompts: List[str] = []
        self.clipboard: List[str] = []
        self.opened_urls: List[str] = []

    def open_url(self, url: str, *, new_tab: bool = True) -> None:
        self.opened_urls.append(url)
        super().open_url(url, new_tab=new_tab)

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.confirm_result

    async def write_clipboard(self, text: str) -> None:
        self.clipboard.append(text)


class StubCart:
    def __init__(self, failing_slugs: tuple[str, ...] = ()) -> None:
        self.added: List[str] = []
        self.failing_slugs = set(failing_slugs)

    async def __call__(self, slug: str, quantity: int) -> bool:
        if slug in self.failing_slugs:
            return False
        self.added.append(slug)
        return True


@pytest.fixture
def settings() -> Settings:
    """Default settings for tests."""
    return Settings(support_api_base_url="http://support.test", site_origin="https://www.glowglitch.com")


@pytest.fixture(scope="session")
def classifier() -> IntentClassifier:
    return IntentClassifier()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def analytics(sink: RecordingSink) -> Analytics:
    return Analytics(sink=sink)


@pytest.fixture
def executor() -> StubExecutor:
    return StubExecutor()


@pytest.fixture
def support_client() -> StubSupportClient:
    return StubSupportClient()


@pytest.fixture
def host() -> StubHost:
    return StubHost()


@pytest.fixture
def cart() -> StubCart:
    return StubCart()


@pytest.fixture
def session_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def local_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def widget(
    settings: Settings,
    executor: StubExecutor,
    analytics: Analytics,
    host: StubHost,
    support_client: StubSupportClient,
    cart: StubCart,
    classifier: IntentClassifier,
    session_storage: InMemoryStorage,
    local_storage: InMemoryStorage,
) -> ConciergeWidget:
    return ConciergeWidget(
        executor,
        settings=settings,
        session_storage=session_storage,
        local_storage=local_storage,
        analytics=analytics,
        host=host,
        support_client=support_client,
        cart_add_item=cart,
        classifier=classifier,
    )


@pytest.fixture
def ring() -> ProductSummary:
    return ProductSummary(id="p1", title="Solstice Ring", slug="solstice-ring", price=1250)


@pytest.fixture
def necklace() -> ProductSummary:
    return ProductSummary(id="p2", title="Halo Pendant", slug="halo-pendant", price=480)


@pytest.fixture
def make_executor() -> Callable[..., StubExecutor]:
    """Build an executor stub with a custom result function."""
    return StubExecutor
