from __future__ import annotations

from threading import Lock
from typing import Dict, List, Optional

from ..models import OrderUpdatesRequest, ProductSummary


class ShortlistRegistry:
    """In-memory backend copy of each session's shortlist and text-update subscriptions."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._shortlists: Dict[str, List[ProductSummary]] = {}
        self._order_updates: Dict[str, OrderUpdatesRequest] = {}

    def replace_shortlist(self, session_id: str, items: List[ProductSummary]) -> int:
        with self._lock:
            self._shortlists[session_id] = list(items)
            return len(items)

    def get_shortlist(self, session_id: str) -> List[ProductSummary]:
        with self._lock:
            return list(self._shortlists.get(session_id, []))

    def subscribe_order_updates(self, request: OrderUpdatesRequest) -> None:
        if not request.session_id:
            return
        with self._lock:
            self._order_updates[request.session_id] = request

    def get_order_subscription(self, session_id: str) -> Optional[OrderUpdatesRequest]:
        with self._lock:
            return self._order_updates.get(session_id)

    def clear(self) -> None:
        with self._lock:
            self._shortlists.clear()
            self._order_updates.clear()


_shortlist_registry = ShortlistRegistry()


def get_shortlist_registry() -> ShortlistRegistry:
    return _shortlist_registry
