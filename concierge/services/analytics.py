from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..intents import ConciergeIntent
from ..models import IntentExecutionResult

logger = logging.getLogger(__name__)

AnalyticsSink = Callable[[str, Dict[str, Any]], Optional[Awaitable[Any]]]


def log_event_sink(event: str, properties: Dict[str, Any]) -> None:
    """Default sink: write analytics events to the application log."""
    logger.info("analytics event=%s properties=%s", event, properties)


class Analytics:
    """Fire-and-forget wrapper around an analytics sink; never raises."""

    def __init__(self, sink: AnalyticsSink | None = None) -> None:
        self._sink = sink or log_event_sink
        self._pending: Set[asyncio.Task[Any]] = set()

    def track(self, event: str, properties: Dict[str, Any] | None = None) -> None:
        props = {key: value for key, value in (properties or {}).items() if value is not None}
        try:
            result = self._sink(event, props)
        except Exception:
            logger.debug("Analytics sink failed for event=%s", event, exc_info=True)
            return
        if inspect.isawaitable(result):
            self._schedule(event, result)

    def _schedule(self, event: str, awaitable: Awaitable[Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop for async analytics event=%s", event)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._pending.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                logger.debug("Async analytics sink failed for event=%s: %s", event, finished.exception())

        task.add_done_callback(_done)


def log_intent_success(
    analytics: Analytics,
    intent: ConciergeIntent,
    result: IntentExecutionResult,
    context: Dict[str, Any],
    extra: Dict[str, Any] | None = None,
) -> None:
    module_types = [message.module_type for message in result.messages if message.module_type]
    analytics.track(
        "intent_complete",
        {
            "intent": intent.value,
            "source": (extra or {}).get("source"),
            "messageCount": len(result.messages),
            "moduleTypes": module_types or None,
            **context,
        },
    )
