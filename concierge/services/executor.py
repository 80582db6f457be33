from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Union
from uuid import uuid4

from langsmith import traceable

from ..intents import ConciergeIntent
from ..models import (
    IntentExecutionRequest,
    IntentExecutionResult,
    Message,
    create_message,
)
from ..utils.logging import get_request_logger
from .analytics import Analytics, log_intent_success
from .session_store import WidgetStore

logger = logging.getLogger(__name__)

GENERIC_APOLOGY = "I ran into a snag. Mind trying that again?"

IntentExecutor = Callable[
    [IntentExecutionRequest],
    Awaitable[Union[IntentExecutionResult, Dict[str, Any]]],
]


def create_request_id(scope: str) -> str:
    return f"{scope}-{uuid4()}"


def prune_module_messages(messages: Sequence[Message]) -> List[Message]:
    """Keep only the newest message of each module type; text is never dropped."""

    kept_types: set[str] = set()
    pruned_reversed: List[Message] = []
    for message in reversed(messages):
        module_type = message.module_type
        if module_type is not None:
            if module_type in kept_types:
                continue
            kept_types.add(module_type)
        pruned_reversed.append(message)
    pruned_reversed.reverse()
    return pruned_reversed


class IntentExecutorAdapter:
    """Runs an intent through the external executor and applies the outcome to the store."""

    def __init__(
        self,
        store: WidgetStore,
        execute_intent: IntentExecutor,
        analytics: Analytics,
    ) -> None:
        self._store = store
        self._execute_intent = execute_intent
        self._analytics = analytics

    def ensure_open(self) -> None:
        if not self._store.get_state().is_open:
            self._store.open()

    @traceable(run_type="chain", name="concierge_run_intent")
    async def run_intent(
        self,
        intent: ConciergeIntent | str,
        extra: Dict[str, Any] | None = None,
    ) -> None:
        intent = ConciergeIntent(intent)
        self.ensure_open()
        session = self._store.session
        order_number = session.last_order.reference if session.last_order else None
        request_id = create_request_id(intent.value)
        payload = {**(extra or {}), "requestId": request_id}
        context = {"sessionId": session.id, "requestId": request_id, "orderNumber": order_number}
        req_logger = get_request_logger(
            logger,
            request_id=request_id,
            session_id=session.id,
            intent=intent.value,
        )

        self._analytics.track(
            "intent_detected",
            {
                "intent": intent.value,
                "source": (extra or {}).get("source"),
                "reason": (extra or {}).get("reason"),
                **context,
            },
        )
        self._store.set_processing(True)
        try:
            raw = await self._execute_intent(
                IntentExecutionRequest(intent=intent, payload=payload, state=self._store.get_state())
            )
            result = (
                raw
                if isinstance(raw, IntentExecutionResult)
                else IntentExecutionResult.model_validate(raw)
            )
            self._store.append_messages(result.messages)
            if result.session_patch:
                self._store.update_session(result.session_patch)
            self._schedule_prune()
            if result.error:
                req_logger.warning("Intent executor reported error=%s", result.error)
                self._analytics.track(
                    "intent_error",
                    {"intent": intent.value, "error": result.error, **context},
                )
            else:
                req_logger.info("Intent executed messages=%d", len(result.messages))
                log_intent_success(self._analytics, intent, result, context, extra)
        except Exception as exc:
            req_logger.exception("Intent execution failed")
            self._store.append_messages([create_message("concierge", GENERIC_APOLOGY)])
            self._analytics.track(
                "intent_error",
                {"intent": intent.value, "error": str(exc) or exc.__class__.__name__, **context},
            )
        finally:
            self._store.set_processing(False)

    def prune_modules(self) -> None:
        state = self._store.get_state()
        pruned = prune_module_messages(state.messages)
        if len(pruned) == len(state.messages):
            return
        self._store.replace_messages(pruned)
        self._analytics.track(
            "intent_modules_pruned",
            {"sessionId": state.session.id, "before": len(state.messages), "after": len(pruned)},
        )

    def _schedule_prune(self) -> None:
        try:
            asyncio.get_running_loop().call_soon(self.prune_modules)
        except RuntimeError:
            self.prune_modules()
