from __future__ import annotations

import asyncio

import pytest

from concierge.intents import ConciergeIntent
from concierge.models import ModulePayload, create_message
from concierge.services.executor import GENERIC_APOLOGY, IntentExecutorAdapter, prune_module_messages
from concierge.services.session_store import WidgetStore


def _module(module_type: str, module_id: str):
    return create_message("concierge", ModulePayload(type=module_type, id=module_id))


def _adapter(settings, executor, analytics) -> tuple[WidgetStore, IntentExecutorAdapter]:
    store = WidgetStore(settings=settings)
    return store, IntentExecutorAdapter(store, executor, analytics)


def test_prune_keeps_newest_module_per_type_and_all_text():
    messages = [
        create_message("guest", "first"),
        _module("product-carousel", "c1"),
        _module("order-timeline", "t1"),
        create_message("concierge", "middle"),
        _module("product-carousel", "c2"),
    ]

    pruned = prune_module_messages(messages)

    assert [m.text or m.payload.id for m in pruned] == ["first", "t1", "middle", "c2"]


def test_prune_groups_modules_without_type_together():
    weird = create_message("concierge", ModulePayload(type="", id="x1"))
    weirder = create_message("concierge", ModulePayload(type="", id="x2"))

    pruned = prune_module_messages([weird, weirder])

    assert [m.payload.id for m in pruned] == ["x2"]


@pytest.mark.asyncio
async def test_run_intent_appends_result_and_toggles_processing(settings, executor, analytics, sink):
    store, adapter = _adapter(settings, executor, analytics)
    processing = []
    store.subscribe(lambda state: processing.append(state.is_processing))

    await adapter.run_intent(ConciergeIntent.FINANCING, {"source": "explicit"})

    assert store.get_state().is_open is True
    assert [m.text for m in store.get_state().messages] == ["handled financing"]
    assert store.session.last_intent == ConciergeIntent.FINANCING
    assert True in processing and processing[-1] is False
    assert executor.calls[0].payload["requestId"].startswith("financing-")
    assert sink.names()[0] == "intent_detected"
    assert sink.last("intent_complete")["messageCount"] == 1


@pytest.mark.asyncio
async def test_run_intent_accepts_plain_dict_results(settings, analytics, make_executor):
    executor = make_executor(
        lambda request: {
            "messages": [{"role": "concierge", "type": "text", "payload": "dict reply"}],
            "sessionPatch": {"hasShownCsat": True},
        }
    )
    store, adapter = _adapter(settings, executor, analytics)

    await adapter.run_intent("csat")

    assert store.get_state().messages[-1].text == "dict reply"
    assert store.session.has_shown_csat is True


@pytest.mark.asyncio
async def test_executor_exception_becomes_apology(settings, analytics, sink, make_executor):
    def explode(request):
        raise RuntimeError("executor down")

    store, adapter = _adapter(settings, make_executor(explode), analytics)

    await adapter.run_intent(ConciergeIntent.TRACK_ORDER)

    assert [m.text for m in store.get_state().messages] == [GENERIC_APOLOGY]
    assert store.get_state().is_processing is False
    assert sink.last("intent_error")["error"] == "executor down"


@pytest.mark.asyncio
async def test_result_error_is_reported(settings, analytics, sink, make_executor):
    executor = make_executor(lambda request: {"messages": [], "error": "no_inventory"})
    store, adapter = _adapter(settings, executor, analytics)

    await adapter.run_intent(ConciergeIntent.FIND_PRODUCT)

    assert sink.last("intent_error")["error"] == "no_inventory"
    assert "intent_complete" not in sink.names()
    assert store.get_state().is_processing is False


@pytest.mark.asyncio
async def test_pruning_runs_after_the_current_step(settings, analytics, sink, make_executor):
    executor = make_executor(
        lambda request: {
            "messages": [create_message("concierge", ModulePayload(type="product-carousel", id=request.payload["tag"]))]
        }
    )
    store, adapter = _adapter(settings, executor, analytics)

    await adapter.run_intent(ConciergeIntent.FIND_PRODUCT, {"tag": "first"})
    await adapter.run_intent(ConciergeIntent.FIND_PRODUCT, {"tag": "second"})
    await asyncio.sleep(0)

    messages = store.get_state().messages
    assert [m.payload.id for m in messages] == ["second"]
    assert sink.last("intent_modules_pruned") == {
        "sessionId": store.session.id,
        "before": 2,
        "after": 1,
    }
