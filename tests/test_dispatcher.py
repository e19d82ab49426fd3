import asyncio
import json

from conftest import ScriptedBackend, text_round, tool_round

from page_agent.conversation import ConversationStore
from page_agent.dispatcher import StreamingDispatcher
from page_agent.models import (
    DoneEvent,
    ErrorEvent,
    ErrorUnit,
    FinishUnit,
    Message,
    TextDeltaEvent,
    TextDeltaUnit,
    ToolCallEvent,
    ToolDescriptor,
    ToolResult,
    ToolResultEvent,
    ToolResultUnit,
)
from page_agent.registry import ToolRegistry


def _registry() -> ToolRegistry:
    async def click(args):
        return {"success": True, "message": f"Clicked {args['selector']}"}

    async def broken(args):
        raise RuntimeError("page crashed")

    return ToolRegistry(
        [
            (
                "automation",
                [
                    ToolDescriptor(name="clickElement", description="click", executor=click),
                    ToolDescriptor(name="broken", description="always fails", executor=broken),
                ],
            )
        ]
    )


def _run(backend, store, registry=None):
    dispatcher = StreamingDispatcher(backend, registry or _registry(), store)

    async def collect():
        return [event async for event in dispatcher.run([Message(role="system", content="sys")])]

    return asyncio.run(collect())

# ---------------------------------------------------------------------------
# Text streaming
# ---------------------------------------------------------------------------

def test_text_deltas_are_forwarded_and_accumulated():
    store = ConversationStore()
    events = _run(ScriptedBackend([text_round("Hel", "lo")]), store)

    assert [type(e) for e in events] == [TextDeltaEvent, TextDeltaEvent, DoneEvent]
    assert events[-1].text == "Hello"

    history = store.snapshot()
    assert len(history) == 1
    assert history[0].role == "assistant" and history[0].content == "Hello"
    assert store.in_flight is False

# ---------------------------------------------------------------------------
# Tool calls
# ---------------------------------------------------------------------------

def test_tool_call_is_executed_and_paired_in_history():
    store = ConversationStore()
    events = _run(ScriptedBackend([tool_round("clickElement", {"selector": "#login"}, call_id="c1")]), store)

    assert [type(e) for e in events] == [ToolCallEvent, ToolResultEvent, DoneEvent]
    assert events[1].result.success is True
    assert events[1].result.tool_call_id == "c1"

    assistant, tool_message = store.snapshot()
    assert assistant.tool_calls[0].id == "c1"
    assert tool_message.role == "tool"
    assert tool_message.tool_call_id == "c1"
    assert json.loads(tool_message.content)["message"] == "Clicked #login"

def test_tool_exception_is_fed_back_as_failure():
    store = ConversationStore()
    events = _run(ScriptedBackend([tool_round("broken", {})]), store)

    result = events[1].result
    assert result.success is False
    assert result.error == "page crashed"
    assert json.loads(store.snapshot()[-1].content) == {"success": False, "error": "page crashed"}

def test_backend_executed_result_is_recorded():
    store = ConversationStore()
    remote = ToolResult(tool_call_id="r1", tool_name="remoteSearch", success=True, payload={"success": True})
    _run(ScriptedBackend([[ToolResultUnit(result=remote), FinishUnit()]]), store)

    assistant, tool_message = store.snapshot()
    assert assistant.tool_calls[0].id == "r1"
    assert tool_message.tool_call_id == "r1"

def test_backend_executed_result_is_announced_as_a_call():
    store = ConversationStore()
    remote = ToolResult(tool_call_id="r1", tool_name="remoteSearch", success=True, payload={"success": True})
    events = _run(ScriptedBackend([[ToolResultUnit(result=remote), FinishUnit()]]), store)

    assert [type(e) for e in events] == [ToolCallEvent, ToolResultEvent, DoneEvent]
    assert events[0].call.id == "r1"
    assert events[0].call.tool_name == "remoteSearch"

def test_acknowledged_result_for_executed_call_is_dropped():
    runs = []

    async def click(args):
        runs.append(args)
        return {"success": True}

    registry = ToolRegistry([("automation", [ToolDescriptor(name="clickElement", description="click", executor=click)])])
    ack = ToolResult(tool_call_id="c1", tool_name="clickElement", success=True, payload={"success": True})
    units = [*tool_round("clickElement", {"selector": "#a"}, call_id="c1")[:-1], ToolResultUnit(result=ack), FinishUnit()]
    store = ConversationStore()

    events = _run(ScriptedBackend([units]), store, registry)

    assert len(runs) == 1
    assert [type(e) for e in events] == [ToolCallEvent, ToolResultEvent, DoneEvent]
    tool_messages = [m for m in store.snapshot() if m.role == "tool"]
    assert [m.tool_call_id for m in tool_messages] == ["c1"]

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_error_unit_is_classified():
    store = ConversationStore()
    events = _run(ScriptedBackend([[TextDeltaUnit(text="par"), ErrorUnit(message="429 Too Many Requests")]]), store)

    error = next(e for e in events if isinstance(e, ErrorEvent))
    assert error.category == "rate_limit"
    assert isinstance(events[-1], DoneEvent)
    assert store.snapshot()[-1].content == "par"
    assert store.in_flight is False

def test_backend_exception_is_classified():
    store = ConversationStore()
    events = _run(ScriptedBackend([ConnectionError("ECONNREFUSED")]), store)

    assert [type(e) for e in events] == [ErrorEvent, DoneEvent]
    assert events[0].category == "network"
    assert store.in_flight is False

def test_error_event_carries_raw_detail():
    store = ConversationStore()
    events = _run(ScriptedBackend([ConnectionError("ECONNREFUSED 127.0.0.1:443")]), store)
    assert events[0].detail == "ConnectionError: ECONNREFUSED 127.0.0.1:443"
