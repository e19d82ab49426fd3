# dispatcher.py
# Streaming Dispatcher: one model round.
#
# Consumes the backend's stream units, keeps the in-flight assistant entry
# in the Conversation Store up to date, runs requested tools through the
# registry (suspending the stream while each one settles) and re-emits
# everything as StreamEvents for the Step Controller.

from typing import Any, AsyncIterator

from page_agent.backend import ModelBackend
from page_agent.conversation import ConversationStore
from page_agent.errors import classify_backend_error
from page_agent.models import (
    DoneEvent,
    ErrorEvent,
    ErrorUnit,
    FinishUnit,
    Message,
    StreamEvent,
    TextDeltaEvent,
    TextDeltaUnit,
    ToolCall,
    ToolCallEvent,
    ToolCallUnit,
    ToolResult,
    ToolResultEvent,
    ToolResultUnit,
)
from page_agent.registry import ToolRegistry, result_to_content


class StreamingDispatcher:
    def __init__(self, backend: ModelBackend, registry: ToolRegistry, store: ConversationStore) -> None:
        self._backend = backend
        self._registry = registry
        self._store = store

    def _finalize(self, text: str, calls: list[ToolCall], results: list[ToolResult]) -> None:
        """Seal the assistant entry, then append one tool message per result."""
        self._store.replace_last(text, tool_calls=calls)
        self._store.seal()
        for result in results:
            self._store.append(
                Message(role="tool", content=result_to_content(result), tool_call_id=result.tool_call_id)
            )

    async def run(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        step_limit_hint: int | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Invoke the backend once and stream the round's events.

        Always ends with exactly one DoneEvent. A backend failure is emitted
        as an ErrorEvent just before it; nothing is raised.
        """
        if tools is None:
            tools = self._registry.as_openai_tools()

        self._store.append(Message(role="assistant", content=""), streaming=True)

        text = ""
        calls: list[ToolCall] = []
        results: list[ToolResult] = []
        answered: set[str] = set()
        error: tuple[str, str, str] | None = None

        try:
            async for unit in self._backend.stream_chat(messages, tools, step_limit_hint):
                if isinstance(unit, TextDeltaUnit):
                    if not unit.text:
                        continue
                    text += unit.text
                    self._store.replace_last(text)
                    yield TextDeltaEvent(text=unit.text)

                elif isinstance(unit, ToolCallUnit):
                    call = unit.call
                    if call.id in answered:
                        continue
                    calls.append(call)
                    yield ToolCallEvent(call=call)
                    result = await self._registry.execute(call)
                    results.append(result)
                    answered.add(call.id)
                    yield ToolResultEvent(result=result)

                elif isinstance(unit, ToolResultUnit):
                    # Executed on the backend's side. Each call keeps exactly one result.
                    result = unit.result
                    if result.tool_call_id in answered:
                        continue
                    call = ToolCall(id=result.tool_call_id, tool_name=result.tool_name)
                    calls.append(call)
                    yield ToolCallEvent(call=call)
                    results.append(result)
                    answered.add(call.id)
                    yield ToolResultEvent(result=result)

                elif isinstance(unit, ErrorUnit):
                    error = (*classify_backend_error(unit.message), unit.message)
                    break

                elif isinstance(unit, FinishUnit):
                    break
        except Exception as exc:
            error = (*classify_backend_error(exc), f"{type(exc).__name__}: {exc}")

        self._finalize(text, calls, results)

        if error is not None:
            category, message, detail = error
            yield ErrorEvent(category=category, message=message, detail=detail)

        yield DoneEvent(text=text)
