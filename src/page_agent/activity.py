# activity.py
# Outbound event surface and the UI-facing tool activity log.

from typing import Any, Protocol

from page_agent.models import ActivityEntry, ToolCall, ToolResult


class EventListener(Protocol):
    def on_text_delta(self, text: str) -> None: ...

    def on_tool_call(self, call: ToolCall) -> None: ...

    def on_tool_result(self, result: ToolResult) -> None: ...

    def on_error(self, category: str, message: str, detail: str = "") -> None: ...

    def on_turn_complete(self, text: str) -> None: ...


class ListenerGroup:
    """Fans every event out to each listener, in registration order."""

    def __init__(self, listeners: list[EventListener] | None = None) -> None:
        self._listeners: list[EventListener] = list(listeners or [])

    def add(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def on_text_delta(self, text: str) -> None:
        for listener in self._listeners:
            listener.on_text_delta(text)

    def on_tool_call(self, call: ToolCall) -> None:
        for listener in self._listeners:
            listener.on_tool_call(call)

    def on_tool_result(self, result: ToolResult) -> None:
        for listener in self._listeners:
            listener.on_tool_result(result)

    def on_error(self, category: str, message: str, detail: str = "") -> None:
        for listener in self._listeners:
            listener.on_error(category, message, detail)

    def on_turn_complete(self, text: str) -> None:
        for listener in self._listeners:
            listener.on_turn_complete(text)


class ActivityLog:
    """
    Running list of tool activity for a presentation layer.

    A "calling" entry is added per tool call. A result is matched back
    most-recent-first: the newest still-calling entry with the same tool
    name is the one marked complete. Two concurrent calls to the same tool
    that finish out of order will be matched the wrong way round; that is
    accepted.
    """

    def __init__(self) -> None:
        self._entries: list[ActivityEntry] = []

    @property
    def entries(self) -> list[ActivityEntry]:
        return list(self._entries)

    def record_call(self, tool_name: str, arguments: dict[str, Any] | None = None) -> ActivityEntry:
        entry = ActivityEntry(tool_name=tool_name, arguments=arguments or {})
        self._entries.append(entry)
        return entry

    def record_result(self, tool_name: str, result: Any, success: bool = True) -> ActivityEntry | None:
        for entry in reversed(self._entries):
            if entry.tool_name == tool_name and entry.status == "calling":
                entry.status = "complete" if success else "error"
                entry.result = result
                return entry
        return None

    def clear(self) -> None:
        self._entries.clear()

    # EventListener

    def on_text_delta(self, text: str) -> None:
        pass

    def on_tool_call(self, call: ToolCall) -> None:
        self.record_call(call.tool_name, call.arguments)

    def on_tool_result(self, result: ToolResult) -> None:
        payload = result.payload if result.success else result.error
        self.record_result(result.tool_name, payload, success=result.success)

    def on_error(self, category: str, message: str, detail: str = "") -> None:
        pass

    def on_turn_complete(self, text: str) -> None:
        pass
